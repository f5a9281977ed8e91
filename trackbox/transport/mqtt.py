"""paho-mqtt adapter that feeds OwnTracks messages into the ingest pipeline.

paho runs its network loop on a background thread. Each inbound message is
handed to the asyncio loop that called :meth:`MqttTransport.start` with
``asyncio.run_coroutine_threadsafe``, so pipeline runs execute on that loop and
may overlap when messages arrive close together. Publishes block on the
broker's acknowledgement in a worker thread, bounded by ``publish_timeout``.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import dataclasses as dc
import threading
import typing as typ

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from trackbox.ingest.pipeline import InboundMessage
from trackbox.logging import get_logger, log_debug, log_error, log_info, log_warning
from trackbox.transport.errors import TransportError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from trackbox.config import MqttEndpoint

    type MessageHandler = cabc.Callable[[InboundMessage], cabc.Awaitable[object]]

logger = get_logger(__name__)

_KEEPALIVE_SECONDS = 60


@dc.dataclass(frozen=True, slots=True)
class MqttSettings:
    """Connection settings for :class:`MqttTransport`."""

    endpoint: MqttEndpoint
    client_id: str
    username: str | None = None
    password: str | None = None
    publish_timeout: float = 5.0
    connect_timeout: float = 10.0


class MqttTransport:
    """Subscribe to a topic pattern and publish with acknowledgement."""

    def __init__(
        self,
        settings: MqttSettings,
        handler: MessageHandler,
        *,
        client: mqtt.Client | None = None,
    ) -> None:
        """Create the paho client; nothing touches the network until ``start``."""
        self._settings = settings
        self._handler = handler
        self._client = client or mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._in_flight: set[concurrent.futures.Future[object]] = set()
        self._in_flight_lock = threading.Lock()
        self._connected: asyncio.Future[None] | None = None
        self._subscriptions: dict[int, asyncio.Future[None]] = {}
        self._accepting = False

        if settings.username is not None:
            self._client.username_pw_set(settings.username, settings.password)
        if settings.endpoint.tls:
            self._client.tls_set()
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_subscribe = self._on_subscribe
        self._client.on_message = self._on_message

    @property
    def in_flight(self) -> int:
        """Return the number of pipeline runs not yet finished."""
        with self._in_flight_lock:
            return len(self._in_flight)

    async def start(self) -> None:
        """Connect to the broker and wait for CONNACK.

        Raises
        ------
        TransportError
            If the broker refuses the connection or does not answer within
            ``connect_timeout``.

        """
        self._loop = asyncio.get_running_loop()
        self._connected = self._loop.create_future()
        endpoint = self._settings.endpoint
        try:
            await asyncio.to_thread(
                self._client.connect, endpoint.host, endpoint.port, _KEEPALIVE_SECONDS
            )
        except OSError as exc:
            raise TransportError.connect_failed(endpoint.uri, exc) from exc
        self._client.loop_start()
        try:
            async with asyncio.timeout(self._settings.connect_timeout):
                await self._connected
        except TimeoutError as exc:
            self._client.loop_stop()
            raise TransportError.connect_failed(endpoint.uri, "timed out") from exc
        except TransportError:
            self._client.loop_stop()
            raise
        log_info(logger, "Connected to MQTT broker %s", endpoint.uri)

    async def subscribe(self, pattern: str, qos: int) -> None:
        """Subscribe to ``pattern`` and start delivering messages.

        Raises
        ------
        TransportError
            If the subscription is rejected or not acknowledged in time.

        """
        loop = self._require_loop()
        with self._in_flight_lock:
            self._accepting = True
        result, mid = self._client.subscribe(pattern, qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError.subscribe_failed(pattern, result)
        acked = loop.create_future()
        self._subscriptions[mid] = acked
        try:
            async with asyncio.timeout(self._settings.connect_timeout):
                await acked
        except TimeoutError as exc:
            raise TransportError.subscribe_failed(pattern, "timed out") from exc
        finally:
            self._subscriptions.pop(mid, None)
        log_info(logger, "Subscribed to %s (qos=%d)", pattern, qos)

    async def publish(self, topic: str, payload: bytes, *, qos: int) -> None:
        """Publish ``payload`` and wait until the broker acknowledges it.

        Raises
        ------
        TransportError
            If the client cannot queue the message or the acknowledgement does
            not arrive within ``publish_timeout``.

        """
        info = self._client.publish(topic, payload, qos=qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError.publish_failed(topic, info.rc)
        timeout = self._settings.publish_timeout
        try:
            await asyncio.to_thread(info.wait_for_publish, timeout)
        except (RuntimeError, ValueError) as exc:
            raise TransportError.publish_failed(topic, exc) from exc
        if not info.is_published():
            raise TransportError.publish_timeout(topic, timeout)

    async def stop(self, pattern: str | None = None, *, grace: float = 10.0) -> None:
        """Stop delivering, let in-flight runs finish, then disconnect.

        Runs still going after ``grace`` seconds are left to finish on their
        own and a warning is logged.
        """
        # Flipped under the lock so no run can be scheduled after the snapshot.
        with self._in_flight_lock:
            self._accepting = False
            pending = [asyncio.wrap_future(fut) for fut in self._in_flight]
        if pattern is not None:
            self._client.unsubscribe(pattern)

        if pending:
            log_info(logger, "Waiting for %d in-flight message(s)", len(pending))
            _, still_running = await asyncio.wait(pending, timeout=grace)
            if still_running:
                log_warning(
                    logger,
                    "%d message(s) still in flight after %.1fs grace period",
                    len(still_running),
                    grace,
                )

        self._client.disconnect()
        self._client.loop_stop()
        log_info(logger, "Disconnected from MQTT broker")

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise TransportError.not_connected()
        return self._loop

    @staticmethod
    def _resolve(
        future: asyncio.Future[None] | None, exc: Exception | None
    ) -> None:
        if future is None or future.done():
            return
        if exc is None:
            future.set_result(None)
        else:
            future.set_exception(exc)

    # paho callbacks: invoked on the network thread.

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: object,
        flags: object,
        reason_code: typ.Any,  # noqa: ANN401 - paho ReasonCode
        properties: object,
    ) -> None:
        loop = self._require_loop()
        error = (
            TransportError.connect_failed(self._settings.endpoint.uri, reason_code)
            if reason_code.is_failure
            else None
        )
        loop.call_soon_threadsafe(self._resolve, self._connected, error)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: object,
        flags: object,
        reason_code: typ.Any,  # noqa: ANN401 - paho ReasonCode
        properties: object,
    ) -> None:
        if reason_code.is_failure:
            log_warning(logger, "MQTT connection lost: %s", reason_code)

    def _on_subscribe(
        self,
        client: mqtt.Client,
        userdata: object,
        mid: int,
        reason_code_list: list[typ.Any],
        properties: object,
    ) -> None:
        loop = self._require_loop()
        failure = next((rc for rc in reason_code_list if rc.is_failure), None)

        def _settle() -> None:
            future = self._subscriptions.get(mid)
            error = (
                None
                if failure is None
                else TransportError.subscribe_failed(f"mid {mid}", failure)
            )
            self._resolve(future, error)

        loop.call_soon_threadsafe(_settle)

    def _on_message(
        self,
        client: mqtt.Client,
        userdata: object,
        msg: mqtt.MQTTMessage,
    ) -> None:
        inbound = InboundMessage(
            topic=msg.topic,
            payload=bytes(msg.payload),
            is_duplicate=bool(msg.dup),
            message_id=msg.mid,
        )
        future: concurrent.futures.Future[object] | None = None
        with self._in_flight_lock:
            if self._accepting:
                future = asyncio.run_coroutine_threadsafe(
                    self._run(inbound), self._require_loop()
                )
                self._in_flight.add(future)
        if future is None:
            log_debug(logger, "Dropping message on %s during shutdown", msg.topic)
            return
        future.add_done_callback(self._forget)

    async def _run(self, inbound: InboundMessage) -> object:
        return await self._handler(inbound)

    def _forget(self, future: concurrent.futures.Future[object]) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            log_error(logger, "Unhandled error while processing message", exc_info=exc)
