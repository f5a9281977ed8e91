"""Trackbox ingest runtime entrypoint.

Wires the event store, the MQTT transport and the ingest pipeline together,
then processes messages until SIGINT or SIGTERM arrives.

Configuration is read from ``TRACKBOX_*`` environment variables (see
:mod:`trackbox.config`). Startup failures (bad configuration, an unreachable
store or broker) are logged and turned into a non-zero exit code by
:func:`main`; the pipeline itself never terminates the process.

Run the service directly with ``python -m trackbox.runtime``.
"""

from __future__ import annotations

import asyncio
import os
import signal
import typing as typ

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from trackbox.config import ConfigError, TrackboxConfig
from trackbox.ingest import (
    SUBSCRIPTION_PATTERN,
    ChangeNotifier,
    EventStoreWriter,
    IngestionPipeline,
    init_event_storage,
)
from trackbox.ingest.topics import SUBSCRIPTION_QOS
from trackbox.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)
from trackbox.transport import MqttSettings, MqttTransport, TransportError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from trackbox.ingest import InboundMessage, MessagePublisher, RunOutcome

    class Transport(MessagePublisher, typ.Protocol):
        """Transport lifecycle used by the runtime."""

        async def start(self) -> None: ...

        async def subscribe(self, pattern: str, qos: int) -> None: ...

        async def stop(
            self, pattern: str | None = None, *, grace: float = 10.0
        ) -> None: ...

    type Handler = cabc.Callable[[InboundMessage], cabc.Awaitable[RunOutcome]]
    type TransportFactory = cabc.Callable[[TrackboxConfig, Handler], Transport]

__all__ = ["main", "serve"]

logger = get_logger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _mqtt_transport(config: TrackboxConfig, handler: Handler) -> Transport:
    settings = MqttSettings(
        endpoint=config.mqtt,
        client_id=config.mqtt_client_id,
        username=config.mqtt_username,
        password=config.mqtt_password,
        publish_timeout=config.publish_timeout,
    )
    return MqttTransport(settings, handler)


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in _SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, stop.set)


async def serve(
    config: TrackboxConfig,
    *,
    stop: asyncio.Event | None = None,
    transport_factory: TransportFactory = _mqtt_transport,
) -> int:
    """Run the ingest service until ``stop`` is set.

    When ``stop`` is omitted, SIGINT and SIGTERM set it.

    Returns
    -------
    int
        ``0`` after a clean shutdown, ``1`` when the store or broker could not
        be brought up.

    """
    if stop is None:
        stop = asyncio.Event()
        _install_signal_handlers(stop)

    try:
        engine = create_async_engine(config.database_url)
    except (SQLAlchemyError, ImportError) as exc:
        log_error(logger, "Unusable TRACKBOX_DATABASE_URL: %s", exc, exc_info=exc)
        return 1

    try:
        try:
            await init_event_storage(engine)
        except (SQLAlchemyError, OSError) as exc:
            log_error(logger, "Event store unavailable: %s", exc, exc_info=exc)
            return 1

        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        pipeline: IngestionPipeline | None = None

        async def _handle(message: InboundMessage) -> RunOutcome:
            assert pipeline is not None  # noqa: S101 - set before subscribe
            return await pipeline.handle(message)

        transport = transport_factory(config, _handle)
        pipeline = IngestionPipeline(
            EventStoreWriter(session_factory), ChangeNotifier(transport)
        )

        try:
            await transport.start()
        except TransportError as exc:
            log_error(logger, "MQTT broker unavailable: %s", exc, exc_info=exc)
            return 1
        try:
            await transport.subscribe(SUBSCRIPTION_PATTERN, SUBSCRIPTION_QOS)
        except TransportError as exc:
            log_error(logger, "MQTT subscription failed: %s", exc, exc_info=exc)
            await transport.stop(grace=0)
            return 1

        log_info(logger, "Awaiting transition events on %s", SUBSCRIPTION_PATTERN)
        await stop.wait()
        log_info(logger, "Shutting down")
        await transport.stop(SUBSCRIPTION_PATTERN, grace=config.shutdown_grace)
        return 0
    finally:
        await engine.dispose()


def main() -> int:
    """Load configuration from the environment and run the service."""
    log_level_str = os.environ.get("TRACKBOX_LOG_LEVEL", "INFO")
    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid TRACKBOX_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    try:
        config = TrackboxConfig.from_env()
    except ConfigError as exc:
        log_error(logger, "Invalid configuration: %s", exc)
        return 1

    log_info(
        logger,
        "Starting Trackbox ingest (broker=%s, log_level=%s)",
        config.mqtt.uri,
        normalized_level,
    )
    return asyncio.run(serve(config))


if __name__ == "__main__":
    raise SystemExit(main())
