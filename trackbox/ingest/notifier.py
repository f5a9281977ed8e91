"""Announce newly persisted events to other Trackbox components."""

from __future__ import annotations

import typing as typ

from trackbox.ingest.errors import NotifyError
from trackbox.ingest.topics import (
    NOTIFICATION_PAYLOAD,
    NOTIFICATION_QOS,
    notification_topic,
)
from trackbox.transport.errors import TransportError


class MessagePublisher(typ.Protocol):
    """Transport capable of publishing and awaiting the broker's acknowledgement."""

    async def publish(self, topic: str, payload: bytes, *, qos: int) -> None:
        """Publish ``payload`` to ``topic`` and return once acknowledged."""
        ...


class ChangeNotifier:
    """Publish a ``geofence`` signal on ``trackbox/{subject}/events``.

    One notification is sent per persisted event. Delivery is best effort: a
    failure here never undoes the write that preceded it.
    """

    def __init__(self, publisher: MessagePublisher) -> None:
        """Store the publisher used for notifications."""
        self._publisher = publisher

    async def notify(self, subject_id: str) -> None:
        """Publish the change signal for ``subject_id``.

        Raises
        ------
        NotifyError
            If the publish fails or is not acknowledged in time.

        """
        topic = notification_topic(subject_id)
        try:
            await self._publisher.publish(
                topic, NOTIFICATION_PAYLOAD, qos=NOTIFICATION_QOS
            )
        except (TransportError, OSError, TimeoutError) as exc:
            raise NotifyError.publish_failed(topic, exc) from exc
