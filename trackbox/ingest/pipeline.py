"""Per-message ingest pipeline: decode, filter, dedupe, map, write, notify.

The transport calls :meth:`IngestionPipeline.handle` once for every inbound
message. Each call runs its steps in order and returns a :class:`RunOutcome`;
errors confined to the message are logged and reported in the outcome rather
than raised, so one bad message never stops the subscriber. Nothing is carried
from one call to the next.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from trackbox.ingest.decoder import decode_transition
from trackbox.ingest.dedupe import DeliveryDecision, check_delivery
from trackbox.ingest.errors import (
    DecodeError,
    NotifyError,
    PersistError,
    PipelineError,
    TopicFormatError,
)
from trackbox.ingest.mapper import to_domain_event
from trackbox.ingest.observability import PipelineEventLogger
from trackbox.ingest.topics import subject_from_topic

if typ.TYPE_CHECKING:
    from trackbox.ingest.mapper import DomainEvent


class PipelineStage(enum.StrEnum):
    """Last stage a message reached."""

    RECEIVED = "received"
    DECODED = "decoded"
    TYPE_FILTERED = "type_filtered"
    DEDUPLICATED = "deduplicated"
    MAPPED = "mapped"
    WRITTEN = "written"
    NOTIFIED = "notified"
    DONE = "done"


class RunStatus(enum.StrEnum):
    """Terminal status of one pipeline run."""

    DONE = "done"
    DISCARDED = "discarded"
    FAILED = "failed"


class DiscardReason(enum.StrEnum):
    """Why an otherwise valid message was not processed."""

    NOT_TRANSITION = "not_transition"
    DUPLICATE = "duplicate"


@dc.dataclass(frozen=True, slots=True)
class InboundMessage:
    """A message as delivered by the transport."""

    topic: str
    payload: bytes
    is_duplicate: bool = False
    message_id: int | str | None = None


@dc.dataclass(frozen=True, slots=True)
class RunOutcome:
    """Result of handling one inbound message.

    ``DONE`` means the event was persisted; ``notified`` records whether the
    change notification that follows was acknowledged.
    """

    status: RunStatus
    stage: PipelineStage
    record_id: int | None = None
    notified: bool = False
    reason: DiscardReason | None = None
    error: PipelineError | None = None

    @property
    def succeeded(self) -> bool:
        """Return True when the domain event was written."""
        return self.status is RunStatus.DONE


class EventWriter(typ.Protocol):
    """Store that appends domain events."""

    async def write(self, event: DomainEvent) -> int:
        """Persist ``event`` and return its record id."""
        ...


class Notifier(typ.Protocol):
    """Sink for per-subject change notifications."""

    async def notify(self, subject_id: str) -> None:
        """Announce that ``subject_id`` has a new event."""
        ...


class IngestionPipeline:
    """Turn OwnTracks transition messages into persisted domain events."""

    def __init__(
        self,
        writer: EventWriter,
        notifier: Notifier,
        *,
        event_logger: PipelineEventLogger | None = None,
    ) -> None:
        """Store the collaborators used by every run."""
        self._writer = writer
        self._notifier = notifier
        self._events = event_logger or PipelineEventLogger()

    async def handle(self, message: InboundMessage) -> RunOutcome:
        """Process ``message`` through every pipeline stage.

        Non-transition messages and broker-flagged redeliveries are discarded
        without side effects. Decode, topic and persist errors end the run as
        ``FAILED``. A notification failure is logged and the run still
        completes as ``DONE``.
        """
        self._events.log_message_received(message.topic, message.message_id)

        try:
            decoded = decode_transition(message.payload)
        except DecodeError as exc:
            return self._fail(message, PipelineStage.RECEIVED, exc)

        if not decoded.is_transition:
            return self._discard(
                message, PipelineStage.DECODED, DiscardReason.NOT_TRANSITION
            )

        decision = check_delivery(
            is_duplicate=message.is_duplicate, message_id=message.message_id
        )
        if decision is DeliveryDecision.SKIP:
            return self._discard(
                message, PipelineStage.TYPE_FILTERED, DiscardReason.DUPLICATE
            )

        try:
            subject_id = subject_from_topic(message.topic)
            event = to_domain_event(decoded, subject_id)
        except (TopicFormatError, DecodeError) as exc:
            return self._fail(message, PipelineStage.DEDUPLICATED, exc)

        try:
            record_id = await self._writer.write(event)
        except PersistError as exc:
            return self._fail(message, PipelineStage.MAPPED, exc)
        self._events.log_event_persisted(message.topic, record_id, event)

        notified = await self._notify(subject_id)
        return RunOutcome(
            status=RunStatus.DONE,
            stage=PipelineStage.DONE,
            record_id=record_id,
            notified=notified,
        )

    async def _notify(self, subject_id: str) -> bool:
        try:
            await self._notifier.notify(subject_id)
        except NotifyError as exc:
            self._events.log_notify_failed(subject_id, exc)
            return False
        self._events.log_notify_sent(subject_id)
        return True

    def _discard(
        self,
        message: InboundMessage,
        stage: PipelineStage,
        reason: DiscardReason,
    ) -> RunOutcome:
        self._events.log_message_discarded(message.topic, message.message_id, reason)
        return RunOutcome(status=RunStatus.DISCARDED, stage=stage, reason=reason)

    def _fail(
        self,
        message: InboundMessage,
        stage: PipelineStage,
        error: PipelineError,
    ) -> RunOutcome:
        self._events.log_message_failed(
            message.topic, message.message_id, stage=stage, error=error
        )
        return RunOutcome(status=RunStatus.FAILED, stage=stage, error=error)
