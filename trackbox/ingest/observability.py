"""Structured log events for the transition ingest pipeline.

Every discarded or failed message produces exactly one log line of the form
``[<event type>] key=value ...`` so log aggregators can count outcomes by
event type and error category.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from trackbox.ingest.errors import (
    DecodeError,
    NotifyError,
    PersistError,
    TopicFormatError,
)
from trackbox.logging import get_logger, log_debug, log_error, log_info, log_warning
from trackbox.transport.errors import TransportError

if typ.TYPE_CHECKING:
    from trackbox.ingest.mapper import DomainEvent

logger = get_logger(__name__)


class PipelineEventType(enum.StrEnum):
    """Structured log event types for pipeline runs."""

    MESSAGE_RECEIVED = "ingest.message.received"
    MESSAGE_DISCARDED = "ingest.message.discarded"
    MESSAGE_FAILED = "ingest.message.failed"
    EVENT_PERSISTED = "ingest.event.persisted"
    NOTIFY_SENT = "ingest.notify.sent"
    NOTIFY_FAILED = "ingest.notify.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    INVALID_PAYLOAD = "invalid_payload"
    TOPIC_FORMAT = "topic_format"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (DecodeError, ErrorCategory.INVALID_PAYLOAD),
    (TopicFormatError, ErrorCategory.TOPIC_FORMAT),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
    (TransportError, ErrorCategory.TRANSPORT),
    (TimeoutError, ErrorCategory.TRANSPORT),
    (OSError, ErrorCategory.TRANSPORT),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Persist and notify errors are classified by the exception they wrap, so a
    ``PersistError`` caused by a dropped connection reports
    ``database_connectivity`` rather than a generic store failure.
    """
    if isinstance(exc, PersistError | NotifyError) and exc.__cause__ is not None:
        return categorize_error(exc.__cause__)

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class PipelineEventLogger:
    """Emit structured pipeline events via femtologging.

    Discards are logged at INFO, failed runs at ERROR and notification
    failures at WARNING because the run itself still succeeded.
    """

    def log_message_received(self, topic: str, message_id: int | str | None) -> None:
        """Log receipt of an inbound message."""
        log_debug(
            logger,
            "[%s] topic=%s message_id=%s",
            PipelineEventType.MESSAGE_RECEIVED,
            topic,
            message_id,
        )

    def log_message_discarded(
        self,
        topic: str,
        message_id: int | str | None,
        reason: str,
    ) -> None:
        """Log a message that was valid but not actionable."""
        log_info(
            logger,
            "[%s] topic=%s message_id=%s reason=%s",
            PipelineEventType.MESSAGE_DISCARDED,
            topic,
            message_id,
            reason,
        )

    def log_message_failed(
        self,
        topic: str,
        message_id: int | str | None,
        *,
        stage: str,
        error: BaseException,
    ) -> None:
        """Log a run aborted by a decode, topic or persist error."""
        log_error(
            logger,
            "[%s] topic=%s message_id=%s stage=%s "
            "error_type=%s error_category=%s error_message=%s",
            PipelineEventType.MESSAGE_FAILED,
            topic,
            message_id,
            stage,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_event_persisted(
        self,
        topic: str,
        record_id: int,
        event: DomainEvent,
    ) -> None:
        """Log a domain event written to the store."""
        log_info(
            logger,
            "[%s] topic=%s record_id=%d entity_id=%s target_entity_id=%s "
            "event=%s event_time=%s",
            PipelineEventType.EVENT_PERSISTED,
            topic,
            record_id,
            event.entity_id,
            event.target_entity_id,
            event.event,
            event.event_time.isoformat(),
        )

    def log_notify_sent(self, subject_id: str) -> None:
        """Log an acknowledged change notification."""
        log_debug(
            logger,
            "[%s] subject_id=%s",
            PipelineEventType.NOTIFY_SENT,
            subject_id,
        )

    def log_notify_failed(self, subject_id: str, error: BaseException) -> None:
        """Log a lost change notification."""
        log_warning(
            logger,
            "[%s] subject_id=%s error_type=%s error_category=%s error_message=%s",
            PipelineEventType.NOTIFY_FAILED,
            subject_id,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )
