"""Transition ingest pipeline: decode, dedupe, map, persist and notify."""

from __future__ import annotations

from .decoder import TRANSITION_TYPE, TransitionMessage, decode_transition
from .dedupe import DeliveryDecision, check_delivery
from .errors import (
    DecodeError,
    NotifyError,
    PersistError,
    PipelineError,
    PipelineErrorReason,
    TopicFormatError,
)
from .mapper import DomainEvent, to_domain_event
from .notifier import ChangeNotifier, MessagePublisher
from .observability import (
    ErrorCategory,
    PipelineEventLogger,
    PipelineEventType,
    categorize_error,
)
from .pipeline import (
    DiscardReason,
    InboundMessage,
    IngestionPipeline,
    PipelineStage,
    RunOutcome,
    RunStatus,
)
from .storage import Event, init_event_storage
from .topics import SUBSCRIPTION_PATTERN, notification_topic, subject_from_topic
from .writer import EventStoreWriter

__all__ = [
    "SUBSCRIPTION_PATTERN",
    "TRANSITION_TYPE",
    "ChangeNotifier",
    "DecodeError",
    "DeliveryDecision",
    "DiscardReason",
    "DomainEvent",
    "ErrorCategory",
    "Event",
    "EventStoreWriter",
    "InboundMessage",
    "IngestionPipeline",
    "MessagePublisher",
    "NotifyError",
    "PersistError",
    "PipelineError",
    "PipelineErrorReason",
    "PipelineEventLogger",
    "PipelineEventType",
    "PipelineStage",
    "RunOutcome",
    "RunStatus",
    "TopicFormatError",
    "TransitionMessage",
    "categorize_error",
    "check_delivery",
    "decode_transition",
    "init_event_storage",
    "notification_topic",
    "subject_from_topic",
    "to_domain_event",
]
