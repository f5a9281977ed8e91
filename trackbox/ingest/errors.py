"""Error types raised by the transition ingest pipeline."""

from __future__ import annotations

import enum


class PipelineErrorReason(enum.StrEnum):
    """Machine-readable reasons for per-message pipeline failures."""

    INVALID_PAYLOAD = "invalid_payload"
    INVALID_TIMESTAMP = "invalid_timestamp"
    MISSING_SUBJECT = "missing_subject"
    WRITE_FAILED = "write_failed"
    PUBLISH_FAILED = "publish_failed"


class PipelineError(Exception):
    """Base class for errors confined to a single pipeline run."""

    def __init__(
        self,
        message: str,
        reason: PipelineErrorReason | str | None = None,
    ) -> None:
        """Store a machine-readable reason for programmatic handling."""
        super().__init__(message)
        self.reason = reason


class DecodeError(PipelineError):
    """Raised when an inbound payload cannot be decoded."""

    @classmethod
    def invalid_payload(cls, detail: str) -> DecodeError:
        """Create an error for structurally malformed payloads."""
        return cls(
            f"invalid transition payload: {detail}",
            reason=PipelineErrorReason.INVALID_PAYLOAD,
        )

    @classmethod
    def invalid_timestamp(cls, value: int) -> DecodeError:
        """Create an error for ``tst`` values that are not representable."""
        return cls(
            f"tst {value} is not a representable epoch timestamp",
            reason=PipelineErrorReason.INVALID_TIMESTAMP,
        )


class TopicFormatError(PipelineError):
    """Raised when a topic does not carry a subject identity segment."""

    @classmethod
    def missing_subject(cls, topic: str) -> TopicFormatError:
        """Create an error naming the offending topic."""
        return cls(
            f"topic {topic!r} has no subject segment",
            reason=PipelineErrorReason.MISSING_SUBJECT,
        )

    @classmethod
    def empty_subject(cls) -> TopicFormatError:
        """Create an error for an event built without a subject identity."""
        return cls(
            "subject identity must not be empty",
            reason=PipelineErrorReason.MISSING_SUBJECT,
        )


class PersistError(PipelineError):
    """Raised when the event store rejects or cannot accept a write."""

    @classmethod
    def write_failed(cls, exc: BaseException) -> PersistError:
        """Wrap a store failure."""
        return cls(
            f"failed to persist event: {exc}",
            reason=PipelineErrorReason.WRITE_FAILED,
        )


class NotifyError(PipelineError):
    """Raised when a change notification is not published and acknowledged."""

    @classmethod
    def publish_failed(cls, topic: str, exc: BaseException) -> NotifyError:
        """Wrap a transport publish failure for ``topic``."""
        return cls(
            f"failed to publish notification to {topic}: {exc}",
            reason=PipelineErrorReason.PUBLISH_FAILED,
        )
