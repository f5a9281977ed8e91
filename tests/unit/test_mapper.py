"""Unit tests for the transition → domain event mapping."""

from __future__ import annotations

import datetime as dt

import pytest

from trackbox.ingest import (
    DecodeError,
    DomainEvent,
    PipelineErrorReason,
    TopicFormatError,
    decode_transition,
    to_domain_event,
)
from tests.helpers.fakes import transition_payload


def test_maps_fields_and_constants() -> None:
    """The domain event copies event/desc and fixes the entity types."""
    message = decode_transition(transition_payload(event="leave", desc="office"))

    event = to_domain_event(message, "alice")

    assert event == DomainEvent(
        event="leave",
        entity_type="user",
        entity_id="alice",
        target_entity_type="geofence",
        target_entity_id="office",
        event_time=dt.datetime(2023, 11, 14, 22, 13, 20, tzinfo=dt.UTC),
    )


def test_event_time_is_utc_aware() -> None:
    """Epoch seconds are interpreted in UTC."""
    message = decode_transition(transition_payload(tst=0))

    event = to_domain_event(message, "alice")

    assert event.event_time == dt.datetime(1970, 1, 1, tzinfo=dt.UTC)
    assert event.event_time.utcoffset() == dt.timedelta(0)


def test_domain_event_is_immutable() -> None:
    """Mapped events cannot be modified after creation."""
    event = to_domain_event(decode_transition(transition_payload()), "alice")

    with pytest.raises(AttributeError):
        event.entity_id = "mallory"  # type: ignore[misc]


def test_empty_subject_raises_topic_format_error() -> None:
    """An empty subject identity is a topic formatting violation."""
    message = decode_transition(transition_payload())

    with pytest.raises(TopicFormatError, match="subject identity must not be empty"):
        to_domain_event(message, "")


def test_unrepresentable_timestamp_raises_decode_error() -> None:
    """A ``tst`` far outside the datetime range is rejected."""
    message = decode_transition(transition_payload(tst=10**15))

    with pytest.raises(DecodeError) as excinfo:
        to_domain_event(message, "alice")

    assert excinfo.value.reason == PipelineErrorReason.INVALID_TIMESTAMP
