"""MQTT topic conventions shared by the subscriber and the notifier."""

from __future__ import annotations

from trackbox.ingest.errors import TopicFormatError

# owntracks/{user}/{device}/event
SUBSCRIPTION_PATTERN = "owntracks/+/+/event"
SUBSCRIPTION_QOS = 2

NOTIFICATION_TOPIC_TEMPLATE = "trackbox/{subject}/events"
NOTIFICATION_PAYLOAD = b"geofence"
NOTIFICATION_QOS = 1

_SUBJECT_SEGMENT = 1


def subject_from_topic(topic: str) -> str:
    """Return the subject identity carried in the second topic segment.

    Raises
    ------
    TopicFormatError
        If the topic has no second segment or it is empty.

    """
    segments = topic.split("/")
    if len(segments) <= _SUBJECT_SEGMENT or not segments[_SUBJECT_SEGMENT]:
        raise TopicFormatError.missing_subject(topic)
    return segments[_SUBJECT_SEGMENT]


def notification_topic(subject_id: str) -> str:
    """Return the per-subject topic that announces new events."""
    return NOTIFICATION_TOPIC_TEMPLATE.format(subject=subject_id)
