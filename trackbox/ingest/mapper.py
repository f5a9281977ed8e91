"""Project transition messages onto persisted domain events."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from trackbox.common.time import from_epoch_seconds
from trackbox.ingest.errors import DecodeError, TopicFormatError

if typ.TYPE_CHECKING:
    import datetime as dt

    from trackbox.ingest.decoder import TransitionMessage

USER_ENTITY_TYPE = "user"
GEOFENCE_ENTITY_TYPE = "geofence"


@dc.dataclass(frozen=True, slots=True)
class DomainEvent:
    """A user crossing a geofence boundary at ``event_time``."""

    event: str
    entity_type: str
    entity_id: str
    target_entity_type: str
    target_entity_id: str
    event_time: dt.datetime


def to_domain_event(message: TransitionMessage, subject_id: str) -> DomainEvent:
    """Build the domain event for ``message`` published by ``subject_id``.

    The transition kind and geofence description are copied verbatim and
    ``tst`` is read as epoch seconds in UTC.

    Raises
    ------
    TopicFormatError
        If ``subject_id`` is empty.
    DecodeError
        If ``tst`` cannot be represented as a datetime.

    """
    if not subject_id:
        raise TopicFormatError.empty_subject()
    try:
        event_time = from_epoch_seconds(message.timestamp)
    except ValueError as exc:
        raise DecodeError.invalid_timestamp(message.timestamp) from exc

    return DomainEvent(
        event=message.event,
        entity_type=USER_ENTITY_TYPE,
        entity_id=subject_id,
        target_entity_type=GEOFENCE_ENTITY_TYPE,
        target_entity_id=message.description,
        event_time=event_time,
    )
