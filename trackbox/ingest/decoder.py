"""Decode OwnTracks payloads into typed transition messages."""

from __future__ import annotations

import msgspec

from trackbox.ingest.errors import DecodeError

TRANSITION_TYPE = "transition"


_WIRE_NAMES = {
    "type": "_type",
    "timestamp": "tst",
    "description": "desc",
    "waypoint_created": "wtst",
    "latitude": "lat",
    "longitude": "long",
    "accuracy": "acc",
    "tracker_id": "tid",
    "trigger": "t",
}


class _WireTransition(msgspec.Struct, frozen=True, rename=_WIRE_NAMES):
    # JSON null is accepted anywhere and read as the field's zero value.
    type: str | None = None
    timestamp: int | None = None
    description: str | None = None
    event: str | None = None
    waypoint_created: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = None
    tracker_id: str | None = None
    trigger: str | None = None


class TransitionMessage(msgspec.Struct, frozen=True):
    """OwnTracks message as published on ``owntracks/{user}/{device}/event``.

    Every field is optional on the wire and falls back to its zero value,
    whether the key is absent or explicitly ``null``. Only ``type``,
    ``timestamp``, ``description`` and ``event`` feed the domain event; the
    telemetry fields are decoded and then dropped.
    """

    type: str = ""
    timestamp: int = 0
    description: str = ""
    event: str = ""
    waypoint_created: int = 0
    latitude: float = 0.0
    longitude: float = 0.0
    accuracy: float = 0.0
    tracker_id: str = ""
    trigger: str = ""

    @property
    def is_transition(self) -> bool:
        """Return True when the message announces a geofence transition."""
        return self.type == TRANSITION_TYPE


_decoder = msgspec.json.Decoder(_WireTransition | None)


def _from_wire(wire: _WireTransition | None) -> TransitionMessage:
    if wire is None:
        return TransitionMessage()
    return TransitionMessage(
        type=wire.type or "",
        timestamp=wire.timestamp or 0,
        description=wire.description or "",
        event=wire.event or "",
        waypoint_created=wire.waypoint_created or 0,
        latitude=wire.latitude or 0.0,
        longitude=wire.longitude or 0.0,
        accuracy=wire.accuracy or 0.0,
        tracker_id=wire.tracker_id or "",
        trigger=wire.trigger or "",
    )


def decode_transition(payload: bytes) -> TransitionMessage:
    """Decode a raw MQTT payload.

    A bare JSON ``null`` decodes to an empty message, which is not a
    transition.

    Raises
    ------
    DecodeError
        If the payload is not UTF-8 JSON, is neither an object nor ``null``,
        or carries a recognised field with the wrong JSON type.

    """
    try:
        wire = _decoder.decode(payload)
    except msgspec.DecodeError as exc:
        raise DecodeError.invalid_payload(str(exc)) from exc
    return _from_wire(wire)
