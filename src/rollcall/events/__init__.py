"""Events: types and the durable store."""

from rollcall.events.store import EventStore
from rollcall.events.types import (
    Attendee,
    Event,
    EventStatus,
    UpstreamEvent,
    parse_timestamp,
)

__all__ = [
    "Attendee",
    "Event",
    "EventStatus",
    "EventStore",
    "UpstreamEvent",
    "parse_timestamp",
]
