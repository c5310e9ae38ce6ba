"""Event types.

Public types:
- Event: A stored event and its processing status
- EventStatus: The two-state lifecycle (pending -> processed)
- UpstreamEvent: A candidate event as returned by the upstream API
- Attendee: One registered attendee of an event
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventStatus(StrEnum):
    PENDING = "pending"
    PROCESSED = "processed"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing ``Z``; naive values are assumed to be UTC.
    Returns None for anything unparseable.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


@dataclass(frozen=True)
class Event:
    """A stored event."""

    id: str
    name: str
    start_date: datetime
    status: EventStatus = EventStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status == EventStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "startDate": self.start_date.isoformat(),
            "status": str(self.status),
        }


@dataclass(frozen=True)
class UpstreamEvent:
    """A candidate event from the upstream API, before filtering."""

    id: str
    name: str
    start_date: datetime
    categories: tuple[str, ...] = ()
    has_fee: bool | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: Any) -> "UpstreamEvent | None":
        """Build a candidate from one upstream payload item.

        Returns None when the item lacks an id, a name, or a parseable
        ``startDate``; such items are skipped rather than failing the sync.
        """
        if not isinstance(data, Mapping):
            return None
        event_id = data.get("id")
        name = data.get("name")
        start_date = parse_timestamp(data.get("startDate"))
        if event_id in (None, "") or not isinstance(name, str) or start_date is None:
            logger.debug(
                "upstream_event_skipped",
                extra={"event.id": str(event_id), "reason": "malformed"},
            )
            return None

        categories: list[str] = []
        raw_categories = data.get("categories")
        if isinstance(raw_categories, list):
            for category in raw_categories:
                if isinstance(category, Mapping):
                    category = category.get("name")
                if isinstance(category, str) and category:
                    categories.append(category)

        has_fee = data.get("hasFee")
        return cls(
            id=str(event_id),
            name=name,
            start_date=start_date,
            categories=tuple(categories),
            has_fee=has_fee if isinstance(has_fee, bool) else None,
            raw=data,
        )


@dataclass(frozen=True)
class Attendee:
    """One attendee record from the upstream API."""

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.last_name.lower(), self.first_name.lower())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Attendee":
        first_name = data.get("firstName")
        last_name = data.get("lastName")
        email = data.get("email")
        return cls(
            id=str(data.get("id") or ""),
            first_name=first_name if isinstance(first_name, str) else "",
            last_name=last_name if isinstance(last_name, str) else "",
            email=email if isinstance(email, str) else None,
            raw=data,
        )
