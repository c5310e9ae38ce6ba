"""Category and keyword/fee filters for upstream candidates."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rollcall.events.types import UpstreamEvent

if TYPE_CHECKING:
    from rollcall.config.models import FiltersConfig

logger = logging.getLogger(__name__)


def matches_categories(event: UpstreamEvent, allowed: Iterable[str]) -> bool:
    """True if any of the event's categories is allowed. Empty allow-list = all."""
    allowed_set = set(allowed)
    if not allowed_set:
        return True
    return any(category in allowed_set for category in event.categories)


@dataclass
class EventFilters:
    """Keyword and fee predicates applied after the category allow-list.

    Keyword matching is a case-insensitive substring match on the name.
    """

    allowed_categories: list[str] = field(default_factory=list)
    include_keywords: list[str] = field(default_factory=list)
    exclude_keywords: list[str] = field(default_factory=list)
    only_paid: bool = False
    only_free: bool = False

    @classmethod
    def from_config(cls, config: "FiltersConfig") -> "EventFilters":
        return cls(
            allowed_categories=list(config.allowed_categories),
            include_keywords=list(config.include_keywords),
            exclude_keywords=list(config.exclude_keywords),
            only_paid=config.only_paid,
            only_free=config.only_free,
        )

    def categories(self, events: Iterable[UpstreamEvent]) -> list[UpstreamEvent]:
        return [e for e in events if matches_categories(e, self.allowed_categories)]

    def passes(self, event: UpstreamEvent) -> bool:
        name = event.name.lower()
        if any(k.lower() in name for k in self.exclude_keywords):
            return False
        if self.include_keywords and not any(
            k.lower() in name for k in self.include_keywords
        ):
            return False
        if self.only_paid and event.has_fee is not True:
            return False
        if self.only_free and event.has_fee is not False:
            return False
        return True

    def apply(self, events: Iterable[UpstreamEvent]) -> list[UpstreamEvent]:
        events = list(events)
        kept = [e for e in events if self.passes(e)]
        if len(kept) != len(events):
            logger.info(
                "events_filtered",
                extra={"count.before": len(events), "count.after": len(kept)},
            )
        return kept
