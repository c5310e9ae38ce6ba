"""Fetch upcoming events and store the ones worth processing."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from rollcall.events.store import EventStore
from rollcall.events.types import UpstreamEvent
from rollcall.upstream.client import UpstreamClient
from rollcall.upstream.filters import EventFilters

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SyncReport:
    fetched: int = 0
    category_matched: int = 0
    filter_matched: int = 0
    inserted: int = 0


class UpstreamSync:
    """fetch -> category allow-list -> keyword/fee filters -> insert if absent.

    Upstream and circuit errors propagate to the caller before anything is
    written. Re-running a sync never duplicates or overwrites stored rows.
    """

    def __init__(
        self,
        client: UpstreamClient,
        store: EventStore,
        filters: EventFilters,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._client = client
        self._store = store
        self._filters = filters
        self._clock = clock

    async def sync(self, window: timedelta) -> SyncReport:
        now = self._clock()
        until = now + window

        items = await self._client.list_events(now, until)
        candidates: list[UpstreamEvent] = []
        for item in items:
            candidate = UpstreamEvent.from_api(item)
            if candidate is None:
                continue
            if not (now <= candidate.start_date <= until):
                logger.debug(
                    "event_outside_window",
                    extra={
                        "event.id": candidate.id,
                        "event.start": candidate.start_date.isoformat(),
                    },
                )
                continue
            candidates.append(candidate)
        logger.info(
            "events_fetched",
            extra={
                "count": len(candidates),
                "window_hours": window.total_seconds() / 3600,
            },
        )

        by_category = self._filters.categories(candidates)
        logger.info("events_category_matched", extra={"count": len(by_category)})

        survivors = self._filters.apply(by_category)
        logger.info("events_filter_matched", extra={"count": len(survivors)})

        inserted = await self._store.insert_many(survivors) if survivors else 0
        logger.info(
            "events_stored",
            extra={"count.new": inserted, "count.known": len(survivors) - inserted},
        )

        return SyncReport(
            fetched=len(candidates),
            category_matched=len(by_category),
            filter_matched=len(survivors),
            inserted=inserted,
        )
