"""Bounded, paginated attendee retrieval."""

import asyncio
import logging
import math
from collections.abc import Mapping
from typing import TYPE_CHECKING

from rollcall.events.types import Attendee
from rollcall.upstream.cache import StaleCache
from rollcall.upstream.client import UpstreamClient

if TYPE_CHECKING:
    from rollcall.config.models import ApiConfig, CacheConfig

logger = logging.getLogger(__name__)


class AttendeeFetcher:
    """Fetch every attendee of an event, page by page.

    Termination never depends on the server's ``meta.total``: paging stops
    on the first empty or short page, and the number of requests is capped at
    ``ceil(max_attendees / page_size) + 1`` regardless of what the server
    returns.
    """

    def __init__(
        self,
        client: UpstreamClient,
        page_size: int = 100,
        max_attendees: int = 10000,
        page_delay: float = 0.0,
        cache: StaleCache[list[Attendee]] | None = None,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._client = client
        self.page_size = page_size
        self.max_attendees = max_attendees
        self.page_delay = page_delay
        self._cache = cache

    @classmethod
    def from_config(
        cls,
        client: UpstreamClient,
        config: "ApiConfig",
        cache_config: "CacheConfig | None" = None,
    ) -> "AttendeeFetcher":
        cache = None
        if cache_config is not None and cache_config.enabled:
            cache = StaleCache(
                "attendees",
                ttl=cache_config.attendee_ttl,
                stale_ttl=cache_config.attendee_stale_ttl,
            )
        return cls(
            client,
            page_size=config.page_size,
            max_attendees=config.max_attendees,
            page_delay=config.page_delay,
            cache=cache,
        )

    @property
    def max_requests(self) -> int:
        return math.ceil(self.max_attendees / self.page_size) + 1

    async def fetch_all(self, event_id: str) -> list[Attendee]:
        """All attendees sorted by last name, then first name (case-insensitive).

        With a cache, a recent result is reused and an older one stands in
        when the upstream fails transiently.
        """
        if self._cache is None:
            return await self._fetch_pages(event_id)
        attendees = await self._cache.fetch(
            event_id, lambda: self._fetch_pages(event_id)
        )
        return list(attendees)

    async def _fetch_pages(self, event_id: str) -> list[Attendee]:
        attendees: list[Attendee] = []
        reported_total: int | None = None
        offset = 0
        requests = 0

        while True:
            if requests >= self.max_requests:
                logger.warning(
                    "attendee_request_cap_reached",
                    extra={
                        "event.id": event_id,
                        "requests": requests,
                        "count": len(attendees),
                    },
                )
                break
            if requests and self.page_delay:
                await asyncio.sleep(self.page_delay)

            page = await self._client.list_attendees(event_id, self.page_size, offset)
            requests += 1

            records = page.get("attendees") if isinstance(page, Mapping) else None
            if not isinstance(records, list) or not records:
                break

            for record in records:
                if isinstance(record, Mapping):
                    attendees.append(Attendee.from_api(record))
            offset += len(records)

            meta = page.get("meta")
            reported_total = _meta_int(meta, "total")
            logger.debug(
                "attendee_page_fetched",
                extra={
                    "event.id": event_id,
                    "offset": offset,
                    "page.count": _meta_int(meta, "count"),
                    "page.total": reported_total,
                    "page.records": len(records),
                },
            )
            # A short page is the last one
            if len(records) < self.page_size:
                break

        if reported_total is not None and reported_total > offset:
            # Paging never follows total; flag a server that caps page size.
            logger.warning(
                "attendee_total_exceeds_received",
                extra={
                    "event.id": event_id,
                    "page.total": reported_total,
                    "count": offset,
                    "page_size": self.page_size,
                },
            )

        attendees.sort(key=lambda a: a.sort_key)
        logger.info(
            "attendees_fetched",
            extra={"event.id": event_id, "count": len(attendees), "requests": requests},
        )
        return attendees


def _meta_int(meta: object, key: str) -> int | None:
    if not isinstance(meta, Mapping):
        return None
    value = meta.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return int(value)
