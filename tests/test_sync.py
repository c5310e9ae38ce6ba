"""Tests for the upstream sync pipeline."""

from datetime import timedelta

import httpx
import pytest

from rollcall.events import EventStatus, EventStore
from rollcall.upstream import (
    DefinitiveUpstreamError,
    EventFilters,
    TransientUpstreamError,
    UpstreamClient,
    UpstreamSync,
)

from tests.conftest import (
    NOW,
    FakeClock,
    FakeUpstream,
    fast_resilience,
    make_event_payload,
)

WINDOW = timedelta(hours=24)


@pytest.fixture
def sync(client: UpstreamClient, store: EventStore, clock: FakeClock) -> UpstreamSync:
    return UpstreamSync(
        client, store, EventFilters(allowed_categories=["Social"]), clock=clock
    )


class TestSync:
    """Tests for UpstreamSync.sync."""

    @pytest.mark.asyncio
    async def test_stores_events_inside_window(
        self, sync: UpstreamSync, store: EventStore, upstream: FakeUpstream
    ):
        upstream.events = [
            make_event_payload("e1", NOW + timedelta(hours=1), categories=["Social"]),
            make_event_payload("e2", NOW + timedelta(hours=23), categories=["Social"]),
            make_event_payload("e3", NOW + timedelta(hours=25), categories=["Social"]),
        ]

        report = await sync.sync(WINDOW)

        assert report.inserted == 2
        pending = await store.list_pending()
        assert [e.id for e in pending] == ["e1", "e2"]
        assert all(e.status == EventStatus.PENDING for e in pending)

    @pytest.mark.asyncio
    async def test_sends_window_and_auth(
        self, sync: UpstreamSync, upstream: FakeUpstream
    ):
        await sync.sync(WINDOW)

        (request,) = upstream.requests_to("/event")
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.url.params["fromDate"] == "2026-03-14T09:00:00Z"
        assert request.url.params["toDate"] == "2026-03-15T09:00:00Z"
        assert request.url.params["sort"] == "startDate"

    @pytest.mark.asyncio
    async def test_repeated_sync_is_idempotent(
        self, sync: UpstreamSync, store: EventStore, upstream: FakeUpstream
    ):
        upstream.events = [
            make_event_payload("e1", NOW + timedelta(hours=2), categories=["Social"]),
        ]

        first = await sync.sync(WINDOW)
        second = await sync.sync(WINDOW)

        assert first.inserted == 1
        assert second.inserted == 0
        assert second.filter_matched == 1
        assert len(await store.list_events()) == 1

    @pytest.mark.asyncio
    async def test_processed_event_is_not_reinserted(
        self, sync: UpstreamSync, store: EventStore, upstream: FakeUpstream
    ):
        upstream.events = [
            make_event_payload("e1", NOW + timedelta(hours=2), categories=["Social"]),
        ]
        await sync.sync(WINDOW)
        await store.mark_processed("e1")

        await sync.sync(WINDOW)

        assert await store.list_pending() == []

    @pytest.mark.asyncio
    async def test_category_objects_and_filtering(
        self, sync: UpstreamSync, store: EventStore, upstream: FakeUpstream
    ):
        upstream.events = [
            make_event_payload(
                "social", NOW + timedelta(hours=1), categories=[{"name": "Social"}]
            ),
            make_event_payload("sport", NOW + timedelta(hours=1), categories=["Sport"]),
            make_event_payload("none", NOW + timedelta(hours=1)),
        ]

        report = await sync.sync(WINDOW)

        assert report.fetched == 3
        assert report.category_matched == 1
        assert [e.id for e in await store.list_events()] == ["social"]

    @pytest.mark.asyncio
    async def test_keyword_filters_after_categories(
        self,
        client: UpstreamClient,
        store: EventStore,
        upstream: FakeUpstream,
        clock: FakeClock,
    ):
        filters = EventFilters(
            allowed_categories=["Social"], exclude_keywords=["cancelled"]
        )
        sync = UpstreamSync(client, store, filters, clock=clock)
        upstream.events = [
            make_event_payload(
                "keep", NOW + timedelta(hours=1), name="Quiz", categories=["Social"]
            ),
            make_event_payload(
                "drop",
                NOW + timedelta(hours=1),
                name="Quiz (Cancelled)",
                categories=["Social"],
            ),
        ]

        report = await sync.sync(WINDOW)

        assert (report.category_matched, report.filter_matched) == (2, 1)
        assert [e.id for e in await store.list_events()] == ["keep"]

    @pytest.mark.asyncio
    async def test_malformed_items_are_skipped(
        self, sync: UpstreamSync, store: EventStore, upstream: FakeUpstream
    ):
        upstream.events = [
            {"id": "no-date", "name": "Broken", "categories": ["Social"]},
            {"name": "No id", "startDate": "2026-03-14T10:00:00Z"},
            make_event_payload("ok", NOW + timedelta(hours=1), categories=["Social"]),
        ]

        report = await sync.sync(WINDOW)

        assert report.inserted == 1
        assert [e.id for e in await store.list_events()] == ["ok"]

    @pytest.mark.asyncio
    async def test_upstream_failure_writes_nothing(
        self, sync: UpstreamSync, store: EventStore, upstream: FakeUpstream
    ):
        upstream.events = [
            make_event_payload("e1", NOW + timedelta(hours=1), categories=["Social"]),
        ]
        upstream.failures["/event"] = [500]

        with pytest.raises(TransientUpstreamError):
            await sync.sync(WINDOW)

        assert await store.list_events() == []

    @pytest.mark.asyncio
    async def test_unauthorized_is_definitive(
        self, sync: UpstreamSync, upstream: FakeUpstream
    ):
        upstream.failures["/event"] = [401]

        with pytest.raises(DefinitiveUpstreamError, match="401"):
            await sync.sync(WINDOW)

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(
        self, store: EventStore, upstream: FakeUpstream, clock: FakeClock
    ):
        upstream.events = [
            make_event_payload("e1", NOW + timedelta(hours=1), categories=["Social"]),
        ]
        upstream.failures["/event"] = [503]
        async with UpstreamClient(
            "https://api.test",
            "test-key",
            fast_resilience(max_attempts=3),
            transport=httpx.MockTransport(upstream.handler),
        ) as client:
            sync = UpstreamSync(
                client, store, EventFilters(allowed_categories=["Social"]), clock=clock
            )
            report = await sync.sync(WINDOW)

        assert report.inserted == 1
        assert len(upstream.requests_to("/event")) == 2
