"""Tests for the scheduling service cycle."""

import asyncio
from datetime import timedelta

import pytest

from rollcall.dead_letter import DeadLetterLog
from rollcall.delivery import DocumentGenerator
from rollcall.events import EventStore
from rollcall.resilience import Resilience
from rollcall.scheduling import EventProcessor, Scheduler, SchedulingService
from rollcall.upstream import AttendeeFetcher, EventFilters, UpstreamClient, UpstreamSync

from tests.conftest import (
    NOW,
    FakeClock,
    FakeUpstream,
    RecordingDelivery,
    make_attendees,
    make_event_payload,
)

LEAD = timedelta(minutes=5)


@pytest.fixture
async def service(
    store: EventStore,
    client: UpstreamClient,
    fetcher: AttendeeFetcher,
    documents: DocumentGenerator,
    resilience: Resilience,
    dead_letters: DeadLetterLog,
    delivery: RecordingDelivery,
    clock: FakeClock,
):
    scheduler = Scheduler(store, lead=LEAD, clock=clock)
    processor = EventProcessor(
        store=store,
        client=client,
        fetcher=fetcher,
        documents=documents,
        resilience=resilience,
        dead_letters=dead_letters,
        delivery=delivery,
        scheduler=scheduler,
        lead=LEAD,
        clock=clock,
    )
    scheduler.on_fire(processor.process)
    sync = UpstreamSync(
        client, store, EventFilters(allowed_categories=["Social"]), clock=clock
    )
    service = SchedulingService(
        sync, store, scheduler, processor, interval=3600, clock=clock
    )
    yield service
    await service.stop()
    await scheduler.shutdown()


def _social(event_id: str, delta: timedelta) -> dict:
    return make_event_payload(event_id, NOW + delta, categories=["Social"])


class TestRunCycle:
    """Tests for SchedulingService.run_cycle."""

    @pytest.mark.asyncio
    async def test_sync_reconcile_and_process(
        self,
        service: SchedulingService,
        store: EventStore,
        upstream: FakeUpstream,
        delivery: RecordingDelivery,
    ):
        upstream.events = [
            _social("imminent", timedelta(minutes=3)),
            _social("hour", timedelta(hours=1)),
            _social("evening", timedelta(hours=23)),
            _social("tomorrow", timedelta(hours=25)),
        ]
        upstream.attendees["imminent"] = make_attendees(4)

        report = await service.run_cycle()

        assert report.sync.inserted == 3
        assert report.reconcile.armed == 2
        assert report.reconcile.past_due == 1
        assert [r.event_id for r in report.processed] == ["imminent"]
        assert len(delivery.delivered) == 1
        assert sorted(service.scheduler.armed_ids()) == ["evening", "hour"]
        assert [e.id for e in await store.list_pending()] == ["hour", "evening"]

    @pytest.mark.asyncio
    async def test_second_cycle_is_idempotent(
        self, service: SchedulingService, upstream: FakeUpstream
    ):
        upstream.events = [
            _social("imminent", timedelta(minutes=3)),
            _social("hour", timedelta(hours=1)),
        ]
        await service.run_cycle()

        report = await service.run_cycle()

        assert report.sync.inserted == 0
        assert report.reconcile.armed == 0
        assert report.reconcile.already_armed == 1
        assert report.processed == []
        assert len(upstream.requests_to("/event/imminent")) == 1

    @pytest.mark.asyncio
    async def test_sync_failure_still_processes_stored_events(
        self,
        service: SchedulingService,
        store: EventStore,
        upstream: FakeUpstream,
    ):
        await store.insert_if_absent("e1", "Stored", NOW + timedelta(minutes=2))
        upstream.events = [_social("e1", timedelta(minutes=2))]
        upstream.failures["/event"] = [500]

        report = await service.run_cycle()

        assert report.sync is None
        assert "500" in report.sync_error
        assert [r.event_id for r in report.processed] == ["e1"]
        assert await store.list_pending() == []


class TestLifecycle:
    """Tests for start/stop."""

    @pytest.mark.asyncio
    async def test_start_runs_a_cycle_and_stop_cancels_timers(
        self, service: SchedulingService, upstream: FakeUpstream
    ):
        upstream.events = [_social("hour", timedelta(hours=1))]

        await service.start()
        assert service.is_running
        await asyncio.sleep(0)
        await service.stop()

        assert not service.is_running
        assert len(upstream.requests_to("/event")) == 1
        assert service.scheduler.pending_count == 0

    @pytest.mark.asyncio
    async def test_wait_returns_after_stop(self, service: SchedulingService):
        await service.start()
        waiter = asyncio.create_task(service.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        await service.stop()

        await asyncio.wait_for(waiter, timeout=5)

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, service: SchedulingService):
        await service.start()
        await service.start()
        await service.stop()

        assert not service.is_running
