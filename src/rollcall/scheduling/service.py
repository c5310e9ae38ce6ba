"""Scheduling service: periodic sync -> reconcile -> immediate processing.

Cycles are strictly sequential; the loop awaits each cycle before sleeping.
Stopping the service lets the current cycle finish, then shuts the
scheduler down (armed timers cancelled, running callbacks awaited).
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from rollcall.events.store import EventStore
from rollcall.health import HealthReporter
from rollcall.scheduling.processor import EventProcessor, ProcessResult
from rollcall.scheduling.scheduler import ReconcileReport, Scheduler
from rollcall.upstream.sync import SyncReport, UpstreamSync

logger = logging.getLogger(__name__)

# Heartbeat every N cycles (~1 day at the default hourly interval)
HEARTBEAT_CYCLES = 24


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class CycleReport:
    sync: SyncReport | None = None
    sync_error: str | None = None
    reconcile: ReconcileReport = field(default_factory=ReconcileReport)
    processed: list[ProcessResult] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "inserted": self.sync.inserted if self.sync else 0,
            "sync_error": self.sync_error,
            "armed": self.reconcile.armed,
            "past_due": self.reconcile.past_due,
            "processed": len(self.processed),
            "failed": sum(1 for r in self.processed if not r.ok),
        }


class SchedulingService:
    """Runs scheduling cycles on an interval until stopped.

    Example:
        service = SchedulingService(sync, store, scheduler, processor)
        await service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        sync: UpstreamSync,
        store: EventStore,
        scheduler: Scheduler,
        processor: EventProcessor,
        window: timedelta = timedelta(hours=24),
        interval: float = 3600.0,
        clock: Callable[[], datetime] = utc_now,
        health: HealthReporter | None = None,
    ):
        self._sync = sync
        self._health = health
        self._store = store
        self._scheduler = scheduler
        self._processor = processor
        self._window = window
        self._interval = interval
        self._clock = clock
        self._running = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._cycle_count = 0

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_cycle(self) -> CycleReport:
        """One sync -> reconcile -> process pass.

        A failed sync is logged and the cycle continues with what is stored.
        Storage errors propagate.
        """
        report = CycleReport()
        try:
            report.sync = await self._sync.sync(self._window)
        except Exception as e:
            report.sync_error = str(e) or type(e).__name__
            logger.error(
                "sync_failed",
                extra={"error.type": type(e).__name__, "error.message": str(e)},
            )

        pending = await self._store.list_pending()
        report.reconcile = self._scheduler.reconcile(pending)
        report.processed = await self._processor.process_due(self._clock())
        return report

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        logger.info(
            "scheduling_service_started",
            extra={
                "interval_s": self._interval,
                "window_hours": self._window.total_seconds() / 3600,
            },
        )
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        await self._scheduler.shutdown()
        logger.info("scheduling_service_stopped")

    async def wait(self) -> None:
        """Block until stop() is called."""
        await self._stop_event.wait()

    async def _loop(self) -> None:
        while self._running:
            self._cycle_count += 1
            if self._cycle_count % HEARTBEAT_CYCLES == 0:
                logger.info(
                    "scheduling_service_heartbeat",
                    extra={
                        "cycle.count": self._cycle_count,
                        "count.armed": self._scheduler.pending_count,
                    },
                )
            last_cycle: dict[str, Any]
            try:
                report = await self.run_cycle()
                logger.info(
                    "cycle_completed",
                    extra={
                        "cycle.count": self._cycle_count,
                        "count.inserted": report.sync.inserted if report.sync else 0,
                        "count.armed": report.reconcile.armed,
                        "count.processed": len(report.processed),
                    },
                )
                last_cycle = report.summary()
            except Exception as e:
                logger.error(
                    "cycle_failed",
                    extra={"error.type": type(e).__name__, "error.message": str(e)},
                )
                last_cycle = {"error": str(e) or type(e).__name__}
            if self._health is not None:
                last_cycle["number"] = self._cycle_count
                last_cycle["finished_at"] = self._clock().isoformat()
                await self._health.write(last_cycle)
            try:
                await asyncio.wait_for(self._stop_event.wait(), self._interval)
            except TimeoutError:
                pass
