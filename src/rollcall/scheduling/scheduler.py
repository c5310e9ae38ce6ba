"""In-memory timers for pending events.

The scheduler owns a map of event id -> timer handle. Reconciliation is
synchronous: an id is reserved in the map (value ``None``) before its delay
is computed, so no two reconciliations can both arm it. Events whose trigger
time has already passed are released and left pending for the immediate
processing path.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from rollcall.events.store import EventStore
from rollcall.events.types import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[object]]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ReconcileReport:
    armed: int = 0
    already_armed: int = 0
    past_due: int = 0


class Scheduler:
    """Arms one timer per pending event at ``start_date - lead``.

    Example:
        scheduler = Scheduler(store, lead=timedelta(minutes=5))
        scheduler.on_fire(processor.process)
        scheduler.reconcile(await store.list_pending())
        ...
        await scheduler.shutdown()
    """

    def __init__(
        self,
        store: EventStore,
        lead: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._lead = lead
        self._clock = clock
        self._handler: EventHandler | None = None
        self._jobs: dict[str, asyncio.TimerHandle | None] = {}
        self._running: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def lead(self) -> timedelta:
        return self._lead

    @property
    def pending_count(self) -> int:
        """Number of armed (not yet fired) timers."""
        return len(self._jobs)

    def on_fire(self, handler: EventHandler) -> EventHandler:
        """Register the callback run when a timer fires. Usable as a decorator."""
        self._handler = handler
        return handler

    def armed_ids(self) -> list[str]:
        return list(self._jobs)

    def is_armed(self, event_id: str) -> bool:
        return event_id in self._jobs

    def is_busy(self, event_id: str) -> bool:
        """True if a timer is armed or its callback is still running."""
        return event_id in self._jobs or event_id in self._running

    def reconcile(self, events: Iterable[Event]) -> ReconcileReport:
        """Arm timers for events not yet tracked.

        Must be called from within the running event loop.
        """
        if self._closed:
            raise RuntimeError("Scheduler is shut down")

        loop = asyncio.get_running_loop()
        armed = already_armed = past_due = 0

        for event in events:
            if event.id in self._jobs or event.id in self._running:
                already_armed += 1
                continue

            self._jobs[event.id] = None

            trigger_at = event.start_date - self._lead
            delay = (trigger_at - self._clock()).total_seconds()
            if delay <= 0:
                del self._jobs[event.id]
                past_due += 1
                logger.debug(
                    "event_past_trigger",
                    extra={"event.id": event.id, "delay_s": round(delay, 1)},
                )
                continue

            self._jobs[event.id] = loop.call_later(delay, self._fire, event.id)
            armed += 1
            logger.info(
                "event_timer_armed",
                extra={
                    "event.id": event.id,
                    "event.name": event.name,
                    "trigger_at": trigger_at.isoformat(),
                    "delay_s": round(delay, 1),
                },
            )

        if armed or past_due:
            logger.info(
                "scheduler_reconciled",
                extra={
                    "count.armed": armed,
                    "count.already_armed": already_armed,
                    "count.past_due": past_due,
                },
            )
        return ReconcileReport(
            armed=armed, already_armed=already_armed, past_due=past_due
        )

    def _fire(self, event_id: str) -> None:
        self._jobs.pop(event_id, None)
        if self._closed:
            return
        self._running.add(event_id)
        task = asyncio.create_task(self._run(event_id), name=f"rollcall-{event_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, event_id: str) -> None:
        logger.info("event_timer_fired", extra={"event.id": event_id})
        try:
            event = await self._store.get_event(event_id)
            if event is None or not event.is_pending:
                logger.info(
                    "event_timer_skipped",
                    extra={"event.id": event_id, "reason": "not_pending"},
                )
                return
            if self._handler is None:
                logger.warning("event_timer_no_handler", extra={"event.id": event_id})
                return
            await self._handler(event)
        except Exception:
            logger.exception("event_timer_callback_error", extra={"event.id": event_id})
        finally:
            self._running.discard(event_id)

    async def shutdown(self) -> None:
        """Cancel every armed timer and wait for running callbacks to finish."""
        self._closed = True
        cancelled = 0
        for handle in self._jobs.values():
            if handle is not None:
                handle.cancel()
                cancelled += 1
        self._jobs.clear()

        in_flight = list(self._tasks)
        logger.info(
            "scheduler_shutdown",
            extra={"count.cancelled": cancelled, "count.in_flight": len(in_flight)},
        )
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)
