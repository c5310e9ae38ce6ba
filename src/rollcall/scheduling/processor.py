"""Pre-event processing: attendees -> document -> delivery.

Whatever happens while processing an event, it ends up processed: the
store update sits in a ``finally`` block. Failures leave a dead-letter
entry and a best-effort webhook notification instead of a retry loop.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from rollcall.dead_letter import DeadLetterLog
from rollcall.delivery import (
    EVENT_FAILED,
    EVENT_PROCESSED,
    Delivery,
    DocumentGenerator,
    WebhookNotifier,
)
from rollcall.events.store import EventStore
from rollcall.events.types import Event, parse_timestamp
from rollcall.resilience import Resilience
from rollcall.scheduling.scheduler import Scheduler
from rollcall.upstream.attendees import AttendeeFetcher
from rollcall.upstream.client import UpstreamClient

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ProcessResult:
    event_id: str
    attendee_count: int = 0
    delivered: bool = False
    error: str | None = None
    expired: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def _with_detail(event: Event, detail: Mapping[str, Any]) -> Event:
    name = detail.get("name")
    start_date = parse_timestamp(detail.get("startDate"))
    return Event(
        id=event.id,
        name=name if isinstance(name, str) and name else event.name,
        start_date=start_date or event.start_date,
        status=event.status,
    )


class EventProcessor:
    def __init__(
        self,
        store: EventStore,
        client: UpstreamClient,
        fetcher: AttendeeFetcher,
        documents: DocumentGenerator,
        resilience: Resilience,
        dead_letters: DeadLetterLog,
        delivery: Delivery | None = None,
        notifier: WebhookNotifier | None = None,
        scheduler: Scheduler | None = None,
        lead: timedelta = timedelta(minutes=5),
        late_grace: timedelta = timedelta(minutes=60),
        layout: Mapping[str, Any] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._client = client
        self._fetcher = fetcher
        self._documents = documents
        self._resilience = resilience
        self._dead_letters = dead_letters
        self._delivery = delivery
        self._notifier = notifier
        self._scheduler = scheduler
        self._lead = lead
        self._late_grace = late_grace
        self._layout = dict(layout or {})
        self._clock = clock

    async def process(self, event: Event) -> ProcessResult:
        """Fetch attendees, render and deliver the document, mark processed.

        Never raises for processing failures; only a failing store update in
        the final step propagates.
        """
        logger.info(
            "event_processing_started",
            extra={"event.id": event.id, "event.name": event.name},
        )
        attendee_count = 0
        try:
            detail = await self._client.get_event(event.id)
            event = _with_detail(event, detail)
            attendees = await self._fetcher.fetch_all(event.id)
            attendee_count = len(attendees)

            delivered = False
            if not attendees:
                logger.info("event_has_no_attendees", extra={"event.id": event.id})
            else:
                path = await asyncio.to_thread(
                    self._documents.generate, event, attendees, self._layout
                )
                if self._delivery is not None:
                    delivery = self._delivery
                    subject = (
                        f"Attendees: {event.name} "
                        f"({event.start_date:%Y-%m-%d %H:%M} UTC)"
                    )
                    await self._resilience.call(
                        delivery.breaker,
                        lambda: delivery.deliver(path, subject),
                        operation=f"deliver_{delivery.breaker}",
                    )
                    delivered = True

            logger.info(
                "event_processed",
                extra={
                    "event.id": event.id,
                    "count": attendee_count,
                    "delivered": delivered,
                },
            )
            await self._notify(
                EVENT_PROCESSED,
                {
                    "eventId": event.id,
                    "eventName": event.name,
                    "eventDate": event.start_date.isoformat(),
                    "attendeeCount": attendee_count,
                    "status": "success",
                },
            )
            return ProcessResult(
                event_id=event.id, attendee_count=attendee_count, delivered=delivered
            )
        except Exception as e:
            logger.error(
                "event_processing_failed",
                extra={
                    "event.id": event.id,
                    "error.type": type(e).__name__,
                    "error.message": str(e),
                },
            )
            await self._dead_letter("process", event, str(e) or type(e).__name__)
            await self._notify(
                EVENT_FAILED,
                {
                    "eventId": event.id,
                    "eventName": event.name,
                    "eventDate": event.start_date.isoformat(),
                    "error": str(e),
                    "status": "failed",
                },
            )
            return ProcessResult(
                event_id=event.id,
                attendee_count=attendee_count,
                error=str(e) or type(e).__name__,
            )
        finally:
            await self._store.mark_processed(event.id)

    async def process_due(self, now: datetime | None = None) -> list[ProcessResult]:
        """Process every pending event whose trigger time has passed.

        Events with an armed timer or a running callback are left to the
        scheduler. Events that started longer ago than the late grace window
        are expired instead of delivered.
        """
        now = now or self._clock()
        due = await self._store.list_pending(before=now + self._lead)

        results: list[ProcessResult] = []
        for listed in due:
            # Timers may have fired during earlier awaits; trust only the
            # current row.
            event = await self._claimable(listed.id)
            if event is None:
                continue
            if now - event.start_date > self._late_grace:
                results.append(await self._expire(event, now))
                continue
            results.append(await self.process(event))
        return results

    async def _claimable(self, event_id: str) -> Event | None:
        """The stored event if it is still pending and no timer owns it."""
        if self._scheduler is not None and self._scheduler.is_busy(event_id):
            logger.debug("event_due_skipped_armed", extra={"event.id": event_id})
            return None
        event = await self._store.get_event(event_id)
        if event is None or not event.is_pending:
            logger.debug("event_due_skipped_processed", extra={"event.id": event_id})
            return None
        # The read above yields to the loop, so check ownership again.
        if self._scheduler is not None and self._scheduler.is_busy(event_id):
            logger.debug("event_due_skipped_armed", extra={"event.id": event_id})
            return None
        return event

    async def _expire(self, event: Event, now: datetime) -> ProcessResult:
        minutes_late = int((now - event.start_date).total_seconds() // 60)
        message = (
            f"Event started {minutes_late} minutes ago, beyond the "
            f"{int(self._late_grace.total_seconds() // 60)} minute grace period"
        )
        logger.warning(
            "event_expired",
            extra={"event.id": event.id, "minutes_late": minutes_late},
        )
        try:
            await self._dead_letter("expired", event, message, attempts=0)
        finally:
            await self._store.mark_processed(event.id)
        return ProcessResult(event_id=event.id, error=message, expired=True)

    async def _dead_letter(
        self, kind: str, event: Event, message: str, attempts: int = 1
    ) -> None:
        try:
            await asyncio.to_thread(
                self._dead_letters.append,
                kind,
                {"event": event.to_dict()},
                message,
                attempts=attempts,
            )
        except Exception:
            logger.exception("dead_letter_append_failed", extra={"event.id": event.id})

    async def _notify(self, kind: str, data: dict[str, Any]) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(kind, data)
        except Exception:
            logger.exception("webhook_notify_error", extra={"webhook.kind": kind})
