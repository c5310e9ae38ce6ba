"""Durable event store.

Every method opens its own session and commits before returning, so each
call is atomic on its own. Datetimes are stored as naive UTC and come back
timezone-aware.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from rollcall.db.engine import Database
from rollcall.db.models import EventRecord, utc_now
from rollcall.events.types import Event, EventStatus, UpstreamEvent

logger = logging.getLogger(__name__)


def _to_db(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _to_event(record: EventRecord) -> Event:
    return Event(
        id=record.id,
        name=record.name,
        start_date=_from_db(record.start_date),
        status=EventStatus(record.status),
    )


class EventStore:
    """Events table with a pending -> processed lifecycle."""

    def __init__(self, database: Database):
        self._db = database

    @staticmethod
    def _insert_stmt(event_id: str, name: str, start_date: datetime):
        return (
            sqlite_insert(EventRecord)
            .values(
                id=event_id,
                name=name,
                start_date=_to_db(start_date),
                status=EventStatus.PENDING.value,
                created_at=_to_db(utc_now()),
            )
            .on_conflict_do_nothing(index_elements=["id"])
        )

    async def insert_if_absent(
        self, event_id: str, name: str, start_date: datetime
    ) -> bool:
        """Insert a pending event unless the id already exists.

        Existing rows are never overwritten, whatever their status.

        Returns:
            True if a row was inserted.
        """
        async with self._db.session() as session:
            result = await session.execute(
                self._insert_stmt(event_id, name, start_date)
            )
            inserted = result.rowcount == 1
        if not inserted:
            logger.debug("event_already_stored", extra={"event.id": event_id})
        return inserted

    async def insert_many(self, candidates: Iterable[UpstreamEvent]) -> int:
        """Insert candidates in a single transaction.

        A failure on any row rolls back the whole batch.

        Returns:
            Number of rows actually inserted.
        """
        inserted = 0
        async with self._db.session() as session:
            for candidate in candidates:
                result = await session.execute(
                    self._insert_stmt(
                        candidate.id, candidate.name, candidate.start_date
                    )
                )
                inserted += result.rowcount or 0
        return inserted

    async def list_pending(self, before: datetime | None = None) -> list[Event]:
        """Pending events ordered by start date.

        Args:
            before: Only include events starting at or before this instant.
        """
        stmt = select(EventRecord).where(
            EventRecord.status == EventStatus.PENDING.value
        )
        if before is not None:
            stmt = stmt.where(EventRecord.start_date <= _to_db(before))
        stmt = stmt.order_by(EventRecord.start_date, EventRecord.id)

        async with self._db.session() as session:
            result = await session.execute(stmt)
            return [_to_event(record) for record in result.scalars()]

    async def mark_processed(self, event_id: str) -> bool:
        """Move an event to processed.

        Safe to call repeatedly and for unknown ids; only pending rows change.

        Returns:
            True if this call changed the row.
        """
        stmt = (
            update(EventRecord)
            .where(
                EventRecord.id == event_id,
                EventRecord.status == EventStatus.PENDING.value,
            )
            .values(
                status=EventStatus.PROCESSED.value,
                processed_at=_to_db(utc_now()),
            )
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            changed = result.rowcount == 1

        if changed:
            logger.info("event_marked_processed", extra={"event.id": event_id})
        else:
            logger.debug("event_mark_processed_noop", extra={"event.id": event_id})
        return changed

    async def get_event(self, event_id: str) -> Event | None:
        async with self._db.session() as session:
            record = await session.get(EventRecord, event_id)
            return _to_event(record) if record is not None else None

    async def list_events(
        self, status: EventStatus | None = None, limit: int | None = None
    ) -> list[Event]:
        stmt = select(EventRecord)
        if status is not None:
            stmt = stmt.where(EventRecord.status == EventStatus(status).value)
        stmt = stmt.order_by(EventRecord.start_date, EventRecord.id)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._db.session() as session:
            result = await session.execute(stmt)
            return [_to_event(record) for record in result.scalars()]

    async def count_by_status(self) -> dict[str, int]:
        """Row counts keyed by status; both statuses are always present."""
        counts = {status.value: 0 for status in EventStatus}
        stmt = select(EventRecord.status, func.count()).group_by(EventRecord.status)
        async with self._db.session() as session:
            result = await session.execute(stmt)
            for status, count in result.all():
                counts[status] = count
        return counts
