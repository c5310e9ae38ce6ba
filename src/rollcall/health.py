"""Service health snapshot for out-of-process monitoring.

The running service rewrites one JSON file after every cycle with breaker
state and statistics, event counts, armed timers and the last cycle's
outcome. CLI commands read it instead of talking to the process.
"""

import asyncio
import logging
import os
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rollcall.persistence import read_json, write_json_atomic

if TYPE_CHECKING:
    from rollcall.events.store import EventStore
    from rollcall.resilience import Resilience
    from rollcall.scheduling.scheduler import Scheduler

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"


def utc_now() -> datetime:
    return datetime.now(UTC)


class HealthReporter:
    """Builds and writes the health snapshot."""

    def __init__(
        self,
        path: Path,
        store: "EventStore",
        resilience: "Resilience",
        scheduler: "Scheduler",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.path = path
        self._store = store
        self._resilience = resilience
        self._scheduler = scheduler
        self._clock = clock

    async def snapshot(self, last_cycle: Mapping[str, Any] | None = None) -> dict:
        breakers = self._resilience.stats()
        degraded = any(b["state"] != "closed" for b in breakers.values())
        if last_cycle and (last_cycle.get("error") or last_cycle.get("sync_error")):
            degraded = True
        return {
            "status": STATUS_DEGRADED if degraded else STATUS_OK,
            "updated_at": self._clock().isoformat(),
            "pid": os.getpid(),
            "events": await self._store.count_by_status(),
            "armed_timers": self._scheduler.pending_count,
            "breakers": breakers,
            "last_cycle": dict(last_cycle) if last_cycle else None,
        }

    async def write(self, last_cycle: Mapping[str, Any] | None = None) -> dict:
        """Write a fresh snapshot; failures are logged, never raised."""
        try:
            data = await self.snapshot(last_cycle)
            await asyncio.to_thread(write_json_atomic, self.path, data)
        except Exception:
            logger.exception("health_write_failed", extra={"path": str(self.path)})
            return {}
        logger.debug(
            "health_written", extra={"path": str(self.path), "status": data["status"]}
        )
        return data


def read_health(path: Path) -> dict | None:
    """Last snapshot written by the service, if any."""
    data = read_json(path)
    return data if isinstance(data, dict) else None
