"""Bounded dead-letter log of failed processing attempts.

Entries live in a single JSON array on disk. Appends hold an exclusive
``fcntl`` lock and replace the file atomically; once ``max_entries`` is
exceeded the oldest entries are evicted first. A file that no longer parses
is moved aside to ``<name>.corrupt-<timestamp>`` before the next append.
"""

import fcntl
import json
import logging
import uuid
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Any

from rollcall.persistence import write_json_atomic

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


@dataclass(frozen=True)
class DeadLetterEntry:
    id: str
    type: str
    timestamp: str
    payload: dict[str, Any] = field(default_factory=dict)
    error_message: str = ""
    attempts: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeadLetterEntry | None":
        try:
            return cls(
                id=str(data["id"]),
                type=str(data["type"]),
                timestamp=str(data["timestamp"]),
                payload=dict(data.get("payload") or {}),
                error_message=str(data.get("error_message") or ""),
                attempts=int(data.get("attempts") or 0),
            )
        except (KeyError, TypeError, ValueError):
            return None


class DeadLetterLog:
    """Append-only, size-bounded record of failures for operators."""

    def __init__(self, path: Path, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._path = path
        self._lock_file = path.with_name(f".{path.name}.lock")
        self.max_entries = max_entries

    @property
    def path(self) -> Path:
        return self._path

    def append(
        self,
        type: str,
        payload: dict[str, Any],
        error_message: str,
        attempts: int = 1,
    ) -> DeadLetterEntry:
        entry = DeadLetterEntry(
            id=f"dlq-{uuid.uuid4().hex[:12]}",
            type=type,
            timestamp=datetime.now(UTC).isoformat(),
            payload=payload,
            error_message=error_message,
            attempts=attempts,
        )

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock_file.open("a+") as lockf:
            with self._file_lock(lockf):
                records = self._load_for_append()
                records.append(asdict(entry))
                evicted = max(0, len(records) - self.max_entries)
                if evicted:
                    records = records[evicted:]
                    logger.warning(
                        "dead_letter_evicted",
                        extra={"count": evicted, "max_entries": self.max_entries},
                    )
                self._write_raw(records)

        logger.warning(
            "dead_letter_added",
            extra={
                "dead_letter.id": entry.id,
                "dead_letter.type": type,
                "error.message": error_message,
                "attempts": attempts,
            },
        )
        return entry

    def entries(
        self, type: str | None = None, limit: int | None = None
    ) -> list[DeadLetterEntry]:
        """Entries oldest-first; ``limit`` keeps the most recent ones."""
        result = []
        for raw in self._read_raw():
            entry = DeadLetterEntry.from_dict(raw) if isinstance(raw, dict) else None
            if entry is None:
                continue
            if type is not None and entry.type != type:
                continue
            result.append(entry)
        if limit is not None:
            result = result[-limit:] if limit > 0 else []
        return result

    def stats(self) -> dict[str, Any]:
        entries = self.entries()
        return {
            "total": len(entries),
            "by_type": dict(Counter(e.type for e in entries)),
            "oldest": entries[0].timestamp if entries else None,
            "newest": entries[-1].timestamp if entries else None,
        }

    @contextmanager
    def _file_lock(self, file: IO) -> Iterator[None]:
        try:
            fcntl.flock(file.fileno(), fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(file.fileno(), fcntl.LOCK_UN)

    def _read_raw(self) -> list[Any]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(
                "dead_letter_read_failed",
                extra={"path": str(self._path), "error.message": str(e)},
            )
            return []
        return data if isinstance(data, list) else []

    def _load_for_append(self) -> list[Any]:
        """Existing records; an unreadable file is moved aside, never overwritten."""
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._quarantine(str(e))
            return []
        if not isinstance(data, list):
            self._quarantine(f"expected a JSON array, got {type(data).__name__}")
            return []
        return data

    def _quarantine(self, reason: str) -> Path:
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
        target = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        self._path.replace(target)
        logger.error(
            "dead_letter_file_quarantined",
            extra={
                "path": str(self._path),
                "quarantine.path": str(target),
                "error.message": reason,
            },
        )
        return target

    def _write_raw(self, records: list[Any]) -> None:
        write_json_atomic(self._path, records)
