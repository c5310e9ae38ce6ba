"""Tests for the bounded dead-letter log."""

import json
from pathlib import Path

import pytest

from rollcall.dead_letter import DeadLetterEntry, DeadLetterLog


def _event_payload(event_id: str) -> dict:
    return {"event": {"id": event_id, "name": f"Event {event_id}"}}


class TestAppend:
    """Tests for DeadLetterLog.append."""

    def test_append_persists_entry(self, dead_letters: DeadLetterLog):
        entry = dead_letters.append("process", _event_payload("e1"), "boom")

        assert entry.id.startswith("dlq-")
        assert entry.attempts == 1
        raw = json.loads(dead_letters.path.read_text())
        assert raw[0]["id"] == entry.id
        assert raw[0]["payload"]["event"]["id"] == "e1"
        assert raw[0]["error_message"] == "boom"

    def test_creates_parent_directory(self, tmp_path: Path):
        log = DeadLetterLog(tmp_path / "nested" / "dir" / "dlq.json")

        log.append("process", {}, "boom")

        assert log.path.exists()

    def test_evicts_oldest_beyond_max(self, tmp_path: Path):
        log = DeadLetterLog(tmp_path / "dlq.json", max_entries=3)

        for i in range(5):
            log.append("process", _event_payload(f"e{i}"), f"error {i}")

        entries = log.entries()
        assert len(entries) == 3
        assert [e.payload["event"]["id"] for e in entries] == ["e2", "e3", "e4"]

    def test_unique_ids(self, dead_letters: DeadLetterLog):
        ids = {dead_letters.append("process", {}, "x").id for _ in range(20)}
        assert len(ids) == 20

    def test_invalid_max_entries(self, tmp_path: Path):
        with pytest.raises(ValueError):
            DeadLetterLog(tmp_path / "dlq.json", max_entries=0)


class TestEntries:
    """Tests for reading entries back."""

    def test_empty_when_missing(self, dead_letters: DeadLetterLog):
        assert dead_letters.entries() == []

    def test_filter_by_type(self, dead_letters: DeadLetterLog):
        dead_letters.append("process", _event_payload("e1"), "boom")
        dead_letters.append("expired", _event_payload("e2"), "too late", attempts=0)

        expired = dead_letters.entries(type="expired")

        assert [e.payload["event"]["id"] for e in expired] == ["e2"]
        assert expired[0].attempts == 0

    def test_limit_keeps_most_recent(self, dead_letters: DeadLetterLog):
        for i in range(5):
            dead_letters.append("process", _event_payload(f"e{i}"), "boom")

        recent = dead_letters.entries(limit=2)

        assert [e.payload["event"]["id"] for e in recent] == ["e3", "e4"]

    def test_corrupt_file_reads_empty(self, dead_letters: DeadLetterLog):
        dead_letters.path.write_text("{not json")

        assert dead_letters.entries() == []

    def test_append_preserves_corrupt_file(self, dead_letters: DeadLetterLog):
        damaged = '[{"id": "old-1", "type": "process", "timestamp": "t"}, TRUNCATED'
        dead_letters.path.write_text(damaged)

        entry = dead_letters.append("process", {}, "new failure")

        assert [e.id for e in dead_letters.entries()] == [entry.id]
        (moved,) = dead_letters.path.parent.glob("dead-letter.json.corrupt-*")
        assert moved.read_text() == damaged

    def test_append_preserves_non_array_file(self, dead_letters: DeadLetterLog):
        dead_letters.path.write_text('{"id": "old-1"}')

        dead_letters.append("process", {}, "new failure")

        (moved,) = dead_letters.path.parent.glob("dead-letter.json.corrupt-*")
        assert "old-1" in moved.read_text()
        assert len(dead_letters.entries()) == 1

    def test_skips_malformed_records(self, dead_letters: DeadLetterLog):
        dead_letters.path.write_text(
            json.dumps(
                [
                    {"id": "dlq-1", "type": "process", "timestamp": "t"},
                    {"type": "missing id"},
                    "not a record",
                ]
            )
        )

        assert [e.id for e in dead_letters.entries()] == ["dlq-1"]


class TestStats:
    def test_stats(self, dead_letters: DeadLetterLog):
        assert dead_letters.stats() == {
            "total": 0,
            "by_type": {},
            "oldest": None,
            "newest": None,
        }

        first = dead_letters.append("process", {}, "a")
        dead_letters.append("process", {}, "b")
        last = dead_letters.append("expired", {}, "c", attempts=0)

        stats = dead_letters.stats()
        assert stats["total"] == 3
        assert stats["by_type"] == {"process": 2, "expired": 1}
        assert stats["oldest"] == first.timestamp
        assert stats["newest"] == last.timestamp


def test_entry_from_dict_defaults():
    entry = DeadLetterEntry.from_dict({"id": "x", "type": "process", "timestamp": "t"})

    assert entry is not None
    assert entry.payload == {}
    assert entry.error_message == ""
    assert entry.attempts == 0
