"""Attendee sign-in sheets as CSV."""

import csv
import logging
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from rollcall.events.types import Attendee, Event

logger = logging.getLogger(__name__)

COLUMNS: dict[str, str] = {
    "last_name": "Last name",
    "first_name": "First name",
    "email": "Email",
    "signature": "Signature",
}
DEFAULT_COLUMNS = ("last_name", "first_name", "signature")

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class DocumentGenerator:
    """Renders one CSV per event into ``output_dir``.

    Files are named ``<stem>-<event id><suffix>`` from ``output_filename`` so
    overlapping events never share a file.

    Recognised layout keys:
        columns: attendee columns, any of ``COLUMNS`` (default last/first/signature)
        include_header: write the event name and start as a preamble (default true)
    """

    def __init__(self, output_dir: Path, output_filename: str = "attendees.csv"):
        self._output_dir = output_dir
        self._output_filename = output_filename

    def path_for(self, event_id: str) -> Path:
        name = Path(self._output_filename)
        safe_id = _UNSAFE.sub("_", event_id)
        return self._output_dir / f"{name.stem}-{safe_id}{name.suffix or '.csv'}"

    def generate(
        self,
        event: Event,
        attendees: Sequence[Attendee],
        layout: Mapping[str, Any] | None = None,
    ) -> Path:
        layout = layout or {}
        columns = [c for c in layout.get("columns", DEFAULT_COLUMNS) if c in COLUMNS]
        if not columns:
            raise ValueError(f"layout.columns must name at least one of {list(COLUMNS)}")

        path = self.path_for(event.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            if layout.get("include_header", True):
                writer.writerow([event.name])
                writer.writerow([event.start_date.strftime("%Y-%m-%d %H:%M %Z")])
                writer.writerow([f"{len(attendees)} attendees"])
                writer.writerow([])
            writer.writerow([COLUMNS[c] for c in columns])
            for attendee in attendees:
                writer.writerow([_cell(attendee, c) for c in columns])

        logger.info(
            "document_generated",
            extra={"event.id": event.id, "path": str(path), "count": len(attendees)},
        )
        return path


def _cell(attendee: Attendee, column: str) -> str:
    if column == "signature":
        return ""
    value = getattr(attendee, column)
    return value or ""
