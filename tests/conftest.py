"""Shared test fixtures and factories."""

import re
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import httpx
import pytest

from rollcall.config.paths import ENV_VAR, get_rollcall_home
from rollcall.db.engine import Database
from rollcall.dead_letter import DeadLetterLog
from rollcall.delivery import DocumentGenerator
from rollcall.events.store import EventStore
from rollcall.resilience import CircuitBreaker, Resilience, RetryConfig
from rollcall.upstream import AttendeeFetcher, UpstreamClient

NOW = datetime(2026, 3, 14, 9, 0, tzinfo=UTC)

_ENV_VARS = (
    "API_KEY",
    "SMTP_USER",
    "SMTP_PASS",
    "PRINTER_EMAIL",
    "WEBHOOK_URL",
    "ROLLCALL_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def rollcall_home(tmp_path: Path, monkeypatch) -> Path:
    """Point ROLLCALL_HOME at a temp dir and clear credential env vars."""
    home = tmp_path / "rollcall-home"
    monkeypatch.setenv(ENV_VAR, str(home))
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    get_rollcall_home.cache_clear()
    yield home
    get_rollcall_home.cache_clear()


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Settable wall clock for code that takes ``clock=`` callables."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Settable monotonic clock for circuit breakers."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Create a temporary test database."""
    db = Database(database_path=tmp_path / "test.db")
    await db.connect()
    await db.create_all()

    yield db

    await db.disconnect()


@pytest.fixture
def store(database: Database) -> EventStore:
    return EventStore(database)


# =============================================================================
# Fake upstream API
# =============================================================================


def make_event_payload(
    event_id: str,
    start: datetime,
    name: str | None = None,
    categories: list[Any] | None = None,
    has_fee: bool | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": event_id,
        "name": name or f"Event {event_id}",
        "startDate": start.isoformat().replace("+00:00", "Z"),
        "categories": categories if categories is not None else [],
    }
    if has_fee is not None:
        payload["hasFee"] = has_fee
    return payload


def make_attendees(count: int, prefix: str = "a") -> list[dict[str, Any]]:
    return [
        {
            "id": f"{prefix}{i}",
            "firstName": f"First{i:04d}",
            "lastName": f"Last{i:04d}",
            "email": f"{prefix}{i}@example.com",
        }
        for i in range(count)
    ]


@dataclass
class FakeUpstream:
    """In-memory stand-in for the event API, served via httpx.MockTransport.

    ``failures`` maps a path prefix to a queue of status codes returned before
    normal responses resume.
    """

    events: list[dict[str, Any]] = field(default_factory=list)
    details: dict[str, dict[str, Any]] = field(default_factory=dict)
    attendees: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    failures: dict[str, list[int]] = field(default_factory=dict)
    meta_total: Callable[[str], Any] | None = None
    include_count: bool = True
    requests: list[httpx.Request] = field(default_factory=list)

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        for prefix, statuses in self.failures.items():
            if path.startswith(prefix) and statuses:
                return httpx.Response(statuses.pop(0), json={"error": "boom"})

        if path == "/event":
            return httpx.Response(200, json={"events": self.events})

        if match := re.fullmatch(r"/event/(.+)", path):
            event_id = match.group(1)
            detail = self.details.get(event_id) or next(
                (e for e in self.events if e["id"] == event_id), None
            )
            if detail is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=detail)

        if path == "/eventAttendee":
            event_id = request.url.params["event"]
            limit = int(request.url.params["limit"])
            offset = int(request.url.params["offset"])
            records = self.attendees.get(event_id, [])
            page = records[offset : offset + limit]
            meta: dict[str, Any] = {
                "total": self.meta_total(event_id)
                if self.meta_total
                else len(records)
            }
            if self.include_count:
                meta["count"] = len(page)
            return httpx.Response(200, json={"attendees": page, "meta": meta})

        return httpx.Response(404, json={"error": "no route"})


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


def fast_resilience(
    max_attempts: int = 1, clock: Callable[[], float] | None = None
) -> Resilience:
    """Resilience with zero backoff so retries never sleep."""
    retry = RetryConfig(max_attempts=max_attempts, base_delay=0, jitter=0)
    breakers = {
        name: CircuitBreaker(name, failure_threshold=5, clock=clock)
        if clock
        else CircuitBreaker(name, failure_threshold=5)
        for name in ("api", "email", "printer", "webhook")
    }
    return Resilience(retry=retry, breakers=breakers)


@pytest.fixture
def resilience() -> Resilience:
    return fast_resilience()


@pytest.fixture
async def client(
    upstream: FakeUpstream, resilience: Resilience
) -> AsyncGenerator[UpstreamClient, None]:
    api = UpstreamClient(
        "https://api.test",
        "test-key",
        resilience,
        transport=httpx.MockTransport(upstream.handler),
    )
    yield api
    await api.aclose()


@pytest.fixture
def fetcher(client: UpstreamClient) -> AttendeeFetcher:
    return AttendeeFetcher(client, page_size=100, max_attendees=10000, page_delay=0)


@pytest.fixture
def dead_letters(tmp_path: Path) -> DeadLetterLog:
    return DeadLetterLog(tmp_path / "dead-letter.json", max_entries=100)


@pytest.fixture
def documents(tmp_path: Path) -> DocumentGenerator:
    return DocumentGenerator(tmp_path / "output")


class RecordingDelivery:
    """Delivery double that records documents or fails on demand."""

    breaker = "printer"

    def __init__(self, fail_with: Exception | None = None):
        self.fail_with = fail_with
        self.delivered: list[tuple[Path, str]] = []

    async def deliver(self, path: Path, subject: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.delivered.append((path, subject))


@pytest.fixture
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


# =============================================================================
# CLI
# =============================================================================


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1", "COLUMNS": "200"})


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A complete config file that passes service validation."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(f"""
database_path = "{tmp_path / "events.db"}"

[api]
base_url = "https://api.test"
api_key = "test-key-123456"

[delivery]
mode = "email"
output_dir = "{tmp_path / "output"}"

[email]
recipient = "printer@example.com"

[filters]
allowed_categories = ["Social"]

[dead_letter]
path = "{tmp_path / "dead-letter.json"}"
""")
    return config_path
