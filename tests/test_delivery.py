"""Tests for document generation and delivery adapters."""

import csv
import json
import smtplib
from datetime import timedelta
from pathlib import Path

import httpx
import pytest

from rollcall.config.models import EmailConfig
from rollcall.delivery import (
    DeliveryError,
    DocumentGenerator,
    EmailDelivery,
    LocalPrinter,
    TransientDeliveryError,
    WebhookNotifier,
)
from rollcall.events import Attendee, Event
from rollcall.resilience import Resilience

from tests.conftest import NOW


def _event(event_id: str = "e1") -> Event:
    return Event(id=event_id, name="Quiz night", start_date=NOW + timedelta(minutes=5))


def _attendees() -> list[Attendee]:
    return [
        Attendee(id="1", first_name="Ada", last_name="Lovelace", email="ada@x.org"),
        Attendee(id="2", first_name="Alan", last_name="Turing"),
    ]


def _rows(path: Path) -> list[list[str]]:
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestDocumentGenerator:
    """Tests for DocumentGenerator."""

    def test_default_layout(self, documents: DocumentGenerator):
        path = documents.generate(_event(), _attendees())

        assert path.name == "attendees-e1.csv"
        assert _rows(path) == [
            ["Quiz night"],
            ["2026-03-14 09:05 UTC"],
            ["2 attendees"],
            [],
            ["Last name", "First name", "Signature"],
            ["Lovelace", "Ada", ""],
            ["Turing", "Alan", ""],
        ]

    def test_custom_columns_without_header(self, documents: DocumentGenerator):
        layout = {"columns": ["first_name", "email", "bogus"], "include_header": False}

        path = documents.generate(_event(), _attendees(), layout)

        assert _rows(path) == [
            ["First name", "Email"],
            ["Ada", "ada@x.org"],
            ["Alan", ""],
        ]

    def test_no_valid_columns(self, documents: DocumentGenerator):
        with pytest.raises(ValueError, match="columns"):
            documents.generate(_event(), _attendees(), {"columns": ["bogus"]})

    def test_unsafe_ids_are_sanitised(self, tmp_path: Path):
        generator = DocumentGenerator(tmp_path, output_filename="sheet.csv")

        path = generator.path_for("../../etc/passwd")

        assert path.parent == tmp_path
        assert path.name.startswith("sheet-")
        assert "/" not in path.name


class TestLocalPrinter:
    """Tests for LocalPrinter via a stand-in command."""

    @pytest.mark.asyncio
    async def test_success(self, tmp_path: Path):
        doc = tmp_path / "doc.csv"
        doc.write_text("x")

        await LocalPrinter(command="true").deliver(doc, "subject")

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tmp_path: Path):
        doc = tmp_path / "doc.csv"
        doc.write_text("x")

        with pytest.raises(DeliveryError, match="exit 1"):
            await LocalPrinter(command="false").deliver(doc, "subject")

    @pytest.mark.asyncio
    async def test_missing_command(self, tmp_path: Path):
        with pytest.raises(DeliveryError, match="not found"):
            await LocalPrinter(command="rollcall-no-such-lp").deliver(
                tmp_path / "doc.csv", "subject"
            )

    def test_printer_name_argument(self):
        printer = LocalPrinter(printer_name="Office")

        assert printer._args(Path("/tmp/doc.csv")) == [
            "lp",
            "-d",
            "Office",
            "/tmp/doc.csv",
        ]


class FakeSMTP:
    """Stand-in for smtplib.SMTP that records the session."""

    instances: list["FakeSMTP"] = []
    fail_on: str | None = None
    error: Exception | None = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls: list[str] = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def _maybe_fail(self, step: str) -> None:
        self.calls.append(step)
        if FakeSMTP.fail_on == step and FakeSMTP.error is not None:
            raise FakeSMTP.error

    def starttls(self):
        self._maybe_fail("starttls")

    def login(self, username, password):
        self._maybe_fail("login")

    def send_message(self, msg):
        self._maybe_fail("send")
        self.sent.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_on = None
    FakeSMTP.error = None
    monkeypatch.setattr("rollcall.delivery.email.smtplib.SMTP", FakeSMTP)
    return FakeSMTP


class TestEmailDelivery:
    """Tests for EmailDelivery."""

    @pytest.fixture
    def email(self) -> EmailDelivery:
        return EmailDelivery(
            smtp_host="smtp.test",
            smtp_port=587,
            recipient="printer@example.com",
            username="bot@example.com",
            password="secret",
        )

    @pytest.fixture
    def doc(self, tmp_path: Path) -> Path:
        path = tmp_path / "attendees-e1.csv"
        path.write_text("Last name,First name\n")
        return path

    @pytest.mark.asyncio
    async def test_sends_attachment(self, email, doc, fake_smtp):
        await email.deliver(doc, "Attendees: Quiz")

        (session,) = fake_smtp.instances
        assert session.calls == ["starttls", "login", "send"]
        (msg,) = session.sent
        assert msg["To"] == "printer@example.com"
        assert msg["From"] == "bot@example.com"
        assert msg["Subject"] == "Attendees: Quiz"
        (attachment,) = list(msg.iter_attachments())
        assert attachment.get_filename() == "attendees-e1.csv"

    @pytest.mark.asyncio
    async def test_disconnect_is_transient(self, email, doc, fake_smtp):
        fake_smtp.fail_on = "send"
        fake_smtp.error = smtplib.SMTPServerDisconnected("gone")

        with pytest.raises(TransientDeliveryError):
            await email.deliver(doc, "subject")

    @pytest.mark.asyncio
    async def test_auth_failure_is_permanent(self, email, doc, fake_smtp):
        fake_smtp.fail_on = "login"
        fake_smtp.error = smtplib.SMTPAuthenticationError(535, b"bad credentials")

        with pytest.raises(DeliveryError) as exc_info:
            await email.deliver(doc, "subject")
        assert not isinstance(exc_info.value, TransientDeliveryError)

    @pytest.mark.asyncio
    async def test_no_tls_no_login(self, doc, fake_smtp):
        email = EmailDelivery(
            smtp_host="localhost",
            smtp_port=25,
            recipient="printer@example.com",
            use_tls=False,
        )

        await email.deliver(doc, "subject")

        assert fake_smtp.instances[0].calls == ["send"]

    def test_from_config_requires_recipient(self):
        with pytest.raises(ValueError, match="recipient"):
            EmailDelivery.from_config(EmailConfig())

    def test_from_config_unwraps_password(self):
        config = EmailConfig(recipient="p@example.com", password="hunter22")

        email = EmailDelivery.from_config(config)

        assert email.password == "hunter22"
        assert email.breaker == "email"


class TestWebhookNotifier:
    """Tests for WebhookNotifier."""

    @pytest.mark.asyncio
    async def test_posts_payload(self, resilience: Resilience):
        posts: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            posts.append(json.loads(request.content))
            return httpx.Response(204)

        notifier = WebhookNotifier(
            "https://hooks.test/x", resilience, transport=httpx.MockTransport(handler)
        )
        try:
            ok = await notifier.notify("event.processed", {"eventId": "e1"})
        finally:
            await notifier.aclose()

        assert ok is True
        (post,) = posts
        assert post["event"] == "event.processed"
        assert post["data"] == {"eventId": "e1"}
        assert post["timestamp"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500])
    async def test_failure_returns_false(self, resilience: Resilience, status: int):
        notifier = WebhookNotifier(
            "https://hooks.test/x",
            resilience,
            transport=httpx.MockTransport(lambda request: httpx.Response(status)),
        )
        try:
            ok = await notifier.notify("event.failed", {})
        finally:
            await notifier.aclose()

        assert ok is False
        assert resilience.breaker("webhook").stats()["failed_calls"] == 1
