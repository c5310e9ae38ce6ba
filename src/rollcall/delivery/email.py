"""E-mail-to-printer delivery over SMTP."""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import TYPE_CHECKING

from rollcall.delivery.base import DeliveryError, TransientDeliveryError

if TYPE_CHECKING:
    from rollcall.config.models import EmailConfig

logger = logging.getLogger(__name__)


@dataclass
class EmailDelivery:
    smtp_host: str
    smtp_port: int
    recipient: str
    username: str | None = None
    password: str | None = None
    sender: str | None = None
    use_tls: bool = True
    timeout: float = 20.0

    breaker = "email"

    @classmethod
    def from_config(cls, config: "EmailConfig") -> "EmailDelivery":
        if not config.recipient:
            raise ValueError("email.recipient is required for e-mail delivery")
        return cls(
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            recipient=config.recipient,
            username=config.username,
            password=config.password.get_secret_value() if config.password else None,
            sender=config.sender,
            use_tls=config.use_tls,
        )

    def build_message(self, path: Path, subject: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender or self.username or self.recipient
        msg["To"] = self.recipient
        msg.set_content(f"Attendee list attached: {path.name}")
        msg.add_attachment(
            path.read_bytes(),
            maintype="text",
            subtype="csv" if path.suffix == ".csv" else "plain",
            filename=path.name,
        )
        return msg

    def _send(self, msg: EmailMessage) -> None:
        try:
            with smtplib.SMTP(
                self.smtp_host, self.smtp_port, timeout=self.timeout
            ) as client:
                if self.use_tls:
                    client.starttls()
                if self.username:
                    client.login(self.username, self.password or "")
                client.send_message(msg)
        except (
            smtplib.SMTPConnectError,
            smtplib.SMTPServerDisconnected,
            ConnectionError,
            TimeoutError,
        ) as e:
            raise TransientDeliveryError(f"SMTP connection failed: {e}") from e
        except smtplib.SMTPException as e:
            raise DeliveryError(f"SMTP delivery failed: {e}") from e

    async def deliver(self, path: Path, subject: str) -> None:
        msg = self.build_message(path, subject)
        await asyncio.to_thread(self._send, msg)
        logger.info(
            "email_sent",
            extra={"path": str(path), "email.recipient": self.recipient},
        )
