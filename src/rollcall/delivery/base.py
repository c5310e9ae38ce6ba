"""Delivery protocols and errors."""

from pathlib import Path
from typing import Protocol

from rollcall.resilience import TransientError


class DeliveryError(Exception):
    """A document could not be delivered."""


class TransientDeliveryError(DeliveryError, TransientError):
    """Delivery failed for a reason that may clear up (connection, timeout)."""


class Delivery(Protocol):
    """Puts a generated document on paper (or in a printer's inbox)."""

    breaker: str

    async def deliver(self, path: Path, subject: str) -> None: ...
