"""Operator notifications via webhook POST."""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from rollcall.resilience import Resilience, TransientError

logger = logging.getLogger(__name__)

EVENT_PROCESSED = "event.processed"
EVENT_FAILED = "event.failed"


class WebhookNotifier:
    """Best-effort JSON notifications; failures are logged, never raised."""

    def __init__(
        self,
        url: str,
        resilience: Resilience,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self._resilience = resilience
        self._client = httpx.AsyncClient(
            headers={"User-Agent": "rollcall"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, payload: dict[str, Any]) -> None:
        response = await self._client.post(self.url, json=payload)
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(
                f"Webhook returned {response.status_code}",
                status_code=response.status_code,
            )
        response.raise_for_status()

    async def notify(self, kind: str, data: dict[str, Any]) -> bool:
        """POST ``{event, timestamp, data}``.

        Returns:
            True if the webhook accepted the notification.
        """
        payload = {
            "event": kind,
            "timestamp": datetime.now(UTC).isoformat(),
            "data": data,
        }
        try:
            await self._resilience.call(
                "webhook", lambda: self._post(payload), operation="webhook_notify"
            )
        except Exception as e:
            logger.warning(
                "webhook_failed",
                extra={
                    "webhook.kind": kind,
                    "error.type": type(e).__name__,
                    "error.message": str(e),
                },
            )
            return False
        logger.info("webhook_sent", extra={"webhook.kind": kind})
        return True
