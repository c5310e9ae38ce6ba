"""HTTP client for the upstream event API.

Every request goes through the ``api`` circuit breaker with retry, and
errors are mapped onto the transient/permanent taxonomy the retry policy
understands.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from rollcall.resilience import PermanentError, Resilience, TransientError
from rollcall.upstream.cache import StaleCache

if TYPE_CHECKING:
    from rollcall.config.models import RollcallConfig

logger = logging.getLogger(__name__)

API_BREAKER = "api"


class UpstreamError(Exception):
    """Base error for upstream API failures."""

    status_code: int | None = None


class TransientUpstreamError(UpstreamError, TransientError):
    """Timeout, connection failure, rate limit or server error."""


class DefinitiveUpstreamError(UpstreamError, PermanentError):
    """Client error or unusable response; retrying will not help."""


def _isoformat(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class UpstreamClient:
    """Bearer-authenticated client for ``/event`` and ``/eventAttendee``."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        resilience: Resilience,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        detail_cache: StaleCache[Mapping[str, Any]] | None = None,
    ):
        self._resilience = resilience
        self._detail_cache = detail_cache
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: "RollcallConfig",
        resilience: Resilience,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "UpstreamClient":
        api_key = config.api.api_key.get_secret_value() if config.api.api_key else ""
        detail_cache = None
        if config.cache.enabled:
            detail_cache = StaleCache(
                "event_detail",
                ttl=config.cache.detail_ttl,
                stale_ttl=config.cache.detail_stale_ttl,
            )
        return cls(
            base_url=config.api.base_url,
            api_key=api_key,
            resilience=resilience,
            timeout=config.api.timeout,
            transport=transport,
            detail_cache=detail_cache,
        )

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, path: str, params: Mapping[str, Any] | None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise TransientUpstreamError(f"Timeout requesting {path}") from e
        except httpx.TransportError as e:
            raise TransientUpstreamError(
                f"Network error requesting {path}: {e}"
            ) from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientUpstreamError(
                f"API error {status} requesting {path}", status_code=status
            )
        if status == 401:
            raise DefinitiveUpstreamError(
                f"API error 401 Unauthorized requesting {path}; check api_key",
                status_code=status,
            )
        if status >= 400:
            raise DefinitiveUpstreamError(
                f"API error {status} requesting {path}", status_code=status
            )

        try:
            return response.json()
        except ValueError:
            logger.warning(
                "upstream_malformed_payload",
                extra={"http.path": path, "http.status": status},
            )
            return None

    async def _get(
        self, path: str, params: Mapping[str, Any] | None, operation: str
    ) -> Any:
        return await self._resilience.call(
            API_BREAKER,
            lambda: self._request(path, params),
            operation=operation,
        )

    async def list_events(
        self, from_date: datetime, to_date: datetime
    ) -> list[Any]:
        """Raw event items starting within [from_date, to_date].

        Accepts ``{"events": [...]}`` or a bare list; anything else is empty.
        """
        payload = await self._get(
            "/event",
            {
                "fromDate": _isoformat(from_date),
                "toDate": _isoformat(to_date),
                "sort": "startDate",
            },
            operation="list_events",
        )
        if isinstance(payload, Mapping):
            payload = payload.get("events")
        if not isinstance(payload, list):
            if payload is not None:
                logger.warning(
                    "upstream_events_not_a_list",
                    extra={"payload.type": type(payload).__name__},
                )
            return []
        return payload

    async def get_event(self, event_id: str) -> Mapping[str, Any]:
        """Full detail for one event, served from the detail cache when set.

        Raises:
            DefinitiveUpstreamError: If the event is unknown or the payload
                is not an object.
        """
        if self._detail_cache is None:
            return await self._fetch_event(event_id)
        return await self._detail_cache.fetch(
            event_id, lambda: self._fetch_event(event_id)
        )

    async def _fetch_event(self, event_id: str) -> Mapping[str, Any]:
        payload = await self._get(
            f"/event/{event_id}", None, operation="get_event"
        )
        if not isinstance(payload, Mapping):
            raise DefinitiveUpstreamError(
                f"Malformed detail payload for event {event_id}"
            )
        return payload

    async def list_attendees(self, event_id: str, limit: int, offset: int) -> Any:
        """One raw page of ``/eventAttendee``; shape is checked by the caller."""
        return await self._get(
            "/eventAttendee",
            {"event": event_id, "limit": limit, "offset": offset},
            operation="list_attendees",
        )
