"""Upstream API access: client, filters, sync and attendee pagination."""

from rollcall.upstream.attendees import AttendeeFetcher
from rollcall.upstream.client import (
    DefinitiveUpstreamError,
    TransientUpstreamError,
    UpstreamClient,
    UpstreamError,
)
from rollcall.upstream.filters import EventFilters, matches_categories
from rollcall.upstream.sync import SyncReport, UpstreamSync

__all__ = [
    "AttendeeFetcher",
    "DefinitiveUpstreamError",
    "EventFilters",
    "SyncReport",
    "TransientUpstreamError",
    "UpstreamClient",
    "UpstreamError",
    "UpstreamSync",
    "matches_categories",
]
