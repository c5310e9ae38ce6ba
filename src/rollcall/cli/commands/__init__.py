"""CLI command modules."""

from rollcall.cli.commands import (
    breakers,
    config,
    dead_letters,
    events,
    fetch,
    process,
    service,
)

__all__ = [
    "breakers",
    "config",
    "dead_letters",
    "events",
    "fetch",
    "process",
    "service",
]
