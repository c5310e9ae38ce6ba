"""Centralized path management for rollcall.

All state (config, database, logs, dead-letter log) is stored under a single
base directory. The base directory can be overridden with the ROLLCALL_HOME
environment variable.

Default locations:
- Linux/macOS: ~/.rollcall
- Windows: %USERPROFILE%\\.rollcall
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "ROLLCALL_HOME"


@lru_cache(maxsize=1)
def get_rollcall_home() -> Path:
    """Get the base directory for all rollcall data.

    Resolution order:
    1. ROLLCALL_HOME environment variable (if set)
    2. Platform default (~/.rollcall)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".rollcall"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_rollcall_home() / "config.toml"


def get_database_path() -> Path:
    """Get the event database path."""
    return get_rollcall_home() / "events.db"


def get_logs_path() -> Path:
    """Get the JSONL logs directory."""
    return get_rollcall_home() / "logs"


def get_dead_letter_path() -> Path:
    """Get the dead-letter log path."""
    return get_rollcall_home() / "dead-letter.json"


def get_output_dir() -> Path:
    """Get the directory generated attendee documents are written to."""
    return get_rollcall_home() / "output"


def get_health_path() -> Path:
    """Get the service health snapshot path."""
    return get_rollcall_home() / "service-health.json"
