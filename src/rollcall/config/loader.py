"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from rollcall.config.models import RollcallConfig
from rollcall.config.paths import get_config_path


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.rollcall/config.toml (or ROLLCALL_HOME)
        Path("/etc/rollcall/config.toml"),  # System-wide
    ]


def _set_from_env(
    section: dict[str, Any], key: str, env_var: str, *, secret: bool = False
) -> None:
    """Set a value from environment if not already set."""
    if section.get(key) is None:
        value = os.environ.get(env_var)
        if value:
            section[key] = SecretStr(value) if secret else value


def _resolve_env_secrets(config: dict[str, Any]) -> dict[str, Any]:
    """Resolve credentials from environment variables where not set in config."""
    mappings = [
        ("api", "api_key", "API_KEY", True),
        ("email", "username", "SMTP_USER", False),
        ("email", "password", "SMTP_PASS", True),
        ("email", "recipient", "PRINTER_EMAIL", False),
        ("webhook", "url", "WEBHOOK_URL", False),
    ]
    for parent_key, key, env_var, secret in mappings:
        section = config.setdefault(parent_key, {})
        if section is None:
            section = config[parent_key] = {}
        _set_from_env(section, key, env_var, secret=secret)

    return config


def load_config(path: Path | None = None) -> RollcallConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated RollcallConfig instance.

    Raises:
        FileNotFoundError: If no config file is found.
        ValueError: If config file is invalid.
    """
    config_path: Path | None = None

    default_paths = _get_default_config_paths()

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in default_paths:
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    if config_path is None:
        raise FileNotFoundError(
            f"No config file found. Searched: {', '.join(str(p) for p in default_paths)}"
        )

    with config_path.open("rb") as f:
        raw_config = tomllib.load(f)

    raw_config = _resolve_env_secrets(raw_config)

    return RollcallConfig.model_validate(raw_config)


def get_default_config() -> RollcallConfig:
    """Get a default configuration for development/testing."""
    return RollcallConfig.model_validate(_resolve_env_secrets({}))
