"""Configuration module."""

from rollcall.config.loader import get_default_config, load_config
from rollcall.config.models import (
    ApiConfig,
    BreakerSettings,
    CacheConfig,
    ConfigError,
    DeadLetterConfig,
    DeliveryConfig,
    EmailConfig,
    FiltersConfig,
    HealthConfig,
    RetrySettings,
    RollcallConfig,
    SchedulerConfig,
    WebhookConfig,
)
from rollcall.config.paths import (
    get_config_path,
    get_database_path,
    get_dead_letter_path,
    get_rollcall_home,
)

__all__ = [
    "ApiConfig",
    "BreakerSettings",
    "CacheConfig",
    "ConfigError",
    "DeadLetterConfig",
    "DeliveryConfig",
    "EmailConfig",
    "FiltersConfig",
    "HealthConfig",
    "RetrySettings",
    "RollcallConfig",
    "SchedulerConfig",
    "WebhookConfig",
    "get_config_path",
    "get_database_path",
    "get_dead_letter_path",
    "get_default_config",
    "get_rollcall_home",
    "load_config",
]
