"""Configuration models using Pydantic."""

import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, model_validator

from rollcall.config.paths import (
    get_database_path,
    get_dead_letter_path,
    get_health_path,
    get_output_dir,
)

logger = logging.getLogger(__name__)

DEPENDENCIES = ("api", "email", "printer", "webhook")


class ConfigError(Exception):
    """Configuration error."""

    pass


class ApiConfig(BaseModel):
    """Upstream API connection settings."""

    base_url: str = "https://api.helloclub.com"
    api_key: SecretStr | None = None
    timeout: float = 30.0
    page_size: int = Field(default=100, gt=0)
    # Pause between attendee pages to stay under the upstream rate limit
    page_delay: float = Field(default=1.0, ge=0)
    max_attendees: int = Field(default=10000, gt=0)


class CacheConfig(BaseModel):
    """Upstream response caching; stale entries stand in during outages."""

    enabled: bool = True
    detail_ttl: float = Field(default=300, ge=0)
    detail_stale_ttl: float = Field(default=3600, ge=0)
    attendee_ttl: float = Field(default=120, ge=0)
    attendee_stale_ttl: float = Field(default=1800, ge=0)

    @model_validator(mode="after")
    def _check_stale_windows(self) -> "CacheConfig":
        if self.detail_stale_ttl < self.detail_ttl:
            raise ValueError("detail_stale_ttl must be at least detail_ttl")
        if self.attendee_stale_ttl < self.attendee_ttl:
            raise ValueError("attendee_stale_ttl must be at least attendee_ttl")
        return self


class SchedulerConfig(BaseModel):
    """Fetch window and trigger timing."""

    fetch_window_hours: float = Field(default=24, gt=0)
    lead_minutes: float = Field(default=5, ge=0)
    run_interval_hours: float = Field(default=1.0, gt=0)
    # Events whose start is further in the past than this are expired, not printed
    late_grace_minutes: float = Field(default=60, ge=0)


class FiltersConfig(BaseModel):
    """Which upstream events are worth storing."""

    allowed_categories: list[str] = []
    include_keywords: list[str] = []
    exclude_keywords: list[str] = []
    only_paid: bool = False
    only_free: bool = False

    @model_validator(mode="after")
    def _check_fee_flags(self) -> "FiltersConfig":
        if self.only_paid and self.only_free:
            raise ValueError("only_paid and only_free cannot both be set")
        return self


class DeliveryConfig(BaseModel):
    """How generated attendee documents reach paper."""

    mode: Literal["local", "email", "none"] = "email"
    output_dir: Path = Field(default_factory=get_output_dir)
    output_filename: str = "attendees.csv"
    printer_name: str | None = None
    # Passed through untouched to the document generator
    layout: dict[str, Any] = {}


class EmailConfig(BaseModel):
    """SMTP transport for e-mail-to-printer delivery."""

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    username: str | None = None
    password: SecretStr | None = None
    sender: str | None = None
    recipient: str | None = None
    use_tls: bool = True


class WebhookConfig(BaseModel):
    """Operator notification webhook."""

    url: str | None = None
    enabled: bool = False


class DeadLetterConfig(BaseModel):
    """Bounded record of failed processing attempts."""

    path: Path = Field(default_factory=get_dead_letter_path)
    max_entries: int = Field(default=1000, gt=0)


class HealthConfig(BaseModel):
    """Snapshot the running service writes after every cycle."""

    path: Path = Field(default_factory=get_health_path)
    enabled: bool = True


class RetrySettings(BaseModel):
    """Retry-with-backoff settings shared by every external call."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=2.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    exponential_base: float = Field(default=2.0, ge=1)
    jitter: float = Field(default=0.1, ge=0)


class BreakerSettings(BaseModel):
    """Circuit breaker thresholds for one dependency."""

    failure_threshold: int = Field(default=5, ge=1)
    success_threshold: int = Field(default=2, ge=1)
    timeout: float = Field(default=30.0, gt=0)
    reset_timeout: float = Field(default=60.0, ge=0)


def _default_breakers() -> dict[str, BreakerSettings]:
    return {
        "api": BreakerSettings(
            failure_threshold=5, success_threshold=2, timeout=30, reset_timeout=60
        ),
        "email": BreakerSettings(
            failure_threshold=3, success_threshold=2, timeout=15, reset_timeout=30
        ),
        "printer": BreakerSettings(
            failure_threshold=3, success_threshold=2, timeout=20, reset_timeout=30
        ),
        "webhook": BreakerSettings(
            failure_threshold=5, success_threshold=2, timeout=10, reset_timeout=30
        ),
    }


class RollcallConfig(BaseModel):
    """Root configuration model."""

    database_path: Path = Field(default_factory=get_database_path)
    api: ApiConfig = Field(default_factory=ApiConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    filters: FiltersConfig = Field(default_factory=FiltersConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    dead_letter: DeadLetterConfig = Field(default_factory=DeadLetterConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    breakers: dict[str, BreakerSettings] = Field(default_factory=_default_breakers)

    @model_validator(mode="after")
    def _fill_missing_breakers(self) -> "RollcallConfig":
        """Partial [breakers] tables keep the defaults for unnamed dependencies."""
        defaults = _default_breakers()
        for name in DEPENDENCIES:
            self.breakers.setdefault(name, defaults[name])
        return self

    def validate_for_service(self) -> None:
        """Check settings that only matter once the service talks to the world.

        Raises:
            ConfigError: If a required setting is missing.
        """
        if self.api.api_key is None:
            raise ConfigError("api.api_key is not set (or API_KEY env var)")
        if self.delivery.mode == "email":
            if not self.email.recipient:
                raise ConfigError(
                    "email.recipient is required when delivery.mode = 'email'"
                )
            if not self.email.username:
                logger.warning("smtp_username_missing")
        if self.webhook.enabled and not self.webhook.url:
            raise ConfigError("webhook.url is required when webhook.enabled = true")
