"""Settings models and configuration loading for the FleetWatch application."""

from functools import cached_property, lru_cache
from typing import Annotated, Any, Self

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from fleetwatch.lib.config.enums import NotificationBackend


def _parse_bool(v: Any) -> bool:
    """Parse boolean from string '1'/'0' or actual bool."""
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        return v == "1"
    return bool(v)


_BoolFromStr = Annotated[bool, BeforeValidator(_parse_bool)]


def _validate_email_or_empty(v: str) -> str:
    """Validate email format, allowing empty string."""
    if not v:
        return v
    from pydantic import validate_email

    validate_email(v)
    return v


def _validate_http_url_or_empty(v: str) -> str:
    """Validate HTTP URL format, allowing empty string."""
    if not v:
        return v
    HttpUrl(v)
    return v


_EmailOrEmpty = Annotated[str, AfterValidator(_validate_email_or_empty)]
_HttpUrlOrEmpty = Annotated[str, AfterValidator(_validate_http_url_or_empty)]


class GmailSettings(BaseModel):
    """Gmail notification settings."""

    model_config = ConfigDict(frozen=True)

    sender: str = ""
    recipients: str = ""  # Comma-separated list
    username: _EmailOrEmpty = ""
    password: SecretStr = SecretStr("")
    subject: str = "FleetWatch alarm"


class SlackSettings(BaseModel):
    """Slack notification settings."""

    model_config = ConfigDict(frozen=True)

    webhook_url: _HttpUrlOrEmpty = ""


class NotificationSettings(BaseModel):
    """Notification service settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    backends: list[NotificationBackend] = []
    gmail: GmailSettings = GmailSettings()
    slack: SlackSettings = SlackSettings()
    max_retries: int = 3
    initial_backoff_sec: int = 2
    timeout_sec: int = 30


class StoreSettings(BaseModel):
    """Remote store (Redis) connection settings."""

    model_config = ConfigDict(frozen=True)

    redis_url: str = "redis://localhost:6379/0"
    prefix: str = "fleet"
    reconnect_initial_sec: float = 1.0
    reconnect_max_sec: float = 30.0


class MonitorSettings(BaseModel):
    """Fleet monitor service settings."""

    model_config = ConfigDict(frozen=True)

    # Re-evaluates staleness even when no unit reports
    refresh_interval_sec: float = 10.0


class MockSettings(BaseModel):
    """Simulated fleet settings for development without a store."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    unit_count: int = 4
    frequency_sec: float = 2.0


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Store
    redis_url: str = "redis://localhost:6379/0"
    store_prefix: str = Field(default="fleet", min_length=1)
    store_reconnect_initial_sec: float = Field(default=1.0, gt=0)
    store_reconnect_max_sec: float = Field(default=30.0, gt=0)

    # Monitor
    refresh_interval_sec: float = Field(default=10.0, gt=0)

    # Mock fleet
    mock_units: _BoolFromStr = False
    mock_unit_count: int = Field(default=4, ge=1, le=100)
    mock_frequency_sec: float = Field(default=2.0, gt=0)

    # Notifications
    enable_notification_service: _BoolFromStr = False
    notification_backends: str = "slack"
    gmail_sender: str = ""
    gmail_recipients: str = ""  # Comma-separated list
    gmail_username: _EmailOrEmpty = ""
    gmail_password: SecretStr = SecretStr("")
    slack_webhook_url: _HttpUrlOrEmpty = ""
    notification_max_retries: int = Field(default=3, ge=0)
    notification_initial_backoff_sec: int = Field(default=2, ge=0)
    notification_timeout_sec: int = Field(default=30, ge=1)

    @cached_property
    def store(self) -> StoreSettings:
        """Get store settings as nested object."""
        return StoreSettings(
            redis_url=self.redis_url,
            prefix=self.store_prefix,
            reconnect_initial_sec=self.store_reconnect_initial_sec,
            reconnect_max_sec=self.store_reconnect_max_sec,
        )

    @cached_property
    def monitor(self) -> MonitorSettings:
        """Get monitor settings."""
        return MonitorSettings(refresh_interval_sec=self.refresh_interval_sec)

    @cached_property
    def mock(self) -> MockSettings:
        """Get mock fleet settings."""
        return MockSettings(
            enabled=self.mock_units,
            unit_count=self.mock_unit_count,
            frequency_sec=self.mock_frequency_sec,
        )

    @cached_property
    def notifications(self) -> NotificationSettings:
        """Get notification settings as nested object."""
        backends = [
            NotificationBackend(b.strip())
            for b in self.notification_backends.split(",")
            if b.strip() in set(NotificationBackend)
        ]
        return NotificationSettings(
            enabled=self.enable_notification_service,
            backends=backends,
            gmail=GmailSettings(
                sender=self.gmail_sender,
                recipients=self.gmail_recipients,
                username=self.gmail_username,
                password=self.gmail_password,
            ),
            slack=SlackSettings(webhook_url=self.slack_webhook_url),
            max_retries=self.notification_max_retries,
            initial_backoff_sec=self.notification_initial_backoff_sec,
            timeout_sec=self.notification_timeout_sec,
        )

    @model_validator(mode="after")
    def validate_settings(self) -> Self:
        """Validate cross-field configuration constraints."""
        errors: list[str] = []

        if self.store_reconnect_initial_sec > self.store_reconnect_max_sec:
            errors.append(
                f"STORE_RECONNECT_INITIAL_SEC ({self.store_reconnect_initial_sec}) "
                f"must not exceed STORE_RECONNECT_MAX_SEC "
                f"({self.store_reconnect_max_sec})"
            )

        if self.enable_notification_service:
            backends = [
                b.strip()
                for b in self.notification_backends.split(",")
                if b.strip()
            ]

            unknown = [b for b in backends if b not in set(NotificationBackend)]
            if unknown:
                errors.append(
                    f"Unknown notification backends: {', '.join(unknown)}"
                )

            if NotificationBackend.GMAIL in backends:
                missing = []
                if not self.gmail_sender:
                    missing.append("GMAIL_SENDER")
                if not self.gmail_recipients:
                    missing.append("GMAIL_RECIPIENTS")
                if not self.gmail_username:
                    missing.append("GMAIL_USERNAME")
                if not self.gmail_password.get_secret_value():
                    missing.append("GMAIL_PASSWORD")
                if missing:
                    errors.append(
                        f"Gmail enabled but missing: {', '.join(missing)}"
                    )

            if NotificationBackend.SLACK in backends:
                if not self.slack_webhook_url:
                    errors.append(
                        "Slack enabled but SLACK_WEBHOOK_URL is not set"
                    )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n  - "
                + "\n  - ".join(errors)
            )

        return self


# Settings override for testing - allows injecting custom Settings without
# modifying environment variables or clearing the lru_cache.
_settings_override: Settings | None = None


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    """Load settings from environment (cached)."""
    return Settings()


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns the test override if set, otherwise loads from environment
    variables (cached after first load). For testing, use set_settings()
    from fleetwatch.lib.config.testing to override.
    """
    if _settings_override is not None:
        return _settings_override
    return _load_settings()
