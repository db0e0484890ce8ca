"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Grafana Alert Mailer, loading and validating environment variables
once at startup. The resulting Settings object is frozen and handed
explicitly to every component that needs it.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SNAPSHOT_MODE_LINK = "link"
SNAPSHOT_MODE_RENDER = "render"

DEFAULT_SMTP_PORT = 587
DEFAULT_HTTP_PORT = 8080
DEFAULT_TIMEOUT_SECONDS = 10.0


class GrafanaSettings(BaseSettings):
    """Grafana snapshot service settings."""

    model_config = SettingsConfigDict(
        env_prefix="GRAFANA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    url: str = Field(
        alias="GRAFANA_URL",
        description="Base URL of the Grafana instance",
    )
    api_key: SecretStr = Field(
        alias="GRAFANA_API_KEY",
        description="Grafana service account token used as a bearer credential",
    )
    dashboard_uid: str = Field(
        alias="DASHBOARD_UID",
        description="UID of the dashboard captured for every alert",
    )
    panel_id: int | None = Field(
        default=None,
        alias="PANEL_ID",
        description="Panel rendered in render mode",
    )
    snapshot_mode: Literal["link", "render"] = Field(
        default=SNAPSHOT_MODE_LINK,
        alias="SNAPSHOT_MODE",
        description="How the dashboard is captured: snapshot link or rendered image",
    )
    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        alias="GRAFANA_TIMEOUT_SECONDS",
        description="Timeout applied to every Grafana request",
        gt=0,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Grafana URL format and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("GRAFANA_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")

    @field_validator("dashboard_uid")
    @classmethod
    def validate_dashboard_uid(cls, v: str) -> str:
        """Reject blank dashboard UIDs."""
        if not v.strip():
            raise ValueError("DASHBOARD_UID must not be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_render_panel(self) -> GrafanaSettings:
        """Render mode needs a panel to render."""
        if self.snapshot_mode == SNAPSHOT_MODE_RENDER and self.panel_id is None:
            raise ValueError("PANEL_ID is required when SNAPSHOT_MODE=render")
        return self


class SmtpSettings(BaseSettings):
    """Outbound mail relay settings."""

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    server: str = Field(
        alias="SMTP_SERVER",
        description="Hostname of the SMTP relay",
    )
    port: int = Field(
        default=DEFAULT_SMTP_PORT,
        alias="SMTP_PORT",
        description="SMTP relay port",
        ge=1,
        le=65535,
    )
    sender_email: str = Field(
        alias="SENDER_EMAIL",
        description="Sender address, also used as the SMTP username",
    )
    sender_password: SecretStr = Field(
        alias="SENDER_PASSWORD",
        description="SMTP password for the sender account",
    )
    recipient_email: str = Field(
        alias="RECIPIENT_EMAIL",
        description="Single recipient of every notification",
    )
    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        alias="SMTP_TIMEOUT_SECONDS",
        description="Timeout applied to each SMTP session",
        gt=0,
    )

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        """Reject blank relay hostnames."""
        if not v.strip():
            raise ValueError("SMTP_SERVER must not be empty")
        return v.strip()

    @field_validator("sender_email", "recipient_email")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Validate a mail address has a local part and a domain."""
        local, sep, domain = v.strip().partition("@")
        if not sep or not local or not domain:
            raise ValueError("must be an email address")
        return v.strip()


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from grafana_alert_mailer.config import load_settings

        settings = load_settings()
        print(settings.grafana.url)
        print(settings.smtp.recipient_email)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    grafana: GrafanaSettings = Field(default_factory=GrafanaSettings)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)

    port: int = Field(
        default=DEFAULT_HTTP_PORT,
        alias="PORT",
        description="HTTP port the webhook receiver listens on",
        ge=1,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Compose notifications but log them instead of sending",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "grafana": {
                "url": self.grafana.url,
                "api_key": "(set)" if self.grafana.api_key.get_secret_value() else "(not set)",
                "dashboard_uid": self.grafana.dashboard_uid,
                "panel_id": str(self.grafana.panel_id) if self.grafana.panel_id else "(not set)",
                "snapshot_mode": self.grafana.snapshot_mode,
            },
            "smtp": {
                "server": f"{self.smtp.server}:{self.smtp.port}",
                "sender": self.smtp.sender_email,
                "password": "***",
                "recipient": self.smtp.recipient_email,
            },
            "log_level": self.log_level,
            "port": str(self.port),
            "dry_run": str(self.dry_run),
        }


def load_settings() -> Settings:
    """Load the application settings from the environment.

    Called once at startup; the returned object is passed to the
    components rather than looked up globally.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()
