"""
Settings Module - Centralized Configuration Management
=======================================================

ARCHITECTURAL DECISION:
- All configuration is loaded from environment variables (no hardcoded secrets)
- Settings are immutable dataclasses for safety and clarity
- Single source of truth for all configurable values

EXTENSIBILITY:
- To switch mail provider: add provider-specific settings next to MailSettings
- To move off SQLite: replace database_file with a connection string
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present (development convenience)
load_dotenv()


def _env(*names: str, default: str = "") -> str:
    """First non-empty environment variable among names."""
    for name in names:
        value = os.getenv(name, "")
        if value:
            return value
    return default


@dataclass(frozen=True)
class MailSettings:
    """SMTP transport settings (Gmail app password by default)."""

    host: str = field(default_factory=lambda: _env("SMTP_HOST", default="smtp.gmail.com"))
    port: int = field(default_factory=lambda: int(_env("SMTP_PORT", default="587")))
    username: str = field(default_factory=lambda: _env("SMTP_USER", "GMAIL_USER"))
    password: str = field(default_factory=lambda: _env("SMTP_PASSWORD", "GMAIL_APP_PASSWORD"))
    from_name: str = field(default_factory=lambda: _env("MAIL_FROM_NAME", "GMAIL_FROM_NAME", default="Review Requests"))
    timeout_seconds: int = 30

    @property
    def configured(self) -> bool:
        return bool(self.host and self.username and self.password)


@dataclass(frozen=True)
class TrackingSettings:
    """Open pixel / click redirect settings."""

    # Public URL of this server; empty disables tracking links
    base_url: str = field(
        default_factory=lambda: _env("TRACKING_BASE_URL", "BACKEND_URL", "RENDER_EXTERNAL_URL").rstrip("/")
    )
    path_prefix: str = "/api/review-requests"

    # Where a click goes when the customer cannot be found
    fallback_redirect_url: str = field(
        default_factory=lambda: _env("TRACKING_FALLBACK_URL", default="https://www.google.com")
    )

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def open_url(self, customer_id: str) -> str:
        return f"{self.base_url}{self.path_prefix}/track/open/{customer_id}"

    def click_url(self, customer_id: str) -> str:
        return f"{self.base_url}{self.path_prefix}/track/click/{customer_id}"


@dataclass(frozen=True)
class DispatchSettings:
    """Send loop throttling and claim recovery."""

    # SAFETY: fixed pause between consecutive emails to stay clear of spam heuristics
    send_delay_ms: int = field(default_factory=lambda: int(_env("SEND_DELAY_MS", default="500")))

    # A row left in 'sending' longer than this (crashed run) is picked up again
    claim_timeout_seconds: int = field(
        default_factory=lambda: int(_env("SEND_CLAIM_TIMEOUT_SECONDS", default="900"))
    )

    @property
    def send_delay_seconds(self) -> float:
        return self.send_delay_ms / 1000.0


@dataclass(frozen=True)
class UploadSettings:
    """Customer file upload limits."""

    max_file_bytes: int = 10 * 1024 * 1024  # 10MB
    allowed_extensions: tuple = (".csv", ".tsv", ".xlsx", ".xls")


@dataclass(frozen=True)
class Settings:
    """
    Root settings container - Single source of truth for all configuration.

    Usage:
        from review_requests.infrastructure.config import get_settings
        settings = get_settings()
        print(settings.mail.host)
    """

    # Sub-settings groups
    mail: MailSettings = field(default_factory=MailSettings)
    tracking: TrackingSettings = field(default_factory=TrackingSettings)
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    upload: UploadSettings = field(default_factory=UploadSettings)

    # File paths
    database_file: Path = field(
        default_factory=lambda: Path(_env("DATABASE_FILE", default="review_requests.db"))
    )

    def validate(self) -> list[str]:
        """
        Validate settings and return list of warnings/errors.
        Returns empty list if all settings are valid.
        """
        issues = []

        if not self.mail.configured:
            issues.append(
                "WARNING: SMTP_USER / SMTP_PASSWORD not set. "
                "Review request emails will fail to send."
            )

        if not self.tracking.enabled:
            issues.append(
                "WARNING: TRACKING_BASE_URL not set. "
                "Emails will link straight to the review page and opens/clicks won't be tracked."
            )

        if self.dispatch.send_delay_ms < 0:
            issues.append("ERROR: SEND_DELAY_MS must not be negative.")

        if self.dispatch.claim_timeout_seconds <= 0:
            issues.append("ERROR: SEND_CLAIM_TIMEOUT_SECONDS must be positive.")

        return issues


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get singleton Settings instance.
    Cached to ensure consistent settings throughout application lifecycle.
    """
    return Settings()
