"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the OAuth services and
the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
)


class ConfigurationError(RuntimeError):
    """Raised when required provider configuration is missing."""


class QuickBooksSettings(BaseSettings):
    """Client registration for the QuickBooks Online OAuth2 app."""

    model_config = _SETTINGS_CONFIG

    client_id: Optional[str] = Field(None, alias="QUICKBOOKS_CLIENT_ID")
    client_secret: Optional[str] = Field(None, alias="QUICKBOOKS_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(
        None,
        alias="QUICKBOOKS_REDIRECT_URI",
        description=(
            "Callback registered with the provider. Falls back to the callback "
            "route of the serving host when omitted."
        ),
    )
    environment: Literal["sandbox", "production"] = Field(
        "sandbox", alias="QUICKBOOKS_ENVIRONMENT"
    )
    scope: str = Field(
        "com.intuit.quickbooks.accounting",
        alias="QUICKBOOKS_SCOPE",
    )

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("scope")
    @classmethod
    def _join_scopes(cls, value: str) -> str:
        """Support providing scopes as a comma- or space-separated string."""
        parts = [part.strip() for part in value.replace(",", " ").split()]
        return " ".join(part for part in parts if part)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def require_credentials(self) -> tuple[str, str]:
        """Return ``(client_id, client_secret)`` or raise ``ConfigurationError``."""
        if not self.is_configured:
            raise ConfigurationError(
                "QuickBooks OAuth credentials not configured. Set "
                "QUICKBOOKS_CLIENT_ID and QUICKBOOKS_CLIENT_SECRET."
            )
        return self.client_id, self.client_secret  # type: ignore[return-value]


class OAuthSettings(BaseSettings):
    """OAuth flow tuning."""

    model_config = _SETTINGS_CONFIG

    state_ttl_seconds: int = Field(600, alias="OAUTH_STATE_TTL", gt=0)
    refresh_window_seconds: int = Field(
        300,
        alias="OAUTH_REFRESH_WINDOW",
        ge=0,
        description="Access tokens are treated as stale this long before expiry.",
    )
    http_timeout_seconds: float = Field(10.0, alias="OAUTH_HTTP_TIMEOUT", gt=0)


class StorageSettings(BaseSettings):
    """Token persistence configuration."""

    model_config = _SETTINGS_CONFIG

    token_store_path: Optional[str] = Field(
        None,
        alias="TOKEN_STORE_PATH",
        description="SQLite file for token records. In-memory when omitted.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _SETTINGS_CONFIG

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    frontend_url: str = Field(
        "http://localhost:5173",
        alias="FRONTEND_URL",
        description="Front-end origin users are sent back to after the OAuth callback.",
    )
    quickbooks: QuickBooksSettings = Field(default_factory=QuickBooksSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "ConfigurationError",
    "OAuthSettings",
    "QuickBooksSettings",
    "StorageSettings",
    "get_settings",
]
