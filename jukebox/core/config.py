"""
Application configuration models and helpers.

Centralizes settings management so both the FastAPI app and the background
reauthentication worker share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


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


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class ProviderCredentials(BaseSettings):
    """Client credentials shared by every OAuth provider."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    reauth_minutes: Optional[int] = Field(
        None,
        description="Override for how often a session is re-verified with the provider.",
    )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class GoogleSettings(ProviderCredentials):
    """Credentials for Google sign-in."""

    model_config = SettingsConfigDict(env_prefix="GOOGLE_")


class SpotifySettings(ProviderCredentials):
    """Credentials for Spotify sign-in."""

    model_config = SettingsConfigDict(env_prefix="SPOTIFY_")


class SongkickSettings(ProviderCredentials):
    """Credentials for Songkick sign-in."""

    model_config = SettingsConfigDict(env_prefix="SONGKICK_")

    api_key: Optional[str] = Field(
        None, description="Songkick API key required by the user details endpoint."
    )

    @property
    def configured(self) -> bool:
        return super().configured and bool(self.api_key)


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(env_prefix="JB_")

    secret: str = Field(
        ...,
        description="Process-wide secret used to sign cookies and OAuth state values.",
    )
    token_encryption_secret: Optional[str] = Field(
        None,
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    previous_token_encryption_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        description="Retired encryption secrets still accepted when reading tokens.",
    )

    @field_validator("previous_token_encryption_secrets", mode="before")
    @classmethod
    def _split_secrets(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        return _split_csv(value)

    @property
    def token_secret(self) -> str:
        return self.token_encryption_secret or self.secret


class SessionSettings(BaseSettings):
    """Session cookie configuration."""

    model_config = SettingsConfigDict(env_prefix="JB_SESSION_")

    cookie_name: str = "jukebox_user"
    cookie_max_age_days: int = 14
    cookie_secure: Optional[bool] = Field(
        None,
        description="Mark the cookie Secure. Defaults to true in production.",
    )
    last_seen_throttle_seconds: int = 300


class ReauthSettings(BaseSettings):
    """Background reauthentication configuration."""

    model_config = SettingsConfigDict(env_prefix="JB_REAUTH_")

    enabled: bool = True
    tick_seconds: float = 30.0
    lead_time_seconds: int = Field(
        300, description="Refresh expiring tokens this many seconds before expiry."
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_prefix="JB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"
    base_url: AnyHttpUrl = Field(
        "http://localhost:8080",
        description="Public URL used to build provider callback URLs.",
    )
    database_path: str = "storage.db"
    http_timeout_seconds: float = 10.0
    configured_providers: Annotated[tuple[str, ...], NoDecode] = Field(
        ("google", "spotify"),
        description="Slugs of the providers users may sign in with.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    reauth: ReauthSettings = Field(default_factory=ReauthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    songkick: SongkickSettings = Field(default_factory=SongkickSettings)

    @field_validator("configured_providers", mode="before")
    @classmethod
    def _split_providers(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing providers as a comma-separated string."""
        return _split_csv(value)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cookie_secure(self) -> bool:
        if self.session.cookie_secure is not None:
            return self.session.cookie_secure
        return self.is_production

    def provider_credentials(self, slug: str) -> Optional[ProviderCredentials]:
        """Return the credential block for a provider slug, if one exists."""
        return {
            "google": self.google,
            "spotify": self.spotify,
            "songkick": self.songkick,
        }.get(slug)

    def callback_url(self, slug: str) -> str:
        """Build the absolute callback URL for a provider."""
        return f"{str(self.base_url).rstrip('/')}/auth/callback/{slug}"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "ProviderCredentials",
    "ReauthSettings",
    "SecuritySettings",
    "SessionSettings",
    "SongkickSettings",
    "SpotifySettings",
    "get_settings",
]
