"""
Domain models for auth record and user persistence.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field

from jukebox.clients.providers.base import DEFAULT_LEAD_TIME, Token, UserProfile


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthRecord(BaseModel):
    """One external identity linked to jukebox, with its token material."""

    id: Optional[int] = None
    provider: str = Field(..., description="Registry slug of the issuing provider.")
    provider_identity_id: str = Field(..., description="Identifier unique per provider.")
    access_token: str
    refresh_token: Optional[str] = None
    token_expiry: Optional[datetime] = Field(
        None, description="Null when the provider issues non-expiring tokens."
    )
    is_valid: bool = True
    last_authenticated_at: datetime = Field(default_factory=utcnow)
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    username: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def expiring(self) -> bool:
        return bool(self.refresh_token) or self.token_expiry is not None

    @property
    def profile(self) -> UserProfile:
        return UserProfile(name=self.name, avatar_url=self.avatar_url, username=self.username)

    def token(self) -> Token:
        """Rebuild a provider token from the stored material."""
        return Token(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.token_expiry,
        )

    def is_expiring_soon(
        self, lead_time: timedelta = DEFAULT_LEAD_TIME, now: Optional[datetime] = None
    ) -> bool:
        return self.token().is_expiring_soon(lead_time, now)

    def reauth_due_at(self, reauth_interval: timedelta) -> datetime:
        return self.last_authenticated_at + reauth_interval

    def is_stale(self, reauth_interval: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return now > self.reauth_due_at(reauth_interval)


class User(BaseModel):
    """Local principal owning a primary and optionally a linked auth record."""

    id: Optional[int] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    username: Optional[str] = None
    auth_record_id: Optional[int] = None
    linked_auth_record_id: Optional[int] = None
    last_seen_at: Optional[datetime] = None
    is_admin: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    def apply_profile(self, profile: UserProfile) -> None:
        self.name = profile.name
        self.avatar_url = profile.avatar_url
        self.username = profile.username


__all__ = ["AuthRecord", "User", "utcnow"]
