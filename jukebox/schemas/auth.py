"""Schemas related to sessions and OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class LoginLink(BaseModel):
    """Entry point for signing in with one provider."""

    name: str = Field(..., description="Provider display name.")
    provider: str = Field(..., description="Provider slug.")
    url: str = Field(..., description="Local login URL carrying the return path.")


class AuthRecordSummary(BaseModel):
    provider: str
    provider_identity_id: str
    is_valid: bool
    last_authenticated_at: datetime
    token_expires: str = Field(
        ..., description="Human readable token expiry, or 'Never' for non-expiring tokens."
    )
    reauth_due_at: datetime


class SessionResponse(BaseModel):
    """Identity of the signed-in user as published by the session middleware."""

    user_id: int
    name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False
    last_seen_at: Optional[datetime] = None
    auth: AuthRecordSummary
    linked_provider: Optional[str] = None
    logout_link: str
    login_links: List[LoginLink] = Field(default_factory=list)


class RenewResponse(BaseModel):
    status: str
    provider: str
    last_authenticated_at: datetime
    token_expiry: Optional[datetime] = None


__all__ = ["AuthRecordSummary", "LoginLink", "RenewResponse", "SessionResponse"]
