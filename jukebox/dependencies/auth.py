"""
Request-scoped identity published by the session middleware, and route guards.
"""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional

from fastapi import HTTPException, Request

from jukebox.clients.providers import IdentityProvider
from jukebox.models import AuthRecord, User


@dataclass(frozen=True)
class SessionIdentity:
    """The signed-in user, their active auth record and its provider."""

    user: User
    auth_record: AuthRecord
    provider: IdentityProvider

    def __post_init__(self) -> None:
        if self.user.id is None:
            raise ValueError("Session identity requires a stored user.")

    @property
    def user_id(self) -> int:
        user_id = self.user.id
        assert user_id is not None
        return user_id

    @property
    def is_admin(self) -> bool:
        return self.user.is_admin


def get_session_identity(request: Request) -> Optional[SessionIdentity]:
    """FastAPI dependency returning the current identity, or ``None`` when anonymous."""
    return getattr(request.state, "identity", None)


def require_user(request: Request) -> SessionIdentity:
    identity = get_session_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=HTTPStatus.FORBIDDEN,
            detail="You must log in to view this page.",
        )
    return identity


def require_admin(request: Request) -> SessionIdentity:
    identity = require_user(request)
    if not identity.is_admin:
        raise HTTPException(
            status_code=HTTPStatus.FORBIDDEN,
            detail="You must be an administrator to view this page.",
        )
    return identity


__all__ = ["SessionIdentity", "get_session_identity", "require_admin", "require_user"]
