"""Expose dependency helpers for FastAPI routers and the middleware."""

from .auth import SessionIdentity, get_session_identity, require_admin, require_user
from .clients import (
    AuthContext,
    build_auth_context,
    get_auth_context,
    get_default_auth_context,
    resolve_auth_context,
)

__all__ = [
    "AuthContext",
    "SessionIdentity",
    "build_auth_context",
    "get_auth_context",
    "get_default_auth_context",
    "get_session_identity",
    "require_admin",
    "require_user",
    "resolve_auth_context",
]
