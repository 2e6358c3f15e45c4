"""Session cookie helpers shared by the middleware and the auth routes."""

from __future__ import annotations

from starlette.responses import Response

from jukebox.core.config import AppSettings


def set_session_cookie(response: Response, settings: AppSettings, value: str) -> None:
    response.set_cookie(
        settings.session.cookie_name,
        value,
        max_age=settings.session.cookie_max_age_days * 24 * 60 * 60,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: AppSettings) -> None:
    """Expire the session cookie. Safe to call when no cookie was sent."""
    response.delete_cookie(
        settings.session.cookie_name,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


__all__ = ["clear_session_cookie", "set_session_cookie"]
