"""
Session middleware.

Every request passes through here: the signed session cookie is verified, the
user and their active auth record are loaded, stale records are re-verified
with the provider before the request proceeds, and the resulting identity is
published on ``request.state`` for downstream handlers.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from http import HTTPStatus
from typing import Dict, List, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from jukebox.api.cookies import clear_session_cookie
from jukebox.clients.providers import IdentityProvider, ProviderError
from jukebox.dependencies import AuthContext, SessionIdentity, resolve_auth_context
from jukebox.models import AuthRecord, User, utcnow
from jukebox.services import AuthInvalidError
from jukebox.utils.http import current_path, with_query

logger = logging.getLogger(__name__)

_Session = Tuple[User, AuthRecord, IdentityProvider]


class SessionMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, context: Optional[AuthContext] = None) -> None:
        super().__init__(app)
        self._context = context

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        context = self._context or resolve_auth_context(request.app)
        settings = context.settings
        identity: Optional[SessionIdentity] = None
        clear_cookie = False

        raw_cookie = request.cookies.get(settings.session.cookie_name)
        if raw_cookie is not None:
            session = self._load_session(context, raw_cookie)
            if session is None:
                clear_cookie = True
            else:
                user, record, provider = session
                if record.is_stale(provider.descriptor.reauth_interval):
                    try:
                        record = await context.auth_records.ensure_authenticated(
                            provider, record.token(), record
                        )
                    except (ProviderError, AuthInvalidError) as exc:
                        logger.error(
                            "Reauth error",
                            extra={"user_id": user.id, "auth_id": record.id, "error": str(exc)},
                        )
                        response = JSONResponse(
                            {"detail": "Reauthentication with the provider failed."},
                            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
                        )
                        clear_session_cookie(response, settings)
                        return response

                identity = SessionIdentity(user=user, auth_record=record, provider=provider)
                context.users.touch_last_seen(
                    user,
                    throttle=timedelta(seconds=settings.session.last_seen_throttle_seconds),
                )

        from_path = current_path(request)
        request.state.identity = identity
        request.state.login_links = self._login_links(context, from_path)
        request.state.logout_link = with_query(
            "/auth/logout", **{"from": context.codec.sign(from_path)}
        )

        response = await call_next(request)
        if clear_cookie:
            clear_session_cookie(response, settings)
        return response

    @staticmethod
    def _load_session(context: AuthContext, raw_cookie: str) -> Optional[_Session]:
        """Resolve the cookie to a usable session, or ``None`` if it must be cleared."""
        user_id = context.codec.verify(raw_cookie)
        if user_id is None:
            logger.warning("Invalid user cookie", extra={"reason": "signature"})
            return None

        try:
            user = context.store.get_user(user_id)
            record = context.store.get_auth_record(user.auth_record_id) if user else None
        except ValueError:
            # Token ciphertext written under a different secret.
            logger.warning("Unreadable auth record", extra={"user_id": user_id})
            return None

        if user is None:
            logger.warning("Invalid user cookie", extra={"reason": "unknown user", "user_id": user_id})
            return None
        if record is None or not record.is_valid:
            logger.warning("Invalid user cookie", extra={"reason": "auth invalid", "user_id": user_id})
            return None

        provider = context.providers.find(record.provider)
        if provider is None:
            logger.warning(
                "Invalid user cookie",
                extra={"reason": "provider not configured", "provider": record.provider},
            )
            return None

        if (
            record.token_expiry is not None
            and not record.refresh_token
            and record.token_expiry <= utcnow()
        ):
            logger.warning("Invalid user cookie", extra={"reason": "token expired", "user_id": user_id})
            return None

        return user, record, provider

    @staticmethod
    def _login_links(context: AuthContext, from_path: str) -> List[Dict[str, str]]:
        links = []
        for slug, provider in context.providers.items():
            links.append(
                {
                    "name": provider.descriptor.name,
                    "provider": slug,
                    "url": with_query("/auth/login", provider=slug, **{"from": from_path}),
                }
            )
        return links


__all__ = ["SessionMiddleware"]
