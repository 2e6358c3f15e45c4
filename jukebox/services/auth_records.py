"""
Helpers for keeping auth records authenticated against their providers.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from jukebox.clients.providers.base import (
    DEFAULT_LEAD_TIME,
    IdentityFetchError,
    IdentityProvider,
    RefreshError,
    Token,
)
from jukebox.models import AuthRecord, utcnow

if TYPE_CHECKING:
    from jukebox.clients.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


class AuthInvalidError(Exception):
    """Raised when credentials were previously marked bad; the user must log in again."""


class AuthRecordService:
    """Upserts auth records from provider truth and refreshes their tokens."""

    def __init__(self, store: "SQLiteStore", *, lead_time: timedelta = DEFAULT_LEAD_TIME) -> None:
        self._store = store
        self._lead_time = lead_time

    async def ensure_authenticated(
        self,
        provider: IdentityProvider,
        token: Token,
        record: Optional[AuthRecord] = None,
    ) -> AuthRecord:
        """
        Verify ``token`` with the provider and persist the outcome.

        ``record`` is the stored record the token came from, if any. Expiring
        tokens close to expiry are refreshed first. A failed identity fetch
        marks ``record`` invalid and re-raises.
        """
        slug = provider.descriptor.slug

        if provider.expiring_tokens and token.is_expiring_soon(self._lead_time):
            if record is not None:
                record = await self.renew_if_needed(provider, record)
                token = record.token()
            else:
                token = await provider.refresh_token(token)

        try:
            identity_id, profile = await provider.fetch_identity(token)
        except IdentityFetchError as exc:
            logger.warning(
                "Could not fetch identity",
                extra={"provider": slug, "reason": exc.reason, "error": str(exc)},
            )
            if record is not None and record.id is not None:
                self._store.mark_auth_record_invalid(record.id)
            raise

        candidate = AuthRecord(
            provider=slug,
            provider_identity_id=identity_id,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_expiry=token.expires_at if provider.expiring_tokens else None,
            is_valid=True,
            last_authenticated_at=utcnow(),
            name=profile.name,
            avatar_url=profile.avatar_url,
            username=profile.username,
        )
        stored = self._store.upsert_auth_record(candidate)
        logger.debug(
            "Authenticated identity",
            extra={"provider": slug, "auth_id": stored.id},
        )
        return stored

    async def renew_if_needed(self, provider: IdentityProvider, record: AuthRecord) -> AuthRecord:
        """
        Exchange the record's refresh token for a new access token.

        Records already marked invalid are rejected without a network call.
        Non-expiring tokens are returned untouched.
        """
        if not record.is_valid:
            raise AuthInvalidError(f"Auth record {record.id} is not valid.")

        if not provider.expiring_tokens or not record.expiring:
            return record

        try:
            token = await provider.refresh_token(record.token())
        except RefreshError as exc:
            logger.warning(
                "Could not refresh auth token",
                extra={"auth_id": record.id, "provider": record.provider, "error": str(exc)},
            )
            if record.id is not None:
                self._store.mark_auth_record_invalid(record.id)
            raise

        renewed = record.model_copy(
            update={
                "access_token": token.access_token,
                "refresh_token": token.refresh_token,
                "token_expiry": token.expires_at,
            }
        )
        stored = self._store.upsert_auth_record(renewed)
        logger.debug(
            "Refreshed auth token",
            extra={"auth_id": stored.id, "new_expiry": token.expires_at},
        )
        return stored


__all__ = ["AuthInvalidError", "AuthRecordService"]
