"""User signup, login and provider linking."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from jukebox.models import AuthRecord, User, utcnow

if TYPE_CHECKING:
    from jukebox.clients.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: "SQLiteStore") -> None:
        self._store = store

    def login_or_signup(self, record: AuthRecord) -> User:
        """Return the user whose primary auth record is ``record``, creating one if needed."""
        if record.id is None:
            raise ValueError("Auth record must be persisted before login.")

        user = self._store.find_user_by_auth_record(record.id)
        if user is None:
            is_admin = self._store.count_users() == 0
            if is_admin:
                logger.info("First user, promoting to admin")
            user = User(auth_record_id=record.id, is_admin=is_admin, last_seen_at=utcnow())
            user.apply_profile(record.profile)
            user = self._store.save_user(user)
            logger.debug(
                "New user",
                extra={
                    "user_id": user.id,
                    "provider": record.provider,
                    "auth_id": record.id,
                },
            )
            return user

        user.apply_profile(record.profile)
        user.last_seen_at = utcnow()
        user = self._store.save_user(user)
        logger.debug("Login", extra={"user_id": user.id, "auth_id": record.id})
        return user

    def link_secondary(self, user: User, record: AuthRecord) -> User:
        """Attach ``record`` as the user's secondary linked provider."""
        user.linked_auth_record_id = record.id
        logger.info(
            "Linking provider",
            extra={"user_id": user.id, "provider": record.provider, "auth_id": record.id},
        )
        return self._store.save_user(user)

    def touch_last_seen(
        self,
        user: User,
        *,
        throttle: timedelta,
        now: Optional[datetime] = None,
    ) -> bool:
        """Record activity at most once per ``throttle``. Returns True when written."""
        now = now or utcnow()
        if user.last_seen_at is not None and now - user.last_seen_at <= throttle:
            return False
        if user.id is None:
            return False
        logger.debug("Updating user last seen", extra={"user_id": user.id})
        self._store.update_last_seen(user.id, now)
        user.last_seen_at = now
        return True


__all__ = ["UserService"]
