"""SQLite-backed record store for users and auth records."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jukebox.models import AuthRecord, User, utcnow
from jukebox.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize as fixed-width UTC so stored timestamps compare as strings."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_id(value: Union[int, str, None]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class SQLiteStore:
    """Users and auth records keyed by id, with ``(provider, identity)`` uniqueness."""

    def __init__(self, db_path: str, *, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS auth_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    provider TEXT NOT NULL,
                    provider_identity_id TEXT NOT NULL,
                    access_token_encrypted TEXT NOT NULL,
                    refresh_token_encrypted TEXT,
                    token_expiry TEXT,
                    is_valid INTEGER NOT NULL DEFAULT 1,
                    last_authenticated_at TEXT NOT NULL,
                    name TEXT,
                    avatar_url TEXT,
                    username TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (provider, provider_identity_id)
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS auth_records_due
                ON auth_records (provider, is_valid, last_authenticated_at)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT,
                    avatar_url TEXT,
                    username TEXT,
                    auth_record_id INTEGER REFERENCES auth_records (id),
                    linked_auth_record_id INTEGER REFERENCES auth_records (id),
                    last_seen_at TEXT,
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
                """
            )

    # Auth records

    def _auth_record_from_row(self, row: sqlite3.Row) -> AuthRecord:
        return AuthRecord(
            id=row["id"],
            provider=row["provider"],
            provider_identity_id=row["provider_identity_id"],
            access_token=self._cipher.decrypt(row["access_token_encrypted"]),
            refresh_token=self._cipher.decrypt_optional(row["refresh_token_encrypted"]),
            token_expiry=row["token_expiry"],
            is_valid=bool(row["is_valid"]),
            last_authenticated_at=row["last_authenticated_at"],
            name=row["name"],
            avatar_url=row["avatar_url"],
            username=row["username"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_auth_record(self, record_id: Union[int, str, None]) -> Optional[AuthRecord]:
        parsed = _parse_id(record_id)
        if parsed is None:
            return None
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM auth_records WHERE id = ?", (parsed,)
            ).fetchone()
        return self._auth_record_from_row(row) if row else None

    def find_auth_record(self, provider: str, provider_identity_id: str) -> Optional[AuthRecord]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM auth_records
                WHERE provider = ? AND provider_identity_id = ?
                """,
                (provider, provider_identity_id),
            ).fetchone()
        return self._auth_record_from_row(row) if row else None

    def upsert_auth_record(self, record: AuthRecord) -> AuthRecord:
        """
        Insert or update by ``(provider, provider_identity_id)`` in one statement.

        ``created_at`` is kept from the first insert; a missing refresh token
        keeps the stored one.
        """
        now = utcnow()
        params: Dict[str, Any] = {
            "provider": record.provider,
            "provider_identity_id": record.provider_identity_id,
            "access_token_encrypted": self._cipher.encrypt(record.access_token),
            "refresh_token_encrypted": self._cipher.encrypt_optional(record.refresh_token),
            "token_expiry": _iso(record.token_expiry),
            "is_valid": int(record.is_valid),
            "last_authenticated_at": _iso(record.last_authenticated_at),
            "name": record.name,
            "avatar_url": record.avatar_url,
            "username": record.username,
            "created_at": _iso(record.created_at),
            "updated_at": _iso(now),
        }
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO auth_records (
                    provider, provider_identity_id, access_token_encrypted,
                    refresh_token_encrypted, token_expiry, is_valid,
                    last_authenticated_at, name, avatar_url, username,
                    created_at, updated_at
                )
                VALUES (
                    :provider, :provider_identity_id, :access_token_encrypted,
                    :refresh_token_encrypted, :token_expiry, :is_valid,
                    :last_authenticated_at, :name, :avatar_url, :username,
                    :created_at, :updated_at
                )
                ON CONFLICT (provider, provider_identity_id) DO UPDATE SET
                    access_token_encrypted = excluded.access_token_encrypted,
                    refresh_token_encrypted = COALESCE(
                        excluded.refresh_token_encrypted,
                        auth_records.refresh_token_encrypted
                    ),
                    token_expiry = excluded.token_expiry,
                    is_valid = excluded.is_valid,
                    last_authenticated_at = excluded.last_authenticated_at,
                    name = excluded.name,
                    avatar_url = excluded.avatar_url,
                    username = excluded.username,
                    updated_at = excluded.updated_at
                """,
                params,
            )
            row = conn.execute(
                """
                SELECT * FROM auth_records
                WHERE provider = ? AND provider_identity_id = ?
                """,
                (record.provider, record.provider_identity_id),
            ).fetchone()
        return self._auth_record_from_row(row)

    def mark_auth_record_invalid(self, record_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE auth_records SET is_valid = 0, updated_at = ? WHERE id = ?",
                (_iso(utcnow()), record_id),
            )

    def list_due_auth_records(self, provider: str, cutoff: datetime) -> List[AuthRecord]:
        """Valid records for ``provider`` last authenticated before ``cutoff``."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM auth_records
                WHERE provider = ? AND is_valid = 1 AND last_authenticated_at < ?
                ORDER BY last_authenticated_at
                """,
                (provider, _iso(cutoff)),
            ).fetchall()
        records: List[AuthRecord] = []
        for row in rows:
            try:
                records.append(self._auth_record_from_row(row))
            except ValueError as exc:
                logger.warning(
                    "Unreadable auth record, marking invalid",
                    extra={"auth_id": row["id"], "provider": provider, "error": str(exc)},
                )
                self.mark_auth_record_invalid(row["id"])
        return records

    def count_auth_records(self, provider: Optional[str] = None) -> int:
        query = "SELECT COUNT(*) FROM auth_records"
        args: tuple = ()
        if provider is not None:
            query += " WHERE provider = ?"
            args = (provider,)
        with self._connect() as conn:
            return int(conn.execute(query, args).fetchone()[0])

    # Users

    @staticmethod
    def _user_from_row(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            avatar_url=row["avatar_url"],
            username=row["username"],
            auth_record_id=row["auth_record_id"],
            linked_auth_record_id=row["linked_auth_record_id"],
            last_seen_at=row["last_seen_at"],
            is_admin=bool(row["is_admin"]),
            created_at=row["created_at"],
        )

    def get_user(self, user_id: Union[int, str, None]) -> Optional[User]:
        parsed = _parse_id(user_id)
        if parsed is None:
            return None
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (parsed,)).fetchone()
        return self._user_from_row(row) if row else None

    def find_user_by_auth_record(self, auth_record_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE auth_record_id = ? ORDER BY id LIMIT 1",
                (auth_record_id,),
            ).fetchone()
        return self._user_from_row(row) if row else None

    def save_user(self, user: User) -> User:
        params: Dict[str, Any] = {
            "name": user.name,
            "avatar_url": user.avatar_url,
            "username": user.username,
            "auth_record_id": user.auth_record_id,
            "linked_auth_record_id": user.linked_auth_record_id,
            "last_seen_at": _iso(user.last_seen_at),
            "is_admin": int(user.is_admin),
            "created_at": _iso(user.created_at),
        }
        with self._connect() as conn:
            if user.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO users (
                        name, avatar_url, username, auth_record_id,
                        linked_auth_record_id, last_seen_at, is_admin, created_at
                    )
                    VALUES (
                        :name, :avatar_url, :username, :auth_record_id,
                        :linked_auth_record_id, :last_seen_at, :is_admin, :created_at
                    )
                    """,
                    params,
                )
                user_id = cursor.lastrowid
            else:
                params["id"] = user.id
                conn.execute(
                    """
                    UPDATE users SET
                        name = :name,
                        avatar_url = :avatar_url,
                        username = :username,
                        auth_record_id = :auth_record_id,
                        linked_auth_record_id = :linked_auth_record_id,
                        last_seen_at = :last_seen_at,
                        is_admin = :is_admin
                    WHERE id = :id
                    """,
                    params,
                )
                user_id = user.id
        return user.model_copy(update={"id": user_id})

    def update_last_seen(self, user_id: int, when: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET last_seen_at = ? WHERE id = ?",
                (_iso(when), user_id),
            )

    def count_users(self) -> int:
        with self._connect() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM users").fetchone()[0])


__all__ = ["SQLiteStore"]
