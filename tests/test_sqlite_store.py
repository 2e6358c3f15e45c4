try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import sqlite3
from datetime import timedelta
from pathlib import Path

import pytest

from jukebox.clients.sqlite_store import SQLiteStore
from jukebox.models import AuthRecord, User, utcnow
from jukebox.services import TokenCipherService


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "nested" / "jukebox.db"


@pytest.fixture
def store(db_path: Path) -> SQLiteStore:
    return SQLiteStore(str(db_path), cipher=TokenCipherService(secret="store-secret"))


def _record(**overrides) -> AuthRecord:
    values = dict(
        provider="acme",
        provider_identity_id="ada",
        access_token="access-1",
        refresh_token="refresh-1",
        token_expiry=utcnow() + timedelta(hours=1),
        name="Ada",
    )
    values.update(overrides)
    return AuthRecord(**values)


def test_tokens_are_encrypted_at_rest(store: SQLiteStore, db_path: Path) -> None:
    store.upsert_auth_record(_record())

    with sqlite3.connect(db_path) as conn:
        access, refresh = conn.execute(
            "SELECT access_token_encrypted, refresh_token_encrypted FROM auth_records"
        ).fetchone()

    assert "access-1" not in access
    assert "refresh-1" not in refresh
    assert store.find_auth_record("acme", "ada").access_token == "access-1"


def test_upsert_updates_in_place_and_keeps_creation_time(store: SQLiteStore) -> None:
    first = store.upsert_auth_record(_record())
    second = store.upsert_auth_record(
        _record(access_token="access-2", refresh_token=None, name="Ada L.")
    )

    assert second.id == first.id
    assert second.created_at == first.created_at
    assert second.access_token == "access-2"
    assert second.refresh_token == "refresh-1"
    assert second.name == "Ada L."
    assert store.count_auth_records() == 1


def test_list_due_auth_records_filters_by_provider_validity_and_age(store: SQLiteStore) -> None:
    now = utcnow()
    old = store.upsert_auth_record(
        _record(provider_identity_id="old", last_authenticated_at=now - timedelta(minutes=20))
    )
    store.upsert_auth_record(
        _record(provider_identity_id="fresh", last_authenticated_at=now - timedelta(minutes=5))
    )
    invalid = store.upsert_auth_record(
        _record(provider_identity_id="invalid", last_authenticated_at=now - timedelta(hours=2))
    )
    store.upsert_auth_record(
        _record(
            provider="other",
            provider_identity_id="old",
            last_authenticated_at=now - timedelta(hours=2),
        )
    )
    store.mark_auth_record_invalid(invalid.id)

    due = store.list_due_auth_records("acme", now - timedelta(minutes=15))

    assert [record.id for record in due] == [old.id]


def test_list_due_auth_records_skips_undecryptable_rows(
    store: SQLiteStore, db_path: Path
) -> None:
    old = utcnow() - timedelta(minutes=20)
    readable = store.upsert_auth_record(
        _record(provider_identity_id="ada", last_authenticated_at=old)
    )
    rotated = SQLiteStore(str(db_path), cipher=TokenCipherService(secret="retired-secret"))
    lost = rotated.upsert_auth_record(
        _record(provider_identity_id="grace", last_authenticated_at=old)
    )

    due = store.list_due_auth_records("acme", utcnow() - timedelta(minutes=15))

    assert [record.id for record in due] == [readable.id]
    assert rotated.get_auth_record(lost.id).is_valid is False


def test_get_user_tolerates_unparseable_ids(store: SQLiteStore) -> None:
    assert store.get_user("not-a-number") is None
    assert store.get_user(None) is None
    assert store.get_user("999") is None
    assert store.get_auth_record("abc") is None


def test_save_user_inserts_then_updates(store: SQLiteStore) -> None:
    record = store.upsert_auth_record(_record())

    user = store.save_user(User(name="Ada", auth_record_id=record.id))
    user.name = "Ada Lovelace"
    updated = store.save_user(user)

    assert updated.id == user.id
    assert store.get_user(str(user.id)).name == "Ada Lovelace"
    assert store.find_user_by_auth_record(record.id).id == user.id
    assert store.count_users() == 1


def test_records_written_under_other_secret_are_unreadable(
    store: SQLiteStore, db_path: Path
) -> None:
    record = store.upsert_auth_record(_record())
    rotated = SQLiteStore(str(db_path), cipher=TokenCipherService(secret="rotated"))

    with pytest.raises(ValueError):
        rotated.get_auth_record(record.id)
