try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import timedelta
from pathlib import Path

import pytest

from _fakes import FakeProvider, make_context, seed_record
from jukebox.clients.providers import IdentityFetchError, RefreshError, Token
from jukebox.dependencies import AuthContext
from jukebox.models import utcnow
from jukebox.services import AuthInvalidError

pytestmark = pytest.mark.anyio("asyncio")


async def test_ensure_authenticated_is_idempotent(context: AuthContext, acme: FakeProvider) -> None:
    token = acme.token_for("ada")

    first = await context.auth_records.ensure_authenticated(acme, token)
    second = await context.auth_records.ensure_authenticated(acme, token)

    assert first.id == second.id
    assert first.created_at == second.created_at
    assert second.last_authenticated_at >= first.last_authenticated_at
    assert context.store.count_auth_records("acme") == 1
    assert second.provider_identity_id == "ada"
    assert second.name == "Ada"
    assert second.username == "ada@example.com"
    assert second.is_valid


async def test_distinct_identities_get_distinct_records(
    context: AuthContext, acme: FakeProvider
) -> None:
    await context.auth_records.ensure_authenticated(acme, acme.token_for("ada"))
    await context.auth_records.ensure_authenticated(acme, acme.token_for("grace"))

    assert context.store.count_auth_records() == 2


async def test_ensure_authenticated_refreshes_token_close_to_expiry(
    context: AuthContext, acme: FakeProvider
) -> None:
    record = seed_record(context, acme, expires_in=timedelta(minutes=2))

    updated = await context.auth_records.ensure_authenticated(acme, record.token(), record)

    assert len(acme.refreshed) == 1
    assert acme.fetched[-1].access_token == "ada:2"
    assert updated.id == record.id
    assert updated.access_token == "ada:2"
    assert updated.token_expiry > record.token_expiry


async def test_identity_failure_marks_record_invalid(
    context: AuthContext, acme: FakeProvider
) -> None:
    record = seed_record(context, acme)
    acme.failing_identities.add("ada")

    with pytest.raises(IdentityFetchError):
        await context.auth_records.ensure_authenticated(acme, record.token(), record)

    assert context.store.get_auth_record(record.id).is_valid is False


async def test_identity_failure_without_record_stores_nothing(
    context: AuthContext, acme: FakeProvider
) -> None:
    acme.failing_identities.add("ada")

    with pytest.raises(IdentityFetchError):
        await context.auth_records.ensure_authenticated(acme, acme.token_for("ada"))

    assert context.store.count_auth_records() == 0


async def test_renew_if_needed_rejects_invalid_record_without_network(
    context: AuthContext, acme: FakeProvider
) -> None:
    record = seed_record(context, acme)
    context.store.mark_auth_record_invalid(record.id)
    record = context.store.get_auth_record(record.id)

    with pytest.raises(AuthInvalidError):
        await context.auth_records.renew_if_needed(acme, record)

    assert acme.refreshed == []


async def test_renew_if_needed_refreshes_and_persists(
    context: AuthContext, acme: FakeProvider
) -> None:
    record = seed_record(context, acme)

    renewed = await context.auth_records.renew_if_needed(acme, record)

    assert renewed.access_token == "ada:2"
    assert renewed.refresh_token == "ada-refresh"
    assert context.store.get_auth_record(record.id).access_token == "ada:2"


async def test_refresh_failure_invalidates_record(
    context: AuthContext, acme: FakeProvider
) -> None:
    record = seed_record(context, acme)
    acme.fail_refresh = True

    with pytest.raises(RefreshError):
        await context.auth_records.renew_if_needed(acme, record)

    assert context.store.get_auth_record(record.id).is_valid is False


async def test_non_expiring_provider_skips_refresh(tmp_path: Path) -> None:
    gigs = FakeProvider("Gigs", expiring=False)
    context = make_context(tmp_path, gigs)

    record = await context.auth_records.ensure_authenticated(gigs, gigs.token_for("ada"))
    renewed = await context.auth_records.renew_if_needed(gigs, record)

    assert record.token_expiry is None
    assert record.expiring is False
    assert renewed is record
    assert gigs.refreshed == []


async def test_non_expiring_provider_drops_stray_expiry(tmp_path: Path) -> None:
    gigs = FakeProvider("Gigs", expiring=False)
    context = make_context(tmp_path, gigs)

    record = await context.auth_records.ensure_authenticated(
        gigs, Token(access_token="ada:1", expires_at=utcnow() + timedelta(minutes=1))
    )

    assert record.token_expiry is None
    assert record.token().is_expiring_soon() is False
    assert gigs.refreshed == []
