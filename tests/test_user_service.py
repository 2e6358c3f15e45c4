try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import timedelta

import pytest

from _fakes import FakeProvider, seed_record
from jukebox.dependencies import AuthContext
from jukebox.models import AuthRecord, utcnow


def test_first_user_becomes_admin(context: AuthContext, acme: FakeProvider) -> None:
    first = context.users.login_or_signup(seed_record(context, acme, "ada"))
    second = context.users.login_or_signup(seed_record(context, acme, "grace"))

    assert first.is_admin is True
    assert second.is_admin is False
    assert context.store.count_users() == 2


def test_returning_login_reuses_user_and_refreshes_profile(
    context: AuthContext, acme: FakeProvider
) -> None:
    record = seed_record(context, acme, "ada")
    user = context.users.login_or_signup(record)

    renamed = context.store.upsert_auth_record(record.model_copy(update={"name": "Countess"}))
    again = context.users.login_or_signup(renamed)

    assert again.id == user.id
    assert again.name == "Countess"
    assert context.store.count_users() == 1


def test_login_requires_persisted_record(context: AuthContext) -> None:
    with pytest.raises(ValueError):
        context.users.login_or_signup(
            AuthRecord(provider="acme", provider_identity_id="x", access_token="t")
        )


def test_link_secondary_keeps_primary(context: AuthContext, acme: FakeProvider) -> None:
    user = context.users.login_or_signup(seed_record(context, acme, "ada"))
    linked = seed_record(context, acme, "ada-alt")

    updated = context.users.link_secondary(user, linked)

    stored = context.store.get_user(updated.id)
    assert stored.auth_record_id == user.auth_record_id
    assert stored.linked_auth_record_id == linked.id


def test_touch_last_seen_is_throttled(context: AuthContext, acme: FakeProvider) -> None:
    user = context.users.login_or_signup(seed_record(context, acme, "ada"))
    throttle = timedelta(minutes=5)
    now = user.last_seen_at

    assert context.users.touch_last_seen(user, throttle=throttle, now=now + timedelta(minutes=1)) is False
    assert context.users.touch_last_seen(user, throttle=throttle, now=now + timedelta(minutes=6)) is True
    assert context.store.get_user(user.id).last_seen_at == now + timedelta(minutes=6)
    assert context.users.touch_last_seen(user, throttle=throttle, now=now + timedelta(minutes=7)) is False


def test_touch_last_seen_writes_for_never_seen_user(
    context: AuthContext, acme: FakeProvider
) -> None:
    user = context.users.login_or_signup(seed_record(context, acme, "ada"))
    user.last_seen_at = None

    assert context.users.touch_last_seen(user, throttle=timedelta(minutes=5), now=utcnow()) is True
