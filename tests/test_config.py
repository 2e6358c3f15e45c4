try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from jukebox.core.config import AppSettings, SecuritySettings, SessionSettings


def _settings(**overrides) -> AppSettings:
    return AppSettings(security=SecuritySettings(secret="s"), **overrides)


def test_configured_providers_accepts_comma_separated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JB_CONFIGURED_PROVIDERS", "google, songkick,,")

    assert _settings().configured_providers == ("google", "songkick")


def test_callback_url_uses_base_url() -> None:
    settings = _settings(base_url="https://jukebox.example/")

    assert settings.callback_url("spotify") == "https://jukebox.example/auth/callback/spotify"


def test_cookie_secure_follows_environment_unless_overridden() -> None:
    assert _settings().cookie_secure is False
    assert _settings(environment="production").cookie_secure is True
    assert (
        _settings(environment="production", session=SessionSettings(cookie_secure=False)).cookie_secure
        is False
    )


def test_secret_is_required(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JB_SECRET", raising=False)

    with pytest.raises(ValueError):
        SecuritySettings()


def test_token_secret_falls_back_to_signing_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JB_PREVIOUS_TOKEN_ENCRYPTION_SECRETS", "old-1,old-2")

    security = SecuritySettings(secret="signing")

    assert security.token_secret == "signing"
    assert security.previous_token_encryption_secrets == ("old-1", "old-2")
    assert SecuritySettings(secret="s", token_encryption_secret="t").token_secret == "t"
