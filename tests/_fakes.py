"""In-memory identity providers and context builders shared by the tests."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import timedelta
from pathlib import Path

from jukebox.clients.providers import (
    ExchangeError,
    IdentityFetchError,
    ProviderDescriptor,
    ProviderRegistry,
    RefreshError,
    Token,
    UserProfile,
)
from jukebox.clients.providers.base import build_authorization_url
from jukebox.core.config import AppSettings, ReauthSettings, SecuritySettings
from jukebox.dependencies import AuthContext, build_auth_context
from jukebox.models import AuthRecord, User, utcnow

SIGNING_SECRET = "test-signing-secret"


class FakeProvider:
    """
    Provider whose identity is the access token prefix before ``:``.

    Exchanging code ``ada`` yields token ``ada:1``; each refresh bumps the
    counter, so the identity survives refreshes.
    """

    def __init__(
        self,
        name: str = "Acme",
        *,
        reauth_interval: timedelta = timedelta(minutes=15),
        expiring: bool = True,
    ) -> None:
        slug = name.lower()
        self.descriptor = ProviderDescriptor(
            name=name,
            client_id=f"{slug}-client",
            client_secret=f"{slug}-secret",
            auth_url=f"https://{slug}.example/oauth/authorize",
            token_url=f"https://{slug}.example/oauth/token",
            scopes=("profile",),
            redirect_url=f"http://testserver/auth/callback/{slug}",
            reauth_interval=reauth_interval,
        )
        self.expiring_tokens = expiring
        self.exchanged: list[str] = []
        self.fetched: list[Token] = []
        self.refreshed: list[Token] = []
        self.failing_identities: set[str] = set()
        self.fail_refresh = False

    def token_for(self, identity: str, *, expires_in: timedelta = timedelta(hours=1)) -> Token:
        if not self.expiring_tokens:
            return Token(access_token=f"{identity}:1")
        return Token(
            access_token=f"{identity}:1",
            refresh_token=f"{identity}-refresh",
            expires_at=utcnow() + expires_in,
        )

    def build_login_url(self, state: str) -> str:
        return build_authorization_url(self.descriptor, state)

    async def exchange_code(self, code: str) -> Token:
        self.exchanged.append(code)
        if code == "bad-code":
            raise ExchangeError("Token endpoint returned 400.", provider=self.descriptor.slug)
        return self.token_for(code)

    async def fetch_identity(self, token: Token) -> tuple[str, UserProfile]:
        self.fetched.append(token)
        identity = token.access_token.split(":", 1)[0]
        if identity in self.failing_identities:
            raise IdentityFetchError(
                "Could not get user data: 401",
                provider=self.descriptor.slug,
                reason=IdentityFetchError.TRANSPORT,
            )
        return identity, UserProfile(
            name=identity.title(),
            avatar_url=f"https://img.example/{identity}.png",
            username=f"{identity}@example.com",
        )

    async def refresh_token(self, token: Token) -> Token:
        self.refreshed.append(token)
        if not self.expiring_tokens:
            return token
        if self.fail_refresh:
            raise RefreshError("Token endpoint returned 400.", provider=self.descriptor.slug)
        identity, _, counter = token.access_token.partition(":")
        return Token(
            access_token=f"{identity}:{int(counter or 0) + 1}",
            refresh_token=token.refresh_token,
            expires_at=utcnow() + timedelta(hours=1),
        )


def make_context(tmp_path: Path, *providers: FakeProvider, **overrides) -> AuthContext:
    settings = AppSettings(
        base_url="http://testserver",
        database_path=str(tmp_path / "jukebox.db"),
        configured_providers=tuple(p.descriptor.slug for p in providers),
        security=SecuritySettings(secret=SIGNING_SECRET),
        reauth=ReauthSettings(enabled=False),
        **overrides,
    )
    return build_auth_context(settings, providers=ProviderRegistry(providers))


def seed_record(
    context: AuthContext,
    provider: FakeProvider,
    identity: str = "ada",
    *,
    authenticated_ago: timedelta = timedelta(0),
    expires_in: timedelta = timedelta(hours=1),
) -> AuthRecord:
    token = provider.token_for(identity, expires_in=expires_in)
    return context.store.upsert_auth_record(
        AuthRecord(
            provider=provider.descriptor.slug,
            provider_identity_id=identity,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_expiry=token.expires_at,
            last_authenticated_at=utcnow() - authenticated_ago,
            name=identity.title(),
        )
    )


def seed_session(
    context: AuthContext,
    provider: FakeProvider,
    identity: str = "ada",
    **record_options,
) -> tuple[User, AuthRecord, str]:
    """Store an auth record and its user; returns ``(user, record, cookie_value)``."""
    record = seed_record(context, provider, identity, **record_options)
    user = context.users.login_or_signup(record)
    return user, record, context.codec.sign(str(user.id))


def session_headers(context: AuthContext, cookie_value: str) -> dict[str, str]:
    return {"cookie": f"{context.settings.session.cookie_name}={cookie_value}"}
