"""
Shared OAuth2 provider types and helpers.

Every provider implements the full ``IdentityProvider`` capability set. The
free functions below cover the parts of the OAuth dance that are identical
across providers; providers call them explicitly rather than inheriting them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol, Tuple, Type, TypeVar, runtime_checkable
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_LEAD_TIME = timedelta(minutes=5)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ProviderError(Exception):
    """Base class for failures talking to an identity provider."""

    def __init__(self, message: str, *, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ExchangeError(ProviderError):
    """Raised when the authorization-code exchange fails."""


class RefreshError(ProviderError):
    """Raised when a refresh-token grant fails."""


class IdentityFetchError(ProviderError):
    """
    Raised when the provider's profile endpoint cannot be used.

    ``reason`` is ``"transport"`` for network failures and non-2xx responses,
    and ``"response"`` when the body is missing or has mistyped fields.
    """

    TRANSPORT = "transport"
    RESPONSE = "response"

    def __init__(self, message: str, *, provider: str = "", reason: str = TRANSPORT) -> None:
        super().__init__(message, provider=provider)
        self.reason = reason


def slugify(value: str) -> str:
    """Lowercase ``value`` and collapse non-alphanumerics into single dashes."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static configuration for one provider; immutable after startup."""

    name: str
    client_id: str
    client_secret: str
    auth_url: str
    token_url: str
    scopes: Tuple[str, ...]
    redirect_url: str
    reauth_interval: timedelta

    @property
    def slug(self) -> str:
        return slugify(self.name)


@dataclass(frozen=True)
class Token:
    """OAuth token material as issued by a provider."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = "Bearer"

    @property
    def expiring(self) -> bool:
        """True when the provider issued an expiring token."""
        return bool(self.refresh_token) or self.expires_at is not None

    def is_expiring_soon(
        self, lead_time: timedelta = DEFAULT_LEAD_TIME, now: Optional[datetime] = None
    ) -> bool:
        if not self.expiring or self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now + lead_time

    def without_expiry(self) -> "Token":
        return replace(self, refresh_token=None, expires_at=None)


class UserProfile(BaseModel):
    """Provider profile normalized to the fields jukebox displays."""

    name: Optional[str] = None
    avatar_url: Optional[str] = None
    username: Optional[str] = None


@runtime_checkable
class IdentityProvider(Protocol):
    """Capability set every OAuth2 identity provider implements."""

    descriptor: ProviderDescriptor
    expiring_tokens: bool

    def build_login_url(self, state: str) -> str:
        ...

    async def exchange_code(self, code: str) -> Token:
        ...

    async def fetch_identity(self, token: Token) -> Tuple[str, UserProfile]:
        ...

    async def refresh_token(self, token: Token) -> Token:
        ...


def build_authorization_url(
    descriptor: ProviderDescriptor,
    state: str,
    extra_params: Optional[Dict[str, str]] = None,
) -> str:
    """Construct the provider's consent URL with ``state`` embedded unmodified."""
    params: Dict[str, str] = {
        "client_id": descriptor.client_id,
        "redirect_uri": descriptor.redirect_url,
        "response_type": "code",
        "state": state,
    }
    if descriptor.scopes:
        params["scope"] = " ".join(descriptor.scopes)
    if extra_params:
        params.update(extra_params)
    separator = "&" if "?" in descriptor.auth_url else "?"
    return f"{descriptor.auth_url}{separator}{urlencode(params)}"


async def post_token_request(
    descriptor: ProviderDescriptor,
    data: Dict[str, str],
    *,
    error_cls: Type[ProviderError],
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    basic_auth: bool = False,
) -> Dict[str, Any]:
    """POST to the token endpoint and return the decoded JSON body."""
    payload = dict(data)
    auth: Optional[Tuple[str, str]] = None
    if basic_auth:
        auth = (descriptor.client_id, descriptor.client_secret)
    else:
        payload["client_id"] = descriptor.client_id
        payload["client_secret"] = descriptor.client_secret

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(
                descriptor.token_url,
                data=payload,
                auth=auth,
                headers={"Accept": "application/json"},
            )
    except httpx.HTTPError as exc:
        raise error_cls(
            f"Token endpoint unreachable: {exc}", provider=descriptor.slug
        ) from exc

    if not response.is_success:
        raise error_cls(
            f"Token endpoint returned {response.status_code}: {response.text}",
            provider=descriptor.slug,
        )

    try:
        body = response.json()
    except ValueError as exc:
        raise error_cls("Token endpoint returned invalid JSON.", provider=descriptor.slug) from exc
    if not isinstance(body, dict):
        raise error_cls("Token endpoint returned a non-object body.", provider=descriptor.slug)
    return body


def parse_token_payload(
    descriptor: ProviderDescriptor,
    payload: Dict[str, Any],
    *,
    error_cls: Type[ProviderError],
    previous: Optional[Token] = None,
) -> Token:
    """Build a ``Token`` from a token-endpoint response."""
    access_token = payload.get("access_token")
    if not access_token or not isinstance(access_token, str):
        raise error_cls(
            "Incomplete token payload returned from provider.", provider=descriptor.slug
        )

    refresh_token = payload.get("refresh_token")
    if not refresh_token and previous is not None:
        # Refresh grants usually omit the refresh token; the old one stays valid.
        refresh_token = previous.refresh_token

    expires_at: Optional[datetime] = None
    expires_in = payload.get("expires_in")
    if expires_in:
        try:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
        except (TypeError, ValueError) as exc:
            raise error_cls(
                f"Invalid expires_in value: {expires_in!r}", provider=descriptor.slug
            ) from exc

    return Token(
        access_token=access_token,
        refresh_token=refresh_token or None,
        expires_at=expires_at,
        token_type=str(payload.get("token_type") or "Bearer"),
    )


async def get_profile_json(
    descriptor: ProviderDescriptor,
    url: str,
    *,
    token: Token,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    params: Optional[Dict[str, str]] = None,
) -> Any:
    """GET a profile endpoint with bearer auth and return decoded JSON."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token.access_token}"},
            )
    except httpx.HTTPError as exc:
        raise IdentityFetchError(
            f"Profile endpoint unreachable: {exc}",
            provider=descriptor.slug,
            reason=IdentityFetchError.TRANSPORT,
        ) from exc

    logger.debug(
        "Fetched user data",
        extra={"provider": descriptor.slug, "status": response.status_code},
    )

    if response.status_code != 200:
        raise IdentityFetchError(
            f"Could not get user data: {response.status_code} {response.text}",
            provider=descriptor.slug,
            reason=IdentityFetchError.TRANSPORT,
        )

    try:
        return response.json()
    except ValueError as exc:
        raise IdentityFetchError(
            "Could not decode profile JSON.",
            provider=descriptor.slug,
            reason=IdentityFetchError.RESPONSE,
        ) from exc


def decode_profile(descriptor: ProviderDescriptor, model: Type[ModelT], payload: Any) -> ModelT:
    """Validate a profile body against the provider's response model."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise IdentityFetchError(
            f"Unexpected profile response: {exc.error_count()} invalid field(s).",
            provider=descriptor.slug,
            reason=IdentityFetchError.RESPONSE,
        ) from exc


__all__ = [
    "DEFAULT_LEAD_TIME",
    "ExchangeError",
    "IdentityFetchError",
    "IdentityProvider",
    "ProviderDescriptor",
    "ProviderError",
    "RefreshError",
    "Token",
    "UserProfile",
    "build_authorization_url",
    "decode_profile",
    "get_profile_json",
    "parse_token_payload",
    "post_token_request",
    "slugify",
]
