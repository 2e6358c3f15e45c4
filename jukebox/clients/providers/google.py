"""
Google sign-in.

Google issues expiring access tokens plus a long-lived refresh token when the
consent screen is requested with ``access_type=offline``.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Tuple

import httpx
from pydantic import BaseModel

from jukebox.core.config import ProviderCredentials

from .base import (
    ExchangeError,
    ProviderDescriptor,
    RefreshError,
    Token,
    UserProfile,
    build_authorization_url,
    decode_profile,
    get_profile_json,
    parse_token_payload,
    post_token_request,
)


class GoogleUserInfo(BaseModel):
    """Subset of the ``oauth2/v2/userinfo`` response."""

    id: str
    name: str
    picture: Optional[str] = None
    email: Optional[str] = None


class GoogleProvider:
    """Build Google authorization URLs, exchange codes and fetch profiles."""

    NAME = "Google"
    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    SCOPES = ("profile", "email")
    REAUTH_INTERVAL = timedelta(minutes=15)

    expiring_tokens = True

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.descriptor = descriptor
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_credentials(
        cls,
        credentials: ProviderCredentials,
        *,
        redirect_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GoogleProvider":
        reauth = cls.REAUTH_INTERVAL
        if credentials.reauth_minutes:
            reauth = timedelta(minutes=credentials.reauth_minutes)
        descriptor = ProviderDescriptor(
            name=cls.NAME,
            client_id=credentials.client_id or "",
            client_secret=credentials.client_secret or "",
            auth_url=cls.AUTH_URL,
            token_url=cls.TOKEN_URL,
            scopes=cls.SCOPES,
            redirect_url=redirect_url,
            reauth_interval=reauth,
        )
        return cls(descriptor, timeout=timeout, transport=transport)

    def build_login_url(self, state: str) -> str:
        return build_authorization_url(
            self.descriptor,
            state,
            {"access_type": "offline", "prompt": "consent"},
        )

    async def exchange_code(self, code: str) -> Token:
        payload = await post_token_request(
            self.descriptor,
            {
                "code": code,
                "redirect_uri": self.descriptor.redirect_url,
                "grant_type": "authorization_code",
            },
            error_cls=ExchangeError,
            timeout=self._timeout,
            transport=self._transport,
        )
        return parse_token_payload(self.descriptor, payload, error_cls=ExchangeError)

    async def fetch_identity(self, token: Token) -> Tuple[str, UserProfile]:
        payload = await get_profile_json(
            self.descriptor,
            self.USERINFO_URL,
            token=token,
            timeout=self._timeout,
            transport=self._transport,
        )
        info = decode_profile(self.descriptor, GoogleUserInfo, payload)
        profile = UserProfile(name=info.name, avatar_url=info.picture, username=info.email)
        return info.id, profile

    async def refresh_token(self, token: Token) -> Token:
        if not token.refresh_token:
            raise RefreshError("No refresh token available.", provider=self.descriptor.slug)
        payload = await post_token_request(
            self.descriptor,
            {"refresh_token": token.refresh_token, "grant_type": "refresh_token"},
            error_cls=RefreshError,
            timeout=self._timeout,
            transport=self._transport,
        )
        return parse_token_payload(
            self.descriptor, payload, error_cls=RefreshError, previous=token
        )


__all__ = ["GoogleProvider", "GoogleUserInfo"]
