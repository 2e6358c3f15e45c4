"""
Songkick sign-in.

Songkick access tokens never expire, so refreshing returns the token
unchanged and sessions are re-verified purely on the reauth interval. The user
details endpoint additionally requires the application's API key.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Tuple, Union

import httpx
from pydantic import BaseModel, Field

from jukebox.core.config import SongkickSettings

from .base import (
    ExchangeError,
    ProviderDescriptor,
    Token,
    UserProfile,
    build_authorization_url,
    decode_profile,
    get_profile_json,
    parse_token_payload,
    post_token_request,
)


class SongkickUser(BaseModel):
    id: Union[int, str]
    username: str


class SongkickResults(BaseModel):
    user: SongkickUser


class SongkickResultsPage(BaseModel):
    results: SongkickResults


class SongkickUserEnvelope(BaseModel):
    """``users/:me.json`` wraps the user in ``resultsPage.results``."""

    results_page: SongkickResultsPage = Field(..., alias="resultsPage")


class SongkickProvider:
    NAME = "Songkick"
    AUTH_URL = "https://www.songkick.com/oauth/login"
    TOKEN_URL = "https://www.songkick.com/oauth/exchange"
    USER_URL = "https://api.songkick.com/api/3.0/users/:me.json"
    AVATAR_URL = "https://images.sk-static.com/images/media/profile_images/users/{id}/col2"
    SCOPES: Tuple[str, ...] = ()
    REAUTH_INTERVAL = timedelta(minutes=15)

    expiring_tokens = False

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        *,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.descriptor = descriptor
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_credentials(
        cls,
        credentials: SongkickSettings,
        *,
        redirect_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SongkickProvider":
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
        return cls(
            descriptor,
            api_key=credentials.api_key or "",
            timeout=timeout,
            transport=transport,
        )

    def build_login_url(self, state: str) -> str:
        return build_authorization_url(self.descriptor, state)

    async def exchange_code(self, code: str) -> Token:
        # Songkick rejects credentials in the Authorization header.
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
        token = parse_token_payload(self.descriptor, payload, error_cls=ExchangeError)
        return token.without_expiry()

    async def fetch_identity(self, token: Token) -> Tuple[str, UserProfile]:
        payload = await get_profile_json(
            self.descriptor,
            self.USER_URL,
            token=token,
            timeout=self._timeout,
            transport=self._transport,
            params={
                "oauth_token": token.access_token,
                "oauth_version": "v2-10",
                "apikey": self._api_key,
            },
        )
        envelope = decode_profile(self.descriptor, SongkickUserEnvelope, payload)
        user = envelope.results_page.results.user
        identity_id = str(user.id)
        profile = UserProfile(
            name=user.username,
            avatar_url=self.AVATAR_URL.format(id=identity_id),
            username=user.username,
        )
        return identity_id, profile

    async def refresh_token(self, token: Token) -> Token:
        return token


__all__ = ["SongkickProvider", "SongkickUserEnvelope"]
