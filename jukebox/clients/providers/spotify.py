"""Spotify sign-in. Spotify tokens expire hourly and are refreshed via Basic auth."""

from __future__ import annotations

from datetime import timedelta
from typing import List, Optional, Tuple

import httpx
from pydantic import BaseModel, Field

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


class SpotifyImage(BaseModel):
    url: str
    width: Optional[int] = None


class SpotifyUser(BaseModel):
    """Subset of the ``/v1/me`` response."""

    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    images: List[SpotifyImage] = Field(default_factory=list)

    def widest_image(self) -> Optional[str]:
        best: Optional[SpotifyImage] = None
        for image in self.images:
            if best is None or (image.width or 0) > (best.width or 0):
                best = image
        return best.url if best else None


class SpotifyProvider:
    NAME = "Spotify"
    AUTH_URL = "https://accounts.spotify.com/authorize"
    TOKEN_URL = "https://accounts.spotify.com/api/token"
    PROFILE_URL = "https://api.spotify.com/v1/me"
    SCOPES = (
        "playlist-read-private",
        "playlist-read-collaborative",
        "user-follow-read",
        "user-library-read",
        "user-read-private",
        "user-read-email",
    )
    REAUTH_INTERVAL = timedelta(minutes=30)

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
    ) -> "SpotifyProvider":
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
        return build_authorization_url(self.descriptor, state, {"show_dialog": "true"})

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
            basic_auth=True,
        )
        return parse_token_payload(self.descriptor, payload, error_cls=ExchangeError)

    async def fetch_identity(self, token: Token) -> Tuple[str, UserProfile]:
        payload = await get_profile_json(
            self.descriptor,
            self.PROFILE_URL,
            token=token,
            timeout=self._timeout,
            transport=self._transport,
        )
        user = decode_profile(self.descriptor, SpotifyUser, payload)
        profile = UserProfile(
            name=user.display_name or user.id,
            avatar_url=user.widest_image(),
            username=user.email,
        )
        return user.id, profile

    async def refresh_token(self, token: Token) -> Token:
        if not token.refresh_token:
            raise RefreshError("No refresh token available.", provider=self.descriptor.slug)
        payload = await post_token_request(
            self.descriptor,
            {"refresh_token": token.refresh_token, "grant_type": "refresh_token"},
            error_cls=RefreshError,
            timeout=self._timeout,
            transport=self._transport,
            basic_auth=True,
        )
        return parse_token_payload(
            self.descriptor, payload, error_cls=RefreshError, previous=token
        )


__all__ = ["SpotifyProvider", "SpotifyUser"]
