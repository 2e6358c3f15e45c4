"""Slug-keyed registry of the providers configured at startup."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, Optional

import httpx

from jukebox.core.config import AppSettings

from .base import IdentityProvider
from .google import GoogleProvider
from .songkick import SongkickProvider
from .spotify import SpotifyProvider

logger = logging.getLogger(__name__)

_PROVIDER_CLASSES = {
    "google": GoogleProvider,
    "spotify": SpotifyProvider,
    "songkick": SongkickProvider,
}


class ProviderRegistry(Mapping):
    """Read-only mapping of provider slug to provider."""

    def __init__(self, providers: Iterable[IdentityProvider]) -> None:
        self._providers: Dict[str, IdentityProvider] = {}
        for provider in providers:
            slug = provider.descriptor.slug
            if slug in self._providers:
                raise ValueError(f"Provider {slug!r} registered twice.")
            self._providers[slug] = provider

    def __getitem__(self, slug: str) -> IdentityProvider:
        return self._providers[slug]

    def __iter__(self) -> Iterator[str]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def find(self, slug: Optional[str]) -> Optional[IdentityProvider]:
        if not slug:
            return None
        return self._providers.get(slug)


def build_provider_registry(
    settings: AppSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRegistry:
    """Instantiate every configured provider from settings."""
    providers = []
    for slug in settings.configured_providers:
        provider_cls = _PROVIDER_CLASSES.get(slug)
        if provider_cls is None:
            raise ValueError(f"Was asked to load {slug!r} provider but it doesn't exist.")

        credentials = settings.provider_credentials(slug)
        if credentials is None or not credentials.configured:
            raise ValueError(
                f"Auth provider {slug!r} supplied but not configured. "
                "Add the provider's auth keys to the environment."
            )

        providers.append(
            provider_cls.from_credentials(
                credentials,
                redirect_url=settings.callback_url(slug),
                timeout=settings.http_timeout_seconds,
                transport=transport,
            )
        )
        logger.debug("Loaded auth provider", extra={"provider": slug})

    return ProviderRegistry(providers)


__all__ = ["ProviderRegistry", "build_provider_registry"]
