"""OAuth2 identity providers."""

from .base import (
    ExchangeError,
    IdentityFetchError,
    IdentityProvider,
    ProviderDescriptor,
    ProviderError,
    RefreshError,
    Token,
    UserProfile,
)
from .google import GoogleProvider
from .registry import ProviderRegistry, build_provider_registry
from .songkick import SongkickProvider
from .spotify import SpotifyProvider

__all__ = [
    "ExchangeError",
    "GoogleProvider",
    "IdentityFetchError",
    "IdentityProvider",
    "ProviderDescriptor",
    "ProviderError",
    "ProviderRegistry",
    "RefreshError",
    "SongkickProvider",
    "SpotifyProvider",
    "Token",
    "UserProfile",
    "build_provider_registry",
]
