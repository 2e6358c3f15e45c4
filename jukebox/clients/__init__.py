"""Expose constructed client wrappers.

``SQLiteStore`` is imported from ``jukebox.clients.sqlite_store`` directly
because it depends on the models that depend on the provider types.
"""

from .providers import (
    GoogleProvider,
    IdentityProvider,
    ProviderRegistry,
    SongkickProvider,
    SpotifyProvider,
    build_provider_registry,
)
from .signed_value import SignatureInvalidError, SignedValueCodec

__all__ = [
    "GoogleProvider",
    "IdentityProvider",
    "ProviderRegistry",
    "SignatureInvalidError",
    "SignedValueCodec",
    "SongkickProvider",
    "SpotifyProvider",
    "build_provider_registry",
]
