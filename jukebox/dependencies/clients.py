"""
Construction of the shared, read-only auth context and its FastAPI accessors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional

import httpx
from fastapi import FastAPI, Request

from jukebox.clients import ProviderRegistry, SignedValueCodec, build_provider_registry
from jukebox.clients.sqlite_store import SQLiteStore
from jukebox.core.config import AppSettings, get_settings
from jukebox.services import AuthRecordService, TokenCipherService, UserService


@dataclass(frozen=True)
class AuthContext:
    """Everything the middleware, routes and scheduler share. Built once at startup."""

    settings: AppSettings
    codec: SignedValueCodec
    providers: ProviderRegistry
    store: SQLiteStore
    auth_records: AuthRecordService
    users: UserService


def build_auth_context(
    settings: AppSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    providers: Optional[ProviderRegistry] = None,
) -> AuthContext:
    """Wire the codec, provider registry, store and services from settings."""
    security = settings.security
    cipher = TokenCipherService(
        secret=security.token_secret,
        previous_secrets=security.previous_token_encryption_secrets,
    )
    store = SQLiteStore(settings.database_path, cipher=cipher)
    if providers is None:
        providers = build_provider_registry(settings, transport=transport)
    return AuthContext(
        settings=settings,
        codec=SignedValueCodec(secret_key=security.secret),
        providers=providers,
        store=store,
        auth_records=AuthRecordService(
            store, lead_time=timedelta(seconds=settings.reauth.lead_time_seconds)
        ),
        users=UserService(store),
    )


@lru_cache()
def get_default_auth_context() -> AuthContext:
    """Build the process-wide context from environment settings."""
    return build_auth_context(get_settings())


def resolve_auth_context(app: FastAPI) -> AuthContext:
    context = getattr(app.state, "auth_context", None)
    if context is None:
        context = get_default_auth_context()
        app.state.auth_context = context
    return context


def get_auth_context(request: Request) -> AuthContext:
    """FastAPI dependency returning the application's auth context."""
    return resolve_auth_context(request.app)


__all__ = [
    "AuthContext",
    "build_auth_context",
    "get_auth_context",
    "get_default_auth_context",
    "resolve_auth_context",
]
