"""Pytest configuration shared across the suite."""

from pathlib import Path

import httpx
import pytest

from _fakes import FakeProvider, make_context
from jukebox.dependencies import AuthContext
from jukebox.main import create_app


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def acme() -> FakeProvider:
    return FakeProvider("Acme")


@pytest.fixture
def context(tmp_path: Path, acme: FakeProvider) -> AuthContext:
    return make_context(tmp_path, acme)


@pytest.fixture
async def client(context: AuthContext):
    app = create_app(context)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        yield client
