"""Shared pytest fixtures for the Rabin Messenger test suite."""

import os
import tempfile

import pytest

os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'rabin_messenger_test.db')}",
)

from httpx import ASGITransport, AsyncClient  # noqa: E402

from rabin_messenger.db import get_engine, init_db, reset_db  # noqa: E402
from rabin_messenger.main import app, get_keyring  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
async def engine():
    """Provide a ready-to-use async engine with clean tables."""
    eng = get_engine()
    await init_db(eng)
    await reset_db(eng)
    return eng


@pytest.fixture()
def keyring():
    """The application's session key ring, emptied before and after each test."""
    ring = get_keyring()
    ring.clear()
    yield ring
    ring.clear()


@pytest.fixture()
async def client(engine, keyring):
    """Provide an async HTTP test client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
