"""
Quick Thoughts Backend: Test Configuration (conftest.py)
==========================================================

What:  Shared pytest fixtures for the test suite.
How:   Environment variables are set at the top of this module, before any
       quickthoughts import, so the settings singleton, the engine and the
       Gemini client are built with test values.

Fixtures:
    mock_db_session   AsyncMock standing in for AsyncSession
    user              AuthenticatedUser returned by the overridden auth dependency
    constraint        ClassificationConstraint ["Unsorted", "Work", "Personal"]
    sample_wav_bytes  tiny valid WAV payload
    test_client       httpx AsyncClient against the app, auth + DB overridden
    anon_client       httpx AsyncClient against the app, real auth dependency
"""

import io
import os
import wave
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["SUPABASE_URL"] = "https://test-project.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["LOG_LEVEL"] = "WARNING"

from quickthoughts.auth import AuthenticatedUser, get_current_user  # noqa: E402
from quickthoughts.database import get_db_session  # noqa: E402
from quickthoughts.domain import ClassificationConstraint  # noqa: E402


@pytest.fixture
def mock_db_session():
    """
    AsyncSession stand-in.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = folder
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def user():
    return AuthenticatedUser(id=uuid4(), email="tester@example.com")


@pytest.fixture
def constraint():
    return ClassificationConstraint.from_names(["Unsorted", "Work", "Personal"])


@pytest.fixture
def sample_wav_bytes():
    """Half a second of 16 kHz mono silence."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as handle:
        handle.setnchannels(1)
        handle.setsampwidth(2)
        handle.setframerate(16_000)
        handle.writeframes(b"\x00\x00" * 8_000)
    return buffer.getvalue()


@pytest_asyncio.fixture
async def test_client(user, mock_db_session):
    """
    Client for route tests with the caller and the session injected.

    Service singletons are patched per test with unittest.mock.patch.
    """
    from quickthoughts.main import app

    async def override_db():
        yield mock_db_session

    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_db_session] = override_db
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def anon_client(mock_db_session):
    """Client whose requests go through the real token check."""
    from quickthoughts.main import app

    async def override_db():
        yield mock_db_session

    app.dependency_overrides[get_db_session] = override_db
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
