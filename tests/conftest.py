"""Test configuration for importing the application package."""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

# Settings are read at import time; keep tests independent from a developer .env.
os.environ.setdefault("REHEARSAL_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("REHEARSAL_ENV_FILE", os.devnull)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.api.deps import get_finalize_session_factory, get_generation_model, get_read_cache  # noqa: E402
from app.core.cache import TaggedCache  # noqa: E402
from app.core.database import get_db  # noqa: E402
from app.core.security import Principal  # noqa: E402
from app.main import app  # noqa: E402
from tests.factories import FakeModel  # noqa: E402


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def mock_db_session():
  session = AsyncMock()
  session.add = MagicMock()
  # Mock execute result
  result = MagicMock()
  result.scalar_one_or_none.return_value = None
  result.scalar_one.return_value = 0
  session.execute.return_value = result
  return session


@pytest.fixture
def override_get_db(mock_db_session):
  async def _get_db():
    yield mock_db_session

  return _get_db


@pytest.fixture
def cache():
  return TaggedCache(ttl_seconds=60, max_entries=128)


@pytest.fixture
def principal():
  return Principal(user_id=uuid.uuid4(), firebase_uid="uid-1", email="candidate@example.com", claims={"uid": "uid-1", "features": []})


@pytest.fixture
def finalize_session():
  session = AsyncMock()
  session.add = MagicMock()
  return session


@pytest.fixture
def session_factory(finalize_session):
  @asynccontextmanager
  async def _factory() -> AsyncIterator[AsyncMock]:
    yield finalize_session

  return _factory


@pytest.fixture
def fake_model():
  return FakeModel(["What is ", "a closure", "?"])


@pytest.fixture
async def async_client(override_get_db, cache, fake_model, session_factory):
  app.dependency_overrides[get_db] = override_get_db
  app.dependency_overrides[get_read_cache] = lambda: cache
  app.dependency_overrides[get_generation_model] = lambda: fake_model
  app.dependency_overrides[get_finalize_session_factory] = lambda: session_factory
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
