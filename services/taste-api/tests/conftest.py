"""Shared fixtures: SQLite database, fakeredis cache, in-memory note store."""
import os
import tempfile

# Must be set before taste_api.config is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="taste-api-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/taste.db"
os.environ["OTEL_ENABLED"] = "false"

import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from factories import FakeNoteStore  # noqa: E402
from taste_api.clients import redis_client  # noqa: E402
from taste_api.database import AsyncSessionLocal, Base, engine, init_db  # noqa: E402
from taste_api.matching.service import TasteMatchingService  # noqa: E402


@pytest.fixture
async def redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    redis_client.set_redis(client)
    yield client
    redis_client.set_redis(None)
    await client.aclose()


@pytest.fixture
async def tables():
    await init_db()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db(tables):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def note_store():
    return FakeNoteStore()


@pytest.fixture
def matching(note_store, redis):
    return TasteMatchingService(note_store)


@pytest.fixture
async def client(tables, redis, note_store):
    from taste_api.dependencies import get_note_store
    from taste_api.main import app

    app.dependency_overrides[get_note_store] = lambda: note_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
