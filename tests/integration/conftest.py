import os
import uuid
from collections.abc import AsyncGenerator
from pathlib import Path

import psycopg
import pytest
import pytest_asyncio

from photo_pipeline.config.settings import Settings
from photo_pipeline.database.connection import build_conninfo, close_pool, get_connection, init_pool

_SCHEMA_PATH = Path(__file__).resolve().parents[2] / "photo_pipeline" / "database" / "schema.sql"


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "photos_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest_asyncio.fixture()
async def integration_pool(test_settings: Settings) -> AsyncGenerator[None, None]:
    try:
        probe = await psycopg.AsyncConnection.connect(
            build_conninfo(test_settings), connect_timeout=3
        )
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run integration tests")
    async with probe:
        await probe.execute(_SCHEMA_PATH.read_text(encoding="utf-8"))
        await probe.commit()

    await init_pool(test_settings)
    try:
        yield
    finally:
        await close_pool()


@pytest_asyncio.fixture()
async def test_user(integration_pool: None) -> AsyncGenerator[str, None]:
    """A fresh user id; its photos and posts are deleted afterwards."""
    user_id = f"it-{uuid.uuid4().hex[:12]}"
    yield user_id
    async with get_connection() as conn:
        await conn.execute(
            "DELETE FROM post_photos WHERE photo_id IN (SELECT id FROM photos WHERE user_id = %s)",
            (user_id,),
        )
        await conn.execute("DELETE FROM photos WHERE user_id = %s", (user_id,))
        await conn.execute("DELETE FROM posts WHERE author_id = %s", (user_id,))
        await conn.commit()

