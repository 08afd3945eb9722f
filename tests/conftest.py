"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (aiosqlite). StaticPool
   keeps the single connection alive so every query sees the same tables.
2. The schema is created from the ORM metadata, then thrown away with the
   engine after the test. No cross-test pollution, no Postgres needed.
3. The HTTP client overrides get_db so every request shares that session.

Environment is set before the app is imported: the settings singleton
reads it once.
"""

import os
import tempfile

os.environ.setdefault(
    "ECORIDE_DATABASE_URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "ecoride_auth_test.db"),
)
os.environ.setdefault("ECORIDE_BCRYPT_ROUNDS", "4")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ecoride_auth.db.engine import get_db  # noqa: E402
from ecoride_auth.db.models import Base  # noqa: E402
from ecoride_auth.main import app  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session over a brand new in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def client(db_session):
    """HTTP client with the app's get_db overridden for testing.

    Auth is NOT overridden: profile tests go through the real
    access-token pipeline.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
