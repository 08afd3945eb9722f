"""Async SQLAlchemy engine and session factory.

Learn: Pool sizing and the connection checkout timeout come from Settings.
Checkout waits are capped by store_timeout_seconds, the same bound the
UserStore applies to every query, so a starved pool fails as fast as a
slow query does. SQLite (tests, local runs) has no pool to size.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ecoride_auth.config import Settings, settings


def engine_options(config: Settings) -> dict:
    """Keyword arguments for create_async_engine, per backend."""
    options = {"echo": config.debug}
    if make_url(config.database_url).get_backend_name() == "sqlite":
        return options
    options.update(
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_timeout=config.store_timeout_seconds,
        pool_pre_ping=True,
    )
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency: one session per request.

    Anything the request flushed but never committed (a flow that raised
    halfway) is rolled back before the session goes back to the pool.
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()
            await session.close()
