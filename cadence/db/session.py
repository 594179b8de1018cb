# cadence/db/session.py
import os
from collections.abc import AsyncGenerator

from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from cadence.core.config import get_settings
from cadence.db.base import Base

# Register ORM models on Base.metadata before any create_all/drop_all.
from cadence.models import meeting_series  # noqa: F401

settings = get_settings()

IS_TEST = "PYTEST_CURRENT_TEST" in os.environ or settings.APP_ENV == "test"

engine = create_async_engine(
    settings.DB_URL,
    echo=False,
    future=True,
    # Tests drive the engine from several event loops (TestClient + asyncio
    # tests), so connections must not be pooled across them.
    poolclass=NullPool if IS_TEST else None,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped AsyncSession; closed once the response is sent.
    """
    async with AsyncSessionLocal() as session:
        yield session


async def init_db_for_startup() -> None:
    """
    Create the meeting_series table (and its indexes) when missing.

    Existing tables are left as they are; column changes to an existing
    database are not applied here.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _build_sync_db_url(async_url: str) -> str:
    """
    Convert an async driver URL to its synchronous counterpart:
    'postgresql+asyncpg://...' -> 'postgresql://...',
    'sqlite+aiosqlite://...'  -> 'sqlite://...'.
    """
    for async_driver in ("+asyncpg", "+aiosqlite"):
        if async_driver in async_url:
            return async_url.replace(async_driver, "")
    return async_url


def reset_schema_sync() -> None:
    """
    Drop and recreate every table through a short-lived synchronous engine,
    so plain pytest fixtures can call it without an event loop.
    """
    sync_url = _build_sync_db_url(settings.DB_URL)
    sync_engine = create_sync_engine(sync_url, future=True)

    with sync_engine.begin() as conn:
        Base.metadata.drop_all(bind=conn)
        Base.metadata.create_all(bind=conn)

    sync_engine.dispose()
