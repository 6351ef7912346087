"""Async engine and session factory shared by every cm_* module.

Repositories receive the AsyncSession from the caller; transaction
boundaries (commit / rollback) belong to the application services.
Background work (the activation scheduler) opens its own sessions from
async_session_factory instead of going through get_db_session.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

# expire_on_commit=False: services keep reading domain rows after commit.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request.

    Anything left uncommitted when the request ends is rolled back by
    the session context manager.
    """
    async with async_session_factory() as session:
        yield session
