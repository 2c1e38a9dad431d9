"""Async database engine and request-scoped sessions.

Each request gets its own AsyncSession. Races between requests (two
verifies of one code, two issues for one email) are settled in PostgreSQL
by conditional UPDATEs and row locks, never by in-process locking, so any
number of app instances can share the database.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; commit when the endpoint returns, roll back if it raises.

    Services that must persist state before raising (failed attempt
    counts, a code issued before delivery fails) commit on their own.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
