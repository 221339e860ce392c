"""
Database Session Management

Provides async engine and session factories for the local state database.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool


def get_async_url(url: str) -> str:
    """Convert sync database URL to async version."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def create_state_engine(database_url: str) -> AsyncEngine:
    """
    Create async engine for the given SQLite URL.

    One connection per session; aiosqlite connections are bound to a loop.
    """
    return create_async_engine(
        get_async_url(database_url),
        connect_args={"check_same_thread": False},
        poolclass=NullPool
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Async session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create tables if they do not exist."""
    from course_sync.models.base import Base
    # Import all models to register them
    from course_sync.models import local_state  # noqa

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
