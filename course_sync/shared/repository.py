"""
Base repository with common CRUD operations.

Uses SQLAlchemy async session for non-blocking database access.
Writes use SQLite's INSERT ... ON CONFLICT, the only backend the
local state lives in.

Usage:
    class LocalStateRepository(BaseRepository[LocalStateEntry]):
        def __init__(self, db: AsyncSession):
            super().__init__(db, LocalStateEntry)
"""

from typing import Generic, Type, TypeVar

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base repository for database operations.

    All methods are async for use with AsyncSession.
    Callers own the transaction (commit/rollback).
    """

    def __init__(self, db: AsyncSession, model: Type[T]):
        """
        Initialize repository.

        Args:
            db: Async database session
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model

    async def get(self, pk) -> T | None:
        """Get entity by primary key."""
        return await self.db.get(self.model, pk)

    async def upsert(self, key_column: str, **values) -> None:
        """
        Insert a row, or update it in place if ``key_column`` already exists.

        Column ``onupdate`` hooks do not fire on the update path; pass
        such columns explicitly.
        """
        stmt = sqlite_insert(self.model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[key_column],
            set_={k: v for k, v in values.items() if k != key_column}
        )
        await self.db.execute(stmt)

    async def delete(self, entity: T) -> None:
        """Delete entity."""
        await self.db.delete(entity)
        await self.db.flush()
