"""
Local state repository.

Data access layer for the key/value table behind SessionStore.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from course_sync.models.local_state import LocalStateEntry
from course_sync.shared.repository import BaseRepository


class LocalStateRepository(BaseRepository[LocalStateEntry]):
    """Repository for stored values."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, LocalStateEntry)

    async def get_value(self, key: str) -> str | None:
        entry = await self.get(key)
        return entry.value if entry else None

    async def set_value(self, key: str, value: str) -> None:
        """Insert or overwrite ``key``."""
        await self.upsert("key", key=key, value=value, updated_at=datetime.utcnow())

    async def delete_key(self, key: str) -> bool:
        """
        Delete ``key``.

        Returns True if a value was deleted.
        """
        entry = await self.get(key)
        if entry is None:
            return False
        await self.delete(entry)
        return True
