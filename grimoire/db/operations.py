"""
Database CRUD operations for local storage entries.

Each function works on one key; there are no cross-key transactions.
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from grimoire.models.db import StorageEntryDB


async def get_value(session: AsyncSession, key: str) -> str | None:
    """
    Get the stored text for a key.

    Returns None if the key is absent.
    """
    result = await session.execute(select(StorageEntryDB.value).where(StorageEntryDB.key == key))
    return result.scalar_one_or_none()


async def set_value(session: AsyncSession, key: str, value: str) -> None:
    """Create or replace the stored text for a key."""
    entry = await session.get(StorageEntryDB, key)
    if entry is None:
        session.add(StorageEntryDB(key=key, value=value))
    else:
        entry.value = value
    await session.flush()


async def delete_value(session: AsyncSession, key: str) -> bool:
    """
    Delete a key.

    Returns True if deleted, False if not found.
    """
    result = await session.execute(delete(StorageEntryDB).where(StorageEntryDB.key == key))
    return bool(result.rowcount)


async def list_keys(session: AsyncSession) -> list[str]:
    """All stored keys, sorted."""
    result = await session.execute(select(StorageEntryDB.key).order_by(StorageEntryDB.key))
    return list(result.scalars().all())
