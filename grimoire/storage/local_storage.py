"""
Durable key-value storage.

A StorageArea is one tab's view of local storage: string keys to string
values, single-key atomic writes, no transactions across keys. Every write
is published on the shared StorageBroadcast so other tabs observe it.

Backends:
- MemoryBackend: process memory, for tests and throwaway sessions
- DatabaseBackend: SQLAlchemy async session factory (SQLite by default)
"""

import logging
import uuid
from abc import ABC, abstractmethod

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grimoire.db.operations import delete_value, get_value, list_keys, set_value
from grimoire.models.failure import StorageError
from grimoire.services.events import StorageBroadcast, StorageEvent, StorageSubscription

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Where storage values actually live."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def remove(self, key: str) -> None: ...

    @abstractmethod
    async def keys(self) -> list[str]: ...


class MemoryBackend(StorageBackend):
    """
    In-memory backend.

    Args:
        quota_bytes: Optional total size limit; writes past it raise
            StorageError, like a full browser store
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.data: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(k) + len(v) for k, v in self.data.items() if k != key)
            if used + len(key) + len(value) > self.quota_bytes:
                raise StorageError(f"Storage quota exceeded writing {key!r}")
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)

    async def keys(self) -> list[str]:
        return sorted(self.data)


class DatabaseBackend(StorageBackend):
    """Backend storing one row per key through SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                return await get_value(session, key)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                await set_value(session, key, value)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write {key!r}: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                await delete_value(session, key)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to remove {key!r}: {e}") from e

    async def keys(self) -> list[str]:
        try:
            async with self._session_factory() as session:
                return await list_keys(session)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list keys: {e}") from e


class StorageArea:
    """
    One tab's handle on shared durable storage.

    Several areas may share a backend and a broadcast; each write made
    through one area is published to the others.
    """

    def __init__(
        self,
        backend: StorageBackend,
        broadcast: StorageBroadcast | None = None,
        tab_id: str | None = None,
    ) -> None:
        self.backend = backend
        self.broadcast = broadcast or StorageBroadcast()
        self.tab_id = tab_id or uuid.uuid4().hex

    async def get_item(self, key: str) -> str | None:
        return await self.backend.get(key)

    async def set_item(self, key: str, value: str) -> None:
        """
        Write a value and broadcast the change.

        Raises:
            StorageError: If the backend rejects the write
        """
        old_value = await self.backend.get(key)
        await self.backend.set(key, value)
        self._publish(key, old_value, value)

    async def remove_item(self, key: str) -> None:
        old_value = await self.backend.get(key)
        if old_value is None:
            return
        await self.backend.remove(key)
        self._publish(key, old_value, None)

    async def keys(self) -> list[str]:
        return await self.backend.keys()

    def subscribe(self) -> StorageSubscription:
        """Receive storage events written by other tabs."""
        return self.broadcast.subscribe(self.tab_id)

    def _publish(self, key: str, old_value: str | None, new_value: str | None) -> None:
        event = StorageEvent(key=key, old_value=old_value, new_value=new_value, origin=self.tab_id)
        delivered = self.broadcast.publish(event)
        logger.debug("storage_event_published", extra={"key": key, "delivered": delivered})
