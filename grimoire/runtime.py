"""
Service wiring.

One Runtime holds the long-lived pieces of a running Grimoire: the upstream
gateway, the catalog assembler with its caches, the persistent store, the
event bus and the services built on them.
"""

import logging
from dataclasses import dataclass, field

from grimoire.db.database import async_session_factory
from grimoire.services.catalog import CatalogAssembler
from grimoire.services.collections import CollectionService
from grimoire.services.daily import DailySelectionGenerator
from grimoire.services.events import EventBus
from grimoire.services.search import SearchIndexCache
from grimoire.storage.local_storage import DatabaseBackend, StorageArea
from grimoire.storage.migration import is_migration_needed, run_migration
from grimoire.storage.store import PersistentStore
from grimoire.upstream.gateway import UpstreamGateway

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Long-lived services shared by every request."""

    gateway: UpstreamGateway
    assembler: CatalogAssembler
    store: PersistentStore
    bus: EventBus
    collections: CollectionService
    daily: DailySelectionGenerator
    search_cache: SearchIndexCache = field(default_factory=SearchIndexCache)

    async def start(self) -> None:
        """Migrate legacy storage if needed, then make sure every collection exists."""
        if await is_migration_needed(self.store):
            result = await run_migration(self.store)
            logger.info("startup_migration", extra={"summary": result.summary})
        await self.store.initialize()

    async def aclose(self) -> None:
        await self.gateway.aclose()


def create_runtime(
    area: StorageArea | None = None,
    gateway: UpstreamGateway | None = None,
    assembler: CatalogAssembler | None = None,
) -> Runtime:
    """
    Build a Runtime.

    Defaults to database-backed storage and a gateway on the configured
    upstream base URL.
    """
    gateway = gateway or UpstreamGateway()
    assembler = assembler or CatalogAssembler(gateway)
    store = PersistentStore(area or StorageArea(DatabaseBackend(async_session_factory)))
    bus = EventBus()
    return Runtime(
        gateway=gateway,
        assembler=assembler,
        store=store,
        bus=bus,
        collections=CollectionService(store, bus),
        daily=DailySelectionGenerator(store, assembler, bus),
    )
