from grimoire.storage.local_storage import (
    DatabaseBackend,
    MemoryBackend,
    StorageArea,
    StorageBackend,
)
from grimoire.storage.migration import (
    LEGACY_KEYS,
    MigrationResult,
    is_migration_needed,
    run_migration,
)
from grimoire.storage.store import PersistentStore

__all__ = [
    "LEGACY_KEYS",
    "DatabaseBackend",
    "MemoryBackend",
    "MigrationResult",
    "PersistentStore",
    "StorageArea",
    "StorageBackend",
    "is_migration_needed",
    "run_migration",
]
