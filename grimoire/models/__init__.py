from grimoire.models.collection import CollectionKey, CollectionRecord, utc_timestamp
from grimoire.models.failure import (
    AssemblyError,
    DailySelectionError,
    FailureDetail,
    FailureKind,
    GrimoireError,
    StorageError,
    UpstreamError,
)
from grimoire.models.spell import (
    Partition,
    SpellData,
    add_session_id,
    can_burn,
    count_by_level,
    generate_session_id,
    group_by_level,
    is_cantrip,
    level_label,
    level_order,
    remove_session_id,
)

__all__ = [
    "AssemblyError",
    "CollectionKey",
    "CollectionRecord",
    "DailySelectionError",
    "FailureDetail",
    "FailureKind",
    "GrimoireError",
    "Partition",
    "SpellData",
    "StorageError",
    "UpstreamError",
    "add_session_id",
    "can_burn",
    "count_by_level",
    "generate_session_id",
    "group_by_level",
    "is_cantrip",
    "level_label",
    "level_order",
    "remove_session_id",
    "utc_timestamp",
]
