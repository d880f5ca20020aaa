"""
One-time migration of legacy local storage layouts.

Earlier releases kept the session deck under other keys and in several
shapes. Migration moves that data into the session-deck collection, gives
every migrated spell a fresh sessionId, and then deletes all legacy keys.

Legacy keys are never deleted unless the new session-deck record was
written successfully. Running the migration a second time is a no-op.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from grimoire.models.collection import CollectionKey, CollectionRecord, decode_items
from grimoire.models.spell import SpellData, add_session_id
from grimoire.services.validation import sanitize_spell, validate_session_spell
from grimoire.storage.store import PersistentStore

logger = logging.getLogger(__name__)

# Every key written by earlier releases
LEGACY_KEYS = ("spells", "session", "user-session", "spell-cache", "class-spells")

# Legacy keys that may hold session deck data, in lookup order
SESSION_LEGACY_KEYS = ("session", "user-session")


@dataclass
class MigrationResult:
    """Outcome of run_migration."""

    success: bool = False
    migrated: int = 0
    removed_keys: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    summary: str = ""


def decode_legacy_session(raw: Any) -> list[Any]:
    """
    Extract the spell list from a legacy session value.

    Recognized shapes:
    - [...]                    bare list of spells
    - {"spells": [...]}
    - {"sessionSpells": [...]}
    - {"data": [...]}

    Anything else decodes to an empty list.
    """
    match raw:
        case list(items):
            return items
        case {"spells": list(items)}:
            return items
        case {"sessionSpells": list(items)}:
            return items
        case {"data": list(items)}:
            return items
        case _:
            return []


def convert_legacy_spells(raw_items: list[Any]) -> list[SpellData]:
    """Sanitize legacy spells and give each one a fresh sessionId."""
    converted: list[SpellData] = []
    for raw in raw_items:
        spell = sanitize_spell(raw)
        if spell is None:
            logger.warning("migration_spell_skipped")
            continue
        spell = add_session_id(spell)
        if validate_session_spell(spell):
            converted.append(spell)
    return converted


async def _present_legacy_keys(store: PersistentStore) -> list[str]:
    return [key for key in LEGACY_KEYS if await store.area.get_item(key) is not None]


async def is_migration_needed(store: PersistentStore) -> bool:
    """
    True if the session deck holds nothing and any legacy key is present.
    """
    deck_items = decode_items(await store.read_json(CollectionKey.SESSION_DECK.value))
    if deck_items:
        return False
    return bool(await _present_legacy_keys(store))


async def run_migration(store: PersistentStore) -> MigrationResult:
    """
    Move legacy session data into the session deck and drop legacy keys.

    An existing non-empty session deck is preserved as is; legacy session
    data is only migrated into an empty or absent deck.
    """
    result = MigrationResult()

    deck_raw = await store.read_json(CollectionKey.SESSION_DECK.value)
    deck_items = decode_items(deck_raw)

    if deck_items:
        result.migrated = len(deck_items)
        logger.info("migration_deck_preserved", extra={"count": result.migrated})
    else:
        legacy_raw = None
        for key in SESSION_LEGACY_KEYS:
            legacy_raw = await store.read_json(key)
            if legacy_raw is not None:
                logger.info("migration_legacy_session_found", extra={"key": key})
                break

        if legacy_raw is not None:
            items = convert_legacy_spells(decode_legacy_session(legacy_raw))
            if await store.save(CollectionKey.SESSION_DECK, CollectionRecord(items=items)):
                result.migrated = len(items)
            else:
                result.errors.append("Failed to save migrated session data")
        elif deck_raw is None:
            if not await store.save(CollectionKey.SESSION_DECK, CollectionRecord.empty()):
                result.errors.append("Failed to initialize empty session data")

    if not result.errors:
        for key in await _present_legacy_keys(store):
            if await store.remove(key):
                result.removed_keys.append(key)
            else:
                result.errors.append(f"{key}: failed to remove legacy key")

    result.success = not result.errors
    if result.success:
        result.summary = (
            f"Migration completed successfully. Migrated {result.migrated} session spells "
            f"and removed {len(result.removed_keys)} legacy keys."
        )
        logger.info(
            "migration_completed",
            extra={"migrated": result.migrated, "removed_keys": result.removed_keys},
        )
    else:
        result.summary = (
            f"Migration completed with issues. Migrated {result.migrated} session spells, "
            f"removed {len(result.removed_keys)} legacy keys, "
            f"encountered {len(result.errors)} errors."
        )
        logger.warning("migration_incomplete", extra={"errors": result.errors})

    return result
