"""
Collection mutators.

Every edit of the spellbook or the session deck goes through
CollectionService. Each method loads the whole record, edits it, saves it
back and returns a MutationResult. Nothing here raises: duplicates,
invalid spells, full storage, and unexpected exceptions all come back as
success=False with a message a user can read.

The session deck allows the same spell more than once; each copy is told
apart by its sessionId. Whether a spell may be burned from the deck is the
caller's decision (see grimoire.models.spell.can_burn).
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from grimoire.models.collection import CollectionKey, CollectionRecord
from grimoire.models.failure import FailureKind
from grimoire.models.spell import SpellData, add_session_id
from grimoire.services.events import UPDATED_EVENTS, CollectionChange, CollectionEvent, EventBus
from grimoire.services.validation import sanitize_spell
from grimoire.storage.store import PersistentStore

logger = logging.getLogger(__name__)

STORAGE_FULL_MESSAGE = "Failed to save {label}. Storage may be full."


@dataclass
class MutationResult:
    """
    Outcome of a collection edit.

    Attributes:
        success: True if the edit was saved
        message: Human-readable outcome
        items: The collection after the edit (on success)
        session_instance: The added deck copy, for add_to_session_deck
        kind: Failure classification when success is False
    """

    success: bool
    message: str
    items: list[SpellData] | None = None
    session_instance: SpellData | None = None
    kind: FailureKind | None = None


class CollectionService:
    """Edits the spellbook and the session deck, and announces changes."""

    def __init__(self, store: PersistentStore, bus: EventBus | None = None) -> None:
        self.store = store
        self.bus = bus or EventBus()

    async def get_items(self, key: CollectionKey) -> list[SpellData]:
        """Current items of a collection."""
        record = await self.store.load(key)
        return record.items

    async def add_to_spellbook(self, spell: SpellData) -> MutationResult:
        """
        Add a spell to the spellbook.

        The spellbook holds each spell index at most once; a second add is
        rejected without writing.
        """

        async def edit() -> MutationResult:
            clean = sanitize_spell(spell)
            if clean is None:
                return MutationResult(False, "Invalid spell data", kind=FailureKind.INVALID_INPUT)
            clean.pop("sessionId", None)

            record = await self.store.load(CollectionKey.SPELLBOOK)
            if any(s["index"] == clean["index"] for s in record.items):
                return MutationResult(
                    False,
                    f"{clean['name']} is already in your spellbook",
                    kind=FailureKind.DUPLICATE,
                )

            items = [*record.items, clean]
            if not await self._save(CollectionKey.SPELLBOOK, record, items):
                return self._storage_full(CollectionKey.SPELLBOOK)

            self._announce(
                CollectionKey.SPELLBOOK, items, CollectionEvent.SPELL_ADDED_TO_SPELLBOOK, clean
            )
            return MutationResult(True, f"Added {clean['name']} to your spellbook", items=items)

        return await self._guard("add_to_spellbook", edit)

    async def remove_from_spellbook(self, spell_index: str) -> MutationResult:
        """Remove a spell from the spellbook by index."""

        async def edit() -> MutationResult:
            record = await self.store.load(CollectionKey.SPELLBOOK)
            removed = next((s for s in record.items if s["index"] == spell_index), None)
            items = [s for s in record.items if s["index"] != spell_index]

            if not await self._save(CollectionKey.SPELLBOOK, record, items):
                return self._storage_full(CollectionKey.SPELLBOOK)

            self._announce(
                CollectionKey.SPELLBOOK,
                items,
                CollectionEvent.SPELL_REMOVED_FROM_SPELLBOOK,
                removed,
            )
            return MutationResult(True, "Spell removed from spellbook", items=items)

        return await self._guard("remove_from_spellbook", edit)

    async def add_to_session_deck(self, spell: SpellData) -> MutationResult:
        """
        Add a copy of a spell to the session deck.

        Always allowed, even for a spell already in the deck. The new copy
        gets its own sessionId and is returned as session_instance.
        """

        async def edit() -> MutationResult:
            clean = sanitize_spell(spell)
            if clean is None:
                return MutationResult(False, "Invalid spell data", kind=FailureKind.INVALID_INPUT)

            instance = add_session_id(clean)
            record = await self.store.load(CollectionKey.SESSION_DECK)
            items = [*record.items, instance]

            if not await self._save(CollectionKey.SESSION_DECK, record, items):
                return self._storage_full(CollectionKey.SESSION_DECK)

            self._announce(
                CollectionKey.SESSION_DECK, items, CollectionEvent.SPELL_ADDED_TO_SESSION, instance
            )
            return MutationResult(
                True,
                f"Added {instance['name']} to your spell deck",
                items=items,
                session_instance=instance,
            )

        return await self._guard("add_to_session_deck", edit)

    async def remove_from_session_deck(self, session_id: str) -> MutationResult:
        """Remove one deck copy by its sessionId."""

        async def edit() -> MutationResult:
            record = await self.store.load(CollectionKey.SESSION_DECK)
            removed = next((s for s in record.items if s.get("sessionId") == session_id), None)
            items = [s for s in record.items if s.get("sessionId") != session_id]

            if not await self._save(CollectionKey.SESSION_DECK, record, items):
                return self._storage_full(CollectionKey.SESSION_DECK)

            self._announce(
                CollectionKey.SESSION_DECK,
                items,
                CollectionEvent.SPELL_BURNED_FROM_SESSION,
                removed,
            )
            return MutationResult(True, "Spell burned from session deck", items=items)

        return await self._guard("remove_from_session_deck", edit)

    async def clear_collection(self, key: CollectionKey) -> bool:
        """Save an empty record for a collection."""
        try:
            record = CollectionRecord.empty()
            if not await self.store.save(key, record):
                return False
        except Exception:
            logger.exception("collection_clear_failed", extra={"key": key.value})
            return False

        self._announce(key, record.items)
        return True

    async def clear_session_deck(self) -> MutationResult:
        """Empty the session deck."""
        if not await self.clear_collection(CollectionKey.SESSION_DECK):
            return self._storage_full(CollectionKey.SESSION_DECK)

        self.bus.emit(
            CollectionEvent.SESSION_CLEARED,
            CollectionChange(key=CollectionKey.SESSION_DECK, items=[]),
        )
        return MutationResult(True, "Session deck cleared", items=[])

    # --- Internals ---

    async def _save(
        self, key: CollectionKey, record: CollectionRecord, items: list[SpellData]
    ) -> bool:
        return await self.store.save(key, record.touched(items))

    def _announce(
        self,
        key: CollectionKey,
        items: list[SpellData],
        event: CollectionEvent | None = None,
        spell: SpellData | None = None,
    ) -> None:
        change = CollectionChange(key=key, items=items, spell=spell)
        self.bus.emit(UPDATED_EVENTS[key], change)
        if event is not None:
            self.bus.emit(event, change)

    @staticmethod
    def _storage_full(key: CollectionKey) -> MutationResult:
        return MutationResult(
            False, STORAGE_FULL_MESSAGE.format(label=key.label), kind=FailureKind.STORAGE_ERROR
        )

    @staticmethod
    async def _guard(
        operation: str, edit: Callable[[], Awaitable[MutationResult]]
    ) -> MutationResult:
        try:
            return await edit()
        except Exception as e:
            logger.exception("collection_mutation_failed", extra={"operation": operation})
            return MutationResult(False, f"Unexpected error: {e}", kind=FailureKind.STORAGE_ERROR)
