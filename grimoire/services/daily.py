"""
Daily spell selection.

Once per local calendar day, a random set of spells (12 by default) is
drawn from the catalog and persisted with the date it was drawn on.
A stored selection from an earlier day is stale and gets replaced on the
next refresh.

The source may be a list of full spell records or a list of spell indexes.
Index lists are materialized through the catalog assembler a group at a
time, so a daily refresh fetches only about as many spells as it needs.

INVARIANT: A persisted daily selection holds either no spells or exactly
sample_size spells. A draw that falls short is never persisted.
"""

import asyncio
import logging
import random
from collections.abc import Callable, Sequence
from datetime import date

from grimoire.config import settings
from grimoire.models.collection import CollectionKey, CollectionRecord
from grimoire.models.failure import DailySelectionError
from grimoire.models.spell import SpellData
from grimoire.services.catalog import CatalogAssembler
from grimoire.services.events import CollectionChange, CollectionEvent, EventBus
from grimoire.services.validation import sanitize_spell
from grimoire.storage.store import PersistentStore

logger = logging.getLogger(__name__)

DailySource = Sequence[SpellData] | Sequence[str]


class DailySelectionGenerator:
    """
    Draws, persists and serves the daily spell selection.

    Args:
        store: Persistent store holding the daily-spells record
        assembler: Used to materialize index lists and as the default source
        bus: Receives daily_spells_updated after each new selection
        sample_size: Spells per selection
        rng: Random source, injectable for deterministic tests
        today: Returns the current local date
    """

    def __init__(
        self,
        store: PersistentStore,
        assembler: CatalogAssembler | None = None,
        bus: EventBus | None = None,
        sample_size: int | None = None,
        rng: random.Random | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.assembler = assembler
        self.bus = bus or EventBus()
        self.sample_size = sample_size or settings.daily_sample_size
        self.rng = rng or random.Random()
        self._today = today
        self._inflight: dict[str, asyncio.Task[list[SpellData]]] = {}

    def get_current_date_stamp(self) -> str:
        """Today's local date as YYYY-MM-DD."""
        return self._today().isoformat()

    def needs_refresh(self, last_stamp: str | None) -> bool:
        """True if the selection was never drawn or was drawn on another day."""
        return not last_stamp or last_stamp != self.get_current_date_stamp()

    async def load_current(self) -> list[SpellData] | None:
        """Today's stored selection, or None if there is none or it is stale."""
        record = await self.store.load(CollectionKey.DAILY_SELECTION)
        if not record.items or self.needs_refresh(record.generated_date):
            return None
        return record.items

    async def generate(
        self, source: DailySource, sample_size: int | None = None
    ) -> list[SpellData]:
        """
        Draw and persist a new selection for today.

        Candidates are drawn uniformly at random without replacement. A
        candidate that fails to load or sanitize does not count, and drawing
        continues until the selection is full or the source is exhausted.

        Raises:
            DailySelectionError: If fewer than sample_size valid spells were
                drawn, or the selection could not be saved
        """
        target = sample_size or self.sample_size
        candidates = self.rng.sample(list(source), len(source))

        if candidates and all(isinstance(c, str) for c in candidates):
            selection = await self._draw_indexes(candidates, target)
        else:
            selection = self._draw_records(candidates, target)

        if len(selection) < target:
            logger.warning(
                "daily_selection_short",
                extra={"drawn": len(selection), "target": target, "available": len(candidates)},
            )
            raise DailySelectionError(
                f"Only {len(selection)} of {target} daily spells could be loaded"
            )

        stamp = self.get_current_date_stamp()
        record = CollectionRecord(items=selection, generated_date=stamp)
        if not await self.store.save(CollectionKey.DAILY_SELECTION, record):
            raise DailySelectionError("Failed to save daily spells")

        logger.info("daily_selection_generated", extra={"date": stamp, "count": len(selection)})
        self.bus.emit(
            CollectionEvent.DAILY_SPELLS_UPDATED,
            CollectionChange(key=CollectionKey.DAILY_SELECTION, items=selection),
        )
        return selection

    async def refresh_if_needed(
        self, source: DailySource | None = None, force: bool = False
    ) -> list[SpellData]:
        """
        Today's selection, drawing a new one if the stored one is stale.

        With force, draws a new selection even if today's is current.
        Concurrent callers on the same day share one in-flight draw, forced
        or not. Without a source, the assembler's full spell index list is used.

        Raises:
            DailySelectionError: If a new selection was needed and could not be made
            AssemblyError: If the default source could not be loaded
        """
        if not force:
            current = await self.load_current()
            if current is not None:
                return current

        stamp = self.get_current_date_stamp()
        task = self._inflight.get(stamp)
        if task is None:
            task = asyncio.ensure_future(self._refresh(source))
            self._inflight[stamp] = task
            task.add_done_callback(lambda _: self._inflight.pop(stamp, None))
        else:
            logger.debug("daily_refresh_joined", extra={"date": stamp})
        return await asyncio.shield(task)

    async def _refresh(self, source: DailySource | None) -> list[SpellData]:
        if source is None:
            if self.assembler is None:
                raise ValueError("A source is required when no assembler is configured")
            source = await self.assembler.get_all_spell_indexes()
        return await self.generate(source)

    def _draw_records(self, candidates: list[SpellData], target: int) -> list[SpellData]:
        selection: list[SpellData] = []
        seen: set[str] = set()
        for candidate in candidates:
            spell = sanitize_spell(candidate)
            if spell is None or spell["index"] in seen:
                continue
            spell.pop("sessionId", None)
            seen.add(spell["index"])
            selection.append(spell)
            if len(selection) == target:
                break
        return selection

    async def _draw_indexes(self, candidates: list[str], target: int) -> list[SpellData]:
        if self.assembler is None:
            raise ValueError("An assembler is required to draw from spell indexes")

        selection: list[SpellData] = []
        seen: set[str] = set()
        remaining = list(dict.fromkeys(candidates))
        while remaining and len(selection) < target:
            take = target - len(selection)
            group, remaining = remaining[:take], remaining[take:]
            for fetched in await self.assembler.get_spells_by_indexes(group):
                spell = sanitize_spell(fetched)
                if spell is None or spell["index"] in seen:
                    continue
                seen.add(spell["index"])
                selection.append(spell)
        return selection[:target]
