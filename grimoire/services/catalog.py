"""
Catalog assembly service.

Builds the full spell catalog from the class-partitioned D&D 5e API:

1. Discover which classes exist and which of them have spells
2. Fetch each spellcasting class's spell index list
3. Deduplicate spell indexes across classes
4. Fetch full spell records in rate-limited batches
5. Validate, drop invalid records, and sort by name

Discovery degrades instead of failing: a class that cannot be probed is
excluded, a class whose index list cannot be fetched maps to an empty
list. Assembly is the first layer allowed to fail, and only when nothing
usable came back.
"""

import inspect
import logging
import unicodedata
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from grimoire.config import settings
from grimoire.fetching.batch import BatchProgress, BatchUpdate, fetch_in_batches
from grimoire.models.failure import AssemblyError, UpstreamError
from grimoire.models.spell import Partition, SpellData
from grimoire.services.cache import AsyncTTLCache
from grimoire.services.validation import validate_spell
from grimoire.upstream.gateway import UpstreamGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[BatchProgress], Awaitable[None] | None]


def collation_key(name: str) -> tuple[str, str]:
    """
    Locale-style sort key for display names.

    Compares accent- and case-insensitively first, then falls back to the
    raw string so that the order is total and stable.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), name


def sort_by_name(spells: Iterable[SpellData]) -> list[SpellData]:
    """Sort spells by name using collation_key."""
    return sorted(spells, key=lambda spell: collation_key(spell["name"]))


def unique_indexes(partition_index: dict[str, list[str]]) -> list[str]:
    """All spell indexes across classes, deduplicated, first-seen order."""
    return list(dict.fromkeys(i for ids in partition_index.values() for i in ids))


class CatalogAssembler:
    """
    Orchestrates discovery and materialization of the spell catalog.

    The partition index and the full catalog are cached in memory; there is
    exactly one catalog, so per-class catalogs are keyed by class name and
    the index list they were built from.
    """

    def __init__(
        self,
        gateway: UpstreamGateway,
        *,
        spell_batch_size: int | None = None,
        spell_batch_delay_ms: int | None = None,
        class_probe_batch_size: int | None = None,
        class_probe_delay_ms: int | None = None,
        class_index_batch_size: int | None = None,
        class_index_delay_ms: int | None = None,
        retry_attempts: int | None = None,
        retry_initial_wait: float = 1.0,
        retry_max_wait: float | None = None,
        partition_index_ttl: float | None = None,
        catalog_ttl: float | None = None,
    ) -> None:
        self.gateway = gateway
        self.spell_batch_size = spell_batch_size or settings.spell_batch_size
        self.spell_batch_delay_ms = _pick(spell_batch_delay_ms, settings.spell_batch_delay_ms)
        self.class_probe_batch_size = class_probe_batch_size or settings.class_probe_batch_size
        self.class_probe_delay_ms = _pick(class_probe_delay_ms, settings.class_probe_delay_ms)
        self.class_index_batch_size = class_index_batch_size or settings.class_index_batch_size
        self.class_index_delay_ms = _pick(class_index_delay_ms, settings.class_index_delay_ms)
        self.retry_attempts = retry_attempts or settings.discovery_retry_attempts
        self.retry_initial_wait = retry_initial_wait
        self.retry_max_wait = _pick(retry_max_wait, settings.discovery_retry_max_wait)

        self._index_cache: AsyncTTLCache[dict[str, list[str]]] = AsyncTTLCache(
            _pick(partition_index_ttl, settings.partition_index_ttl_seconds),
            name="partition_index",
        )
        self._catalog_cache: AsyncTTLCache[list[SpellData]] = AsyncTTLCache(
            _pick(catalog_ttl, settings.catalog_ttl_seconds),
            name="catalog",
        )
        self._class_catalog_cache: AsyncTTLCache[list[SpellData]] = AsyncTTLCache(
            _pick(catalog_ttl, settings.catalog_ttl_seconds),
            name="class_catalog",
        )

    # --- Discovery ---

    async def _with_retry(self, call: Callable[[], Awaitable[T]]) -> T:
        """Retry a discovery call on UpstreamError with exponential backoff."""
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_initial_wait, max=self.retry_max_wait)
            + wait_random(0, self.retry_initial_wait),
            retry=retry_if_exception_type(UpstreamError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        ):
            with attempt:
                return await call()
        raise AssertionError("unreachable: AsyncRetrying either returns or reraises")

    async def discover_partitions(self) -> list[Partition]:
        """
        List the classes that have at least one spell.

        Raises:
            UpstreamError: If the class list itself cannot be fetched
        """
        spellcasters, _ = await self._probe_partitions()
        return spellcasters

    async def _probe_partitions(self) -> tuple[list[Partition], list[Partition]]:
        """Spellcasting classes, plus the classes whose probe failed."""
        raw_classes = await self._with_retry(self.gateway.list_classes)
        classes = [
            Partition(index=c["index"], name=c["name"], url=c.get("url", ""))
            for c in raw_classes
            if isinstance(c, dict) and c.get("index") and c.get("name")
        ]

        async def probe(partition: Partition) -> Partition | None:
            data = await self.gateway.class_spells(partition.index)
            count = data.get("count", 0)
            return partition if isinstance(count, int) and count > 0 else None

        probed = await fetch_in_batches(
            classes,
            probe,
            batch_size=self.class_probe_batch_size,
            delay_ms=self.class_probe_delay_ms,
        )
        for partition in probed.failed:
            logger.warning(
                "class_probe_failed",
                extra={"class_index": partition.index, "class_name": partition.name},
            )

        spellcasters = [p for p in probed.results if p is not None]
        logger.info(
            "classes_discovered",
            extra={"class_count": len(classes), "spellcaster_count": len(spellcasters)},
        )
        return spellcasters, list(probed.failed)

    async def discover_partition_index(self) -> dict[str, list[str]]:
        """
        Map each spellcasting class name to its spell indexes.

        Never raises for upstream failures: a class whose list cannot be
        fetched maps to [], and a failed class discovery yields {}.

        Cached for the partition index TTL, but only when complete. An index
        with no spells at all, or one where any class failed to probe or to
        list its spells, is returned uncached so the next call retries.
        """
        degraded: list[str] = []

        def complete(index: dict[str, list[str]]) -> bool:
            return not degraded and bool(unique_indexes(index))

        return await self._index_cache.get_or_load(
            lambda: self._load_partition_index(degraded),
            cache_if=complete,
        )

    async def _load_partition_index(self, degraded: list[str]) -> dict[str, list[str]]:
        try:
            partitions, probe_failures = await self._probe_partitions()
        except UpstreamError as e:
            logger.warning("class_discovery_failed", extra={"error": str(e)})
            return {}
        degraded.extend(p.name for p in probe_failures)

        async def fetch_index(partition: Partition) -> tuple[str, list[str]]:
            try:
                data = await self._with_retry(lambda: self.gateway.class_spells(partition.index))
            except UpstreamError as e:
                logger.warning(
                    "class_spell_list_failed",
                    extra={"class_name": partition.name, "error": str(e)},
                )
                degraded.append(partition.name)
                return partition.name, []
            return partition.name, _result_indexes(data)

        fetched = await fetch_in_batches(
            partitions,
            fetch_index,
            batch_size=self.class_index_batch_size,
            delay_ms=self.class_index_delay_ms,
        )
        degraded.extend(p.name for p in fetched.failed)
        index: dict[str, list[str]] = {p.name: [] for p in partitions}
        index.update(dict(fetched.results))
        return index

    async def get_all_spell_indexes(self) -> list[str]:
        """Deduplicated spell indexes across every class (cheap, no details)."""
        return unique_indexes(await self.discover_partition_index())

    # --- Materialization ---

    async def get_spells_by_indexes(
        self,
        spell_indexes: list[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[SpellData]:
        """
        Fetch full spell records and keep the valid ones, in request order.

        Failed fetches and invalid records are skipped.
        """
        if not spell_indexes:
            return []

        on_batch = _progress_relay(on_progress) if on_progress is not None else None
        fetched = await fetch_in_batches(
            spell_indexes,
            self.gateway.get_spell,
            batch_size=self.spell_batch_size,
            delay_ms=self.spell_batch_delay_ms,
            on_batch=on_batch,
        )

        valid = [spell for spell in fetched.results if validate_spell(spell)]
        logger.info(
            "spells_fetched",
            extra={
                "requested": len(spell_indexes),
                "valid": len(valid),
                "failed": fetched.failure_count,
            },
        )
        return valid

    async def assemble_full_catalog(self) -> list[SpellData]:
        """
        Full spell catalog, deduplicated and sorted by name.

        Cached for the catalog TTL.

        Raises:
            AssemblyError: If no classes were discovered or no valid spells resulted
        """
        # A catalog built from an incomplete partition index is not kept either
        return await self._catalog_cache.get_or_load(
            self._assemble_full_catalog,
            cache_if=lambda _: self._index_cache.peek() is not None,
        )

    async def _assemble_full_catalog(self) -> list[SpellData]:
        partition_index = await self.discover_partition_index()
        if not partition_index:
            raise AssemblyError("No spellcasting classes could be loaded. Please try again.")

        spell_indexes = unique_indexes(partition_index)
        spells = await self.get_spells_by_indexes(spell_indexes)
        if not spells:
            raise AssemblyError("No spells could be loaded. Please try again.")

        return sort_by_name(_dedupe(spells))

    async def assemble_partition_catalog(
        self,
        partition_name: str,
        spell_indexes: list[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[SpellData]:
        """
        Spells for one class, sorted by name.

        With on_progress, reports {loaded, total, percentage} as batches land;
        a cached result returns at once without progress reports. Cached per
        class name and index list for the catalog TTL. A load that produced
        no spells is not cached. An empty index list yields an empty catalog.
        """

        async def load() -> list[SpellData]:
            spells = await self.get_spells_by_indexes(spell_indexes, on_progress)
            return sort_by_name(_dedupe(spells))

        if not spell_indexes:
            return []
        return await self._class_catalog_cache.get_or_load(
            load, key=(partition_name, tuple(spell_indexes)), cache_if=bool
        )

    def invalidate(self) -> None:
        """Drop every cached discovery and catalog result."""
        self._index_cache.clear()
        self._catalog_cache.clear()
        self._class_catalog_cache.clear()


def _progress_relay(
    on_progress: ProgressCallback,
) -> Callable[[BatchUpdate[Any]], Awaitable[None]]:
    async def relay(update: BatchUpdate[Any]) -> None:
        maybe_awaitable = on_progress(update.progress)
        if inspect.isawaitable(maybe_awaitable):
            await maybe_awaitable

    return relay


def _pick(value: T | None, default: T) -> T:
    return default if value is None else value


def _result_indexes(data: dict[str, Any]) -> list[str]:
    results = data.get("results", [])
    if not isinstance(results, list):
        return []
    return [r["index"] for r in results if isinstance(r, dict) and isinstance(r.get("index"), str)]


def _dedupe(spells: list[SpellData]) -> list[SpellData]:
    """Keep the first record for each spell index."""
    seen: dict[str, SpellData] = {}
    for spell in spells:
        seen.setdefault(spell["index"], spell)
    return list(seen.values())
