"""
Persistent store for the three named collections.

Every read goes through load(), which never raises: a missing key, bad
JSON, or a record of the wrong shape yields a fresh empty record. Items are
sanitized at this boundary, so consumers only ever see valid spells.

Every write goes through save(), which never raises either: storage and
serialization failures are logged and reported as False.

INVARIANT: Records are written whole. There are no partial updates and no
transactions spanning keys.
"""

import json
import logging
from typing import Any

from grimoire.config import settings
from grimoire.models.collection import CollectionKey, CollectionRecord, decode_items
from grimoire.models.failure import StorageError
from grimoire.services.validation import (
    is_date_stamp,
    is_iso_timestamp,
    sanitize_collection,
    validate_collection_record,
)
from grimoire.storage.local_storage import StorageArea

logger = logging.getLogger(__name__)


class PersistentStore:
    """Load/save/initialize for the named collections in one storage area."""

    def __init__(self, area: StorageArea, daily_sample_size: int | None = None) -> None:
        self.area = area
        self.daily_sample_size = daily_sample_size or settings.daily_sample_size

    async def read_json(self, key: str) -> Any | None:
        """
        Raw parsed JSON stored under key.

        Returns None if the key is absent, unreadable, or not valid JSON.
        """
        try:
            stored = await self.area.get_item(key)
        except StorageError as e:
            logger.warning("storage_read_failed", extra={"key": key, "error": str(e)})
            return None

        if stored is None:
            return None

        try:
            return json.loads(stored)
        except ValueError as e:
            logger.warning("storage_parse_failed", extra={"key": key, "error": str(e)})
            return None

    async def load(self, key: CollectionKey) -> CollectionRecord:
        """
        Load a collection record.

        Never raises. Falls back to an empty record on any problem.
        """
        raw = await self.read_json(key.value)
        items = decode_items(raw)
        if items is None:
            if raw is not None:
                logger.warning("storage_shape_mismatch", extra={"key": key.value})
            return CollectionRecord.empty()

        if not validate_collection_record(key, raw, self.daily_sample_size):
            logger.info("storage_record_repaired", extra={"key": key.value})

        record = CollectionRecord(items=sanitize_collection(items))
        last_modified = raw.get("lastModified")
        if is_iso_timestamp(last_modified):
            record.last_modified = last_modified

        if key is CollectionKey.DAILY_SELECTION:
            generated = raw.get("generatedDate")
            record.generated_date = generated if is_date_stamp(generated) else None
            if len(record.items) not in (0, self.daily_sample_size):
                logger.warning(
                    "daily_selection_size_invalid",
                    extra={"count": len(record.items), "expected": self.daily_sample_size},
                )
                return CollectionRecord.empty()

        return record

    async def save(self, key: CollectionKey, record: CollectionRecord) -> bool:
        """
        Write a whole collection record.

        Returns:
            True on success, False on storage-quota or serialization failure.
        """
        try:
            payload = json.dumps(record.to_json(key))
        except (TypeError, ValueError) as e:
            logger.error("storage_serialize_failed", extra={"key": key.value, "error": str(e)})
            return False

        try:
            await self.area.set_item(key.value, payload)
        except StorageError as e:
            logger.error("storage_save_failed", extra={"key": key.value, "error": str(e)})
            return False
        return True

    async def remove(self, key: str) -> bool:
        """Delete a storage key. Returns False if storage refused."""
        try:
            await self.area.remove_item(key)
        except StorageError as e:
            logger.error("storage_remove_failed", extra={"key": key, "error": str(e)})
            return False
        return True

    async def initialize(self) -> dict[str, bool]:
        """
        Make sure every collection key holds a valid record.

        Keys holding a record that passes validate_collection_record are left
        untouched; anything else is replaced by its repaired (or empty
        default) record. Safe to call
        on every start.

        Returns:
            Per-collection success, keyed by collection name.
        """
        results: dict[str, bool] = {}
        for key in CollectionKey:
            raw = await self.read_json(key.value)
            if validate_collection_record(key, raw, self.daily_sample_size):
                results[key.name.lower()] = True
                continue
            record = await self.load(key)
            results[key.name.lower()] = await self.save(key, record)

        logger.info("storage_initialized", extra={"results": results})
        return results

    async def clear_all(self) -> bool:
        """Remove every collection key from storage."""
        outcomes = [await self.remove(key.value) for key in CollectionKey]
        return all(outcomes)
