"""
Spell and collection validation.

Applied at every read boundary before data reaches a collection consumer.
Invalid data is never raised as an error: it is excluded or replaced by a
sanitized copy.

INVARIANT: sanitize_spell is a fixed point:
sanitize_spell(sanitize_spell(x)) == sanitize_spell(x)
"""

import logging
import re
from datetime import date, datetime
from typing import Any

from grimoire.config import MAX_SPELL_LEVEL, MIN_SPELL_LEVEL, settings
from grimoire.models.collection import CollectionKey
from grimoire.models.spell import SpellData

logger = logging.getLogger(__name__)

# Carried forward by sanitize_spell when present
OPTIONAL_FIELDS = (
    "desc",
    "higher_level",
    "range",
    "components",
    "material",
    "ritual",
    "duration",
    "concentration",
    "casting_time",
    "attack_type",
    "damage",
    "heal_at_slot_level",
    "area_of_effect",
    "dc",
    "school",
    "classes",
    "subclasses",
    "url",
    "updated_at",
    "sessionId",
)

SESSION_ID_PATTERN = re.compile(r"^\d+_\w+$")
DATE_STAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _is_level(value: Any) -> bool:
    # bool is an int subclass; True is not a spell level
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and MIN_SPELL_LEVEL <= value <= MAX_SPELL_LEVEL
    )


def validate_spell(spell: Any) -> bool:
    """
    Check a spell record's invariants.

    A valid spell has a non-empty string index and name and an integer
    level between 0 and 9 inclusive.
    """
    if not isinstance(spell, dict):
        return False
    return (
        _is_non_empty_str(spell.get("index"))
        and _is_non_empty_str(spell.get("name"))
        and _is_level(spell.get("level"))
    )


def validate_session_spell(spell: Any) -> bool:
    """Check a session deck spell: a valid spell with a well-formed sessionId."""
    if not validate_spell(spell):
        return False
    session_id = spell.get("sessionId")
    return isinstance(session_id, str) and bool(SESSION_ID_PATTERN.match(session_id))


def sanitize_spell(spell: Any) -> SpellData | None:
    """
    Build a clean copy of a spell record.

    Extracts the required fields, validates them, then carries forward the
    known optional fields (including sessionId). Unknown fields are dropped.

    Returns:
        Sanitized spell, or None if the record is irrecoverable.
    """
    if not isinstance(spell, dict):
        return None

    sanitized: SpellData = {
        "index": spell.get("index"),
        "name": spell.get("name"),
        "level": spell.get("level"),
    }
    if not validate_spell(sanitized):
        return None

    for name in OPTIONAL_FIELDS:
        if name in spell:
            sanitized[name] = spell[name]

    return sanitized


def sanitize_collection(spells: Any) -> list[SpellData]:
    """Sanitize every spell in a list, dropping irrecoverable ones."""
    if not isinstance(spells, list):
        return []

    sanitized = [s for s in (sanitize_spell(spell) for spell in spells) if s is not None]

    dropped = len(spells) - len(sanitized)
    if dropped:
        logger.info(
            "collection_sanitized",
            extra={"dropped_count": dropped, "kept_count": len(sanitized)},
        )
    return sanitized


def is_iso_timestamp(value: Any) -> bool:
    """Check for a parseable ISO-8601 timestamp string."""
    if not isinstance(value, str):
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def is_date_stamp(value: Any) -> bool:
    """Check for a valid YYYY-MM-DD calendar date string."""
    if not isinstance(value, str) or not DATE_STAMP_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def validate_collection_record(
    key: CollectionKey, record: Any, daily_sample_size: int | None = None
) -> bool:
    """
    Check a raw persisted collection record against its layout.

    Every record needs an items list of valid spells and an ISO lastModified.
    Session deck items also need a sessionId. The daily selection needs a
    generatedDate (YYYY-MM-DD or null) and holds either 0 or exactly
    daily_sample_size spells (the configured size by default).
    """
    if not isinstance(record, dict):
        return False

    items = record.get("items")
    if not isinstance(items, list):
        return False

    if not is_iso_timestamp(record.get("lastModified")):
        return False

    item_check = validate_session_spell if key is CollectionKey.SESSION_DECK else validate_spell
    if not all(item_check(item) for item in items):
        return False

    if key is CollectionKey.DAILY_SELECTION:
        if "generatedDate" not in record:
            return False
        generated = record["generatedDate"]
        if generated is not None and not is_date_stamp(generated):
            return False
        if len(items) not in (0, daily_sample_size or settings.daily_sample_size):
            return False

    return True
