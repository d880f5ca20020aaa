"""
Spell records and level grouping helpers.

Spells are kept as the JSON objects returned by the D&D 5e API. The core
reads only index, name, level, school and classes; everything else is
passed through untouched.
"""

import random
import time
from dataclasses import dataclass
from typing import Any

from grimoire.config import MAX_SPELL_LEVEL, MIN_SPELL_LEVEL

SpellData = dict[str, Any]

CANTRIP_LABEL = "Cantrips"


@dataclass(frozen=True, slots=True)
class Partition:
    """
    A spellcasting class as listed by the upstream API.

    Attributes:
        index: API identifier (e.g., "wizard")
        name: Display name (e.g., "Wizard")
        url: API path of the class resource
    """

    index: str
    name: str
    url: str = ""


def is_cantrip(spell: SpellData) -> bool:
    """Check if a spell is a cantrip (level 0)."""
    return bool(spell) and spell.get("level") == 0


def can_burn(spell: SpellData) -> bool:
    """
    Check whether a deck spell may be burned (removed after casting).

    Cantrips are cast at will and are never burned.
    """
    return not is_cantrip(spell)


def level_label(level: int) -> str:
    """Get the display label for a spell level."""
    if level == 0:
        return CANTRIP_LABEL
    if 1 <= level <= MAX_SPELL_LEVEL:
        return f"Level {level}"
    return "Unknown Level"


def level_order() -> list[str]:
    """Ordered list of level labels for consistent display."""
    return [level_label(level) for level in range(MIN_SPELL_LEVEL, MAX_SPELL_LEVEL + 1)]


def group_by_level(spells: list[SpellData]) -> dict[str, list[SpellData]]:
    """
    Group spells by level label, in display order.

    Empty levels are omitted. Spells inside a level keep their input order,
    so a catalog that is already sorted by name stays sorted.
    """
    grouped: dict[str, list[SpellData]] = {}
    for spell in spells:
        level = spell.get("level")
        if not isinstance(level, int) or isinstance(level, bool):
            continue
        grouped.setdefault(level_label(level), []).append(spell)

    return {label: grouped[label] for label in level_order() if label in grouped}


def count_by_level(spells: list[SpellData]) -> dict[str, int]:
    """Count spells per level label, including levels with zero spells."""
    counts = dict.fromkeys(level_order(), 0)
    for label, members in group_by_level(spells).items():
        counts[label] = len(members)
    return counts


def generate_session_id() -> str:
    """
    Generate an id for one copy of a spell in the session deck.

    Format is ``{epoch_millis}_{random}``. Unique enough for human-paced
    insertions; not cryptographically guaranteed.
    """
    timestamp = int(time.time() * 1000)
    return f"{timestamp}_{random.randrange(1_000_000)}"


def add_session_id(spell: SpellData) -> SpellData:
    """Return a copy of the spell carrying a fresh session id."""
    return {**spell, "sessionId": generate_session_id()}


def remove_session_id(spell: SpellData) -> SpellData:
    """Return a copy of the spell without its session id."""
    return {key: value for key, value in spell.items() if key != "sessionId"}
