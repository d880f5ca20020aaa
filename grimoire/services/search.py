"""
Local fuzzy search over the spell catalog.

The index is built once per catalog list and queried per keystroke.
Matching uses RapidFuzz partial ratios across weighted fields:

- name (highest weight)
- class names
- a synthesized level token ("cantrip", "level 3", ...)
- raw level number
- school name
- description text (lowest weight)

Supports queries like:
- "firebal"  -> Fireball (typo tolerant)
- "wizard"   -> every wizard spell
- "cantrip"  -> every level 0 spell
- "level 3"  -> every level 3 spell
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from rapidfuzz import fuzz, process

from grimoire.config import settings
from grimoire.models.spell import SpellData

logger = logging.getLogger(__name__)

MIN_TERM_LENGTH = 2

# A field only counts as matched at or above this similarity (0-100)
MIN_FIELD_SCORE = 75.0

FIELD_WEIGHTS: dict[str, float] = {
    "name": 0.40,
    "classes": 0.25,
    "level_token": 0.15,
    "level": 0.10,
    "school": 0.10,
    "desc": 0.05,
}


def level_token(level: int) -> str:
    """Searchable words for a spell level."""
    if level == 0:
        return "cantrip level 0 level0"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(level, "th")
    return f"level {level} level{level} {level}{suffix}"


def _field_texts(spell: SpellData) -> dict[str, str]:
    classes = spell.get("classes") or []
    school = spell.get("school") or {}
    desc = spell.get("desc") or []
    level = spell.get("level", 0)

    return {
        "name": str(spell.get("name", "")),
        "classes": " ".join(
            c.get("name", "") for c in classes if isinstance(c, dict)
        ),
        "level_token": level_token(level) if isinstance(level, int) else "",
        "level": str(level),
        "school": school.get("name", "") if isinstance(school, dict) else "",
        "desc": " ".join(desc) if isinstance(desc, list) else str(desc),
    }


@dataclass(frozen=True)
class SearchHit:
    """A spell with its relevance distance (0 = perfect, 1 = unrelated)."""

    spell: SpellData
    distance: float


class SpellSearchIndex:
    """
    Prebuilt fuzzy search structure over a list of spells.

    Build with SpellSearchIndex.build(spells); query with search(term).
    search is a pure function of (index, term).
    """

    def __init__(
        self,
        spells: Sequence[SpellData],
        max_results: int | None = None,
        max_distance: float | None = None,
    ) -> None:
        self.spells = spells
        self.max_results = max_results or settings.search_max_results
        self.max_distance = settings.search_max_distance if max_distance is None else max_distance

        texts = [_field_texts(spell) for spell in spells]
        self._choices: dict[str, list[str]] = {
            field: [t[field].lower() for t in texts] for field in FIELD_WEIGHTS
        }
        max_weight = max(FIELD_WEIGHTS.values())
        self._field_factor = {
            field: 0.5 + 0.5 * weight / max_weight for field, weight in FIELD_WEIGHTS.items()
        }

    @classmethod
    def build(cls, spells: Sequence[SpellData]) -> "SpellSearchIndex":
        """Build an index over spells."""
        index = cls(spells)
        logger.debug("search_index_built", extra={"spell_count": len(spells)})
        return index

    def __len__(self) -> int:
        return len(self.spells)

    def search_with_scores(self, term: str | None) -> list[SearchHit]:
        """
        Ranked matches with their relevance distance.

        Terms shorter than two characters return nothing.
        """
        query = (term or "").strip().lower()
        if len(query) < MIN_TERM_LENGTH or not self.spells:
            return []

        best: dict[int, float] = {}
        for field, choices in self._choices.items():
            factor = self._field_factor[field]
            matches = process.extract(
                query,
                choices,
                scorer=fuzz.partial_ratio,
                limit=None,
                score_cutoff=MIN_FIELD_SCORE,
            )
            for _choice, score, position in matches:
                relevance = score / 100 * factor
                if relevance > best.get(position, 0.0):
                    best[position] = relevance

        hits = [
            (1.0 - relevance, position)
            for position, relevance in best.items()
            if 1.0 - relevance <= self.max_distance
        ]
        # Ties keep catalog order
        hits.sort()

        return [
            SearchHit(spell=self.spells[position], distance=round(distance, 4))
            for distance, position in hits[: self.max_results]
        ]

    def search(self, term: str | None) -> list[SpellData]:
        """Spells matching term, best match first."""
        return [hit.spell for hit in self.search_with_scores(term)]


class SearchIndexCache:
    """
    Holds the index for the current catalog list.

    The index is rebuilt only when a different list object is passed in,
    never per query.
    """

    def __init__(self) -> None:
        self._source: Sequence[SpellData] | None = None
        self._index: SpellSearchIndex | None = None

    def get(self, spells: Sequence[SpellData]) -> SpellSearchIndex:
        if self._index is None or spells is not self._source:
            self._index = SpellSearchIndex.build(spells)
            self._source = spells
        return self._index


def filter_spells(
    spells: list[SpellData],
    classes: list[str] | None = None,
    levels: list[int] | None = None,
    schools: list[str] | None = None,
) -> list[SpellData]:
    """
    Filter spells by class name, level and school name.

    All filters are ANDed together. Within one filter a spell needs to match
    any of the given values. With no filters the input list is returned as is.
    """
    if not classes and not levels and not schools:
        return spells

    def keep(spell: SpellData) -> bool:
        if classes:
            names = {c.get("name") for c in spell.get("classes") or [] if isinstance(c, dict)}
            if not names.intersection(classes):
                return False
        if levels and spell.get("level") not in levels:
            return False
        if schools:
            school = spell.get("school") or {}
            if not isinstance(school, dict) or school.get("name") not in schools:
                return False
        return True

    return [spell for spell in spells if keep(spell)]
