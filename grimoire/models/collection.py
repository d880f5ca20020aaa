from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from grimoire.models.spell import SpellData


class CollectionKey(str, Enum):
    """The three named collections and their storage keys."""

    SPELLBOOK = "user-spellbook"
    SESSION_DECK = "session-deck"
    DAILY_SELECTION = "daily-spells"

    @property
    def label(self) -> str:
        """Human-readable collection name for messages."""
        return {
            CollectionKey.SPELLBOOK: "spellbook",
            CollectionKey.SESSION_DECK: "spell deck",
            CollectionKey.DAILY_SELECTION: "daily spells",
        }[self]


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class CollectionRecord:
    """
    One named collection as persisted in local storage.

    On disk: {"items": [...], "generatedDate": "YYYY-MM-DD"|null, "lastModified": ISO-8601}.
    generatedDate is only written for the daily selection.
    """

    items: list[SpellData] = field(default_factory=list)
    last_modified: str = field(default_factory=utc_timestamp)
    generated_date: str | None = None

    @classmethod
    def empty(cls) -> "CollectionRecord":
        """Fresh default record."""
        return cls()

    def to_json(self, key: CollectionKey) -> dict[str, Any]:
        """Serialize to the persisted layout for the given collection."""
        data: dict[str, Any] = {"items": self.items}
        if key is CollectionKey.DAILY_SELECTION:
            data["generatedDate"] = self.generated_date
        data["lastModified"] = self.last_modified
        return data

    def touched(self, items: list[SpellData]) -> "CollectionRecord":
        """New record with the given items and a fresh lastModified."""
        return CollectionRecord(items=items, generated_date=self.generated_date)


def decode_items(raw: Any) -> list[Any] | None:
    """
    Pull the item list out of a stored record.

    Recognized shapes:
    - {"items": [...]}   current layout
    - {"spells": [...]}  earlier layout with the old field name

    Returns None when no shape matches.
    """
    if not isinstance(raw, dict):
        return None
    match raw:
        case {"items": list(items)}:
            return items
        case {"spells": list(items)}:
            return items
        case _:
            return None
