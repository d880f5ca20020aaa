"""Tests for spell and collection validation."""

import pytest

from grimoire.models.collection import CollectionKey
from grimoire.services.validation import (
    is_date_stamp,
    is_iso_timestamp,
    sanitize_collection,
    sanitize_spell,
    validate_collection_record,
    validate_session_spell,
    validate_spell,
)

NOW = "2026-10-19T08:30:00.000Z"


class TestValidateSpell:
    def test_valid_spell(self, fireball) -> None:
        assert validate_spell(fireball)

    @pytest.mark.parametrize(
        "spell",
        [
            None,
            "fireball",
            [],
            {"name": "Fireball", "level": 3},
            {"index": "", "name": "Fireball", "level": 3},
            {"index": "fireball", "name": "   ", "level": 3},
            {"index": "fireball", "name": "Fireball", "level": 10},
            {"index": "fireball", "name": "Fireball", "level": -1},
            {"index": "fireball", "name": "Fireball", "level": "3"},
            {"index": "fireball", "name": "Fireball", "level": 3.0},
            {"index": "fireball", "name": "Fireball", "level": True},
            {"index": 7, "name": "Fireball", "level": 3},
        ],
    )
    def test_invalid_spells(self, spell) -> None:
        """Records breaking the index/name/level rules are invalid."""
        assert not validate_spell(spell)

    def test_session_spell_needs_session_id(self, fireball) -> None:
        assert not validate_session_spell(fireball)
        assert validate_session_spell({**fireball, "sessionId": "1729000000000_42"})
        assert not validate_session_spell({**fireball, "sessionId": "not an id"})


class TestSanitize:
    def test_keeps_known_fields_drops_unknown(self, fireball) -> None:
        """Known optional fields survive; anything else is dropped."""
        dirty = {**fireball, "sessionId": "1_a", "favorite": True}

        clean = sanitize_spell(dirty)

        assert clean is not None
        assert clean["sessionId"] == "1_a"
        assert clean["components"] == ["V", "S"]
        assert "favorite" not in clean

    def test_irrecoverable_returns_none(self) -> None:
        assert sanitize_spell({"index": "x", "name": "X"}) is None
        assert sanitize_spell(42) is None

    @pytest.mark.parametrize(
        "spell",
        [
            None,
            {"index": "x", "name": "X", "level": 2, "extra": 1},
            {"index": "x", "name": "X", "level": 2, "desc": ["a"], "sessionId": "1_b"},
            {"index": "x", "name": "X", "level": 11},
        ],
    )
    def test_sanitize_is_a_fixed_point(self, spell) -> None:
        """Sanitizing twice gives the same result as sanitizing once."""
        once = sanitize_spell(spell)
        twice = sanitize_spell(once)

        assert twice == once

    def test_sanitize_does_not_mutate_input(self, fireball) -> None:
        original = dict(fireball)
        sanitize_spell({**fireball, "junk": 1})

        assert fireball == original

    def test_collection_drops_invalid(self, fireball, fire_bolt) -> None:
        """Irrecoverable items are dropped and order is kept."""
        result = sanitize_collection([fireball, {"bad": True}, fire_bolt])

        assert [s["index"] for s in result] == ["fireball", "fire-bolt"]

    def test_collection_of_non_list_is_empty(self) -> None:
        assert sanitize_collection({"items": []}) == []


class TestStamps:
    def test_iso_timestamp(self) -> None:
        assert is_iso_timestamp(NOW)
        assert not is_iso_timestamp("yesterday")
        assert not is_iso_timestamp(None)

    def test_date_stamp(self) -> None:
        assert is_date_stamp("2026-10-19")
        assert not is_date_stamp("2026-02-30")
        assert not is_date_stamp("2026-10-19T00:00:00")


class TestCollectionRecord:
    def test_valid_spellbook(self, fireball) -> None:
        record = {"items": [fireball], "lastModified": NOW}

        assert validate_collection_record(CollectionKey.SPELLBOOK, record)

    def test_deck_items_need_session_ids(self, fireball) -> None:
        record = {"items": [fireball], "lastModified": NOW}

        assert not validate_collection_record(CollectionKey.SESSION_DECK, record)

    def test_daily_needs_generated_date(self) -> None:
        record = {"items": [], "lastModified": NOW}

        assert not validate_collection_record(CollectionKey.DAILY_SELECTION, record)
        assert validate_collection_record(
            CollectionKey.DAILY_SELECTION, {**record, "generatedDate": None}
        )

    def test_daily_size_must_be_zero_or_full(self, make_spell) -> None:
        """A partial daily selection is not a valid record."""
        items = [make_spell(f"s{i}", f"Spell {i}", 1) for i in range(5)]
        record = {"items": items, "generatedDate": "2026-10-19", "lastModified": NOW}

        assert not validate_collection_record(CollectionKey.DAILY_SELECTION, record)

    def test_daily_size_can_be_overridden(self, make_spell) -> None:
        items = [make_spell(f"s{i}", f"Spell {i}", 1) for i in range(3)]
        record = {"items": items, "generatedDate": "2026-10-19", "lastModified": NOW}

        assert validate_collection_record(CollectionKey.DAILY_SELECTION, record, 3)
        assert not validate_collection_record(CollectionKey.DAILY_SELECTION, record)

    def test_missing_timestamp_is_invalid(self) -> None:
        assert not validate_collection_record(CollectionKey.SPELLBOOK, {"items": []})
