import re

from grimoire.models import (
    AssemblyError,
    CollectionKey,
    CollectionRecord,
    FailureKind,
    StorageError,
    UpstreamError,
    add_session_id,
    can_burn,
    count_by_level,
    generate_session_id,
    group_by_level,
    is_cantrip,
    level_label,
    level_order,
    remove_session_id,
    utc_timestamp,
)
from grimoire.services.validation import is_iso_timestamp


class TestLevels:
    def test_level_labels(self) -> None:
        """Level 0 is labeled as cantrips, others by number."""
        assert level_label(0) == "Cantrips"
        assert level_label(3) == "Level 3"
        assert level_label(12) == "Unknown Level"

    def test_level_order(self) -> None:
        """Display order runs from cantrips to level 9."""
        order = level_order()

        assert order[0] == "Cantrips"
        assert order[-1] == "Level 9"
        assert len(order) == 10

    def test_cantrips_cannot_be_burned(self, fireball, fire_bolt) -> None:
        """Only leveled spells may be burned."""
        assert is_cantrip(fire_bolt)
        assert not can_burn(fire_bolt)
        assert can_burn(fireball)


class TestGrouping:
    def test_groups_in_display_order(self, make_spell) -> None:
        """Groups follow level order and keep input order inside a level."""
        spells = [
            make_spell("fireball", "Fireball", 3),
            make_spell("light", "Light", 0),
            make_spell("counterspell", "Counterspell", 3),
        ]

        grouped = group_by_level(spells)

        assert list(grouped) == ["Cantrips", "Level 3"]
        assert [s["index"] for s in grouped["Level 3"]] == ["fireball", "counterspell"]

    def test_skips_spells_without_integer_level(self, make_spell) -> None:
        """Records with a non-integer level are left out."""
        broken = {"index": "x", "name": "X", "level": "3"}

        grouped = group_by_level([make_spell("light", "Light", 0), broken])

        assert list(grouped) == ["Cantrips"]

    def test_count_includes_empty_levels(self, make_spell) -> None:
        """Every level label is counted, even with no spells."""
        counts = count_by_level([make_spell("light", "Light", 0)])

        assert counts["Cantrips"] == 1
        assert counts["Level 9"] == 0
        assert len(counts) == 10


class TestSessionIds:
    def test_format(self) -> None:
        """Session ids are an epoch timestamp and a random suffix."""
        assert re.match(r"^\d+_\w+$", generate_session_id())

    def test_add_and_remove_do_not_mutate(self, fireball) -> None:
        """Adding and removing a session id returns copies."""
        copy = add_session_id(fireball)

        assert "sessionId" in copy
        assert "sessionId" not in fireball
        assert remove_session_id(copy) == fireball


class TestCollectionRecord:
    def test_empty_record_has_timestamp(self) -> None:
        """A fresh record has no items and a valid lastModified."""
        record = CollectionRecord.empty()

        assert record.items == []
        assert is_iso_timestamp(record.last_modified)

    def test_generated_date_only_for_daily(self) -> None:
        """Only the daily selection persists generatedDate."""
        record = CollectionRecord(generated_date="2026-10-19")

        assert "generatedDate" not in record.to_json(CollectionKey.SPELLBOOK)
        assert record.to_json(CollectionKey.DAILY_SELECTION)["generatedDate"] == "2026-10-19"

    def test_timestamp_is_utc_iso(self) -> None:
        """Timestamps end in Z and parse as ISO-8601."""
        stamp = utc_timestamp()

        assert stamp.endswith("Z")
        assert is_iso_timestamp(stamp)

    def test_storage_keys(self) -> None:
        """Collections use fixed storage keys."""
        assert CollectionKey.SPELLBOOK.value == "user-spellbook"
        assert CollectionKey.SESSION_DECK.value == "session-deck"
        assert CollectionKey.DAILY_SELECTION.value == "daily-spells"


class TestFailures:
    def test_upstream_error_message(self) -> None:
        """Upstream errors carry status and reason."""
        error = UpstreamError(404, "Not Found", "/spells/nope")

        assert str(error) == "API Error: 404 Not Found"
        assert error.status == 404
        assert error.path == "/spells/nope"

    def test_assembly_error_is_retryable(self) -> None:
        """Assembly failures surface as retryable."""
        detail = AssemblyError("No spells could be loaded").to_detail()

        assert detail.kind == FailureKind.CATALOG_UNAVAILABLE
        assert detail.retryable is True

    def test_storage_error_is_not_retryable(self) -> None:
        assert StorageError("full").to_detail().retryable is False
