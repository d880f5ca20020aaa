"""Tests for catalog API endpoints."""

import httpx
import respx
from httpx import AsyncClient

from grimoire.models.spell import level_label


class TestListClasses:
    async def test_lists_spellcasters_with_counts(
        self, client: AsyncClient, upstream: respx.MockRouter
    ) -> None:
        """Classes without spells are left out."""
        response = await client.get("/catalog/classes")

        assert response.status_code == 200
        assert response.json() == [
            {"name": "Wizard", "spell_count": 4},
            {"name": "Cleric", "spell_count": 2},
        ]

    async def test_503_when_no_class_loads(
        self, client: AsyncClient, upstream: respx.MockRouter
    ) -> None:
        upstream.get("/classes").mock(return_value=httpx.Response(500))

        response = await client.get("/catalog/classes")

        assert response.status_code == 503
        assert response.json()["detail"]["kind"] == "catalog_unavailable"


class TestListSpells:
    async def test_full_catalog_sorted_by_name(
        self, client: AsyncClient, upstream: respx.MockRouter
    ) -> None:
        """Spells shared between classes appear once."""
        response = await client.get("/catalog/spells")

        assert response.status_code == 200
        data = response.json()
        assert [s["name"] for s in data["spells"]] == [
            "Cure Wounds",
            "Fire Bolt",
            "Fireball",
            "Light",
            "Magic Missile",
        ]
        assert data["total"] == 5
        assert data["levels"][level_label(0)] == 2
        assert data["levels"][level_label(1)] == 2
        assert data["levels"][level_label(9)] == 0

    async def test_filters(self, client: AsyncClient, upstream: respx.MockRouter) -> None:
        response = await client.get("/catalog/spells", params={"class": "Cleric", "level": 0})

        assert [s["index"] for s in response.json()["spells"]] == ["light"]

    async def test_repeated_filter_values(
        self, client: AsyncClient, upstream: respx.MockRouter
    ) -> None:
        response = await client.get("/catalog/spells", params={"level": [1, 3]})

        names = [s["name"] for s in response.json()["spells"]]
        assert names == ["Cure Wounds", "Fireball", "Magic Missile"]

    async def test_503_is_retryable(self, client: AsyncClient, upstream: respx.MockRouter) -> None:
        """An unreachable upstream yields a retryable failure, not a traceback."""
        upstream.get("/classes").mock(side_effect=httpx.ConnectError("offline"))

        response = await client.get("/catalog/spells")

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["kind"] == "catalog_unavailable"
        assert detail["retryable"] is True
        assert "Traceback" not in detail["message"]


class TestClassSpells:
    async def test_case_insensitive_class(
        self, client: AsyncClient, upstream: respx.MockRouter
    ) -> None:
        response = await client.get("/catalog/classes/cleric/spells")

        assert response.status_code == 200
        assert [s["index"] for s in response.json()["spells"]] == ["cure-wounds", "light"]

    async def test_unknown_class(self, client: AsyncClient, upstream: respx.MockRouter) -> None:
        response = await client.get("/catalog/classes/fighter/spells")

        assert response.status_code == 404
        assert response.json()["detail"]["kind"] == "not_found"


class TestSearch:
    async def test_typo_finds_spell(self, client: AsyncClient, upstream: respx.MockRouter) -> None:
        response = await client.get("/catalog/search", params={"q": "firebal"})

        assert response.status_code == 200
        results = response.json()["results"]
        assert results[0]["spell"]["index"] == "fireball"
        assert 0 <= results[0]["distance"] < 0.5

    async def test_short_query_is_empty(
        self, client: AsyncClient, upstream: respx.MockRouter
    ) -> None:
        response = await client.get("/catalog/search", params={"q": "f"})

        assert response.json() == {"query": "f", "results": []}

    async def test_limit(self, client: AsyncClient, upstream: respx.MockRouter) -> None:
        response = await client.get("/catalog/search", params={"q": "wizard", "limit": 2})

        assert len(response.json()["results"]) == 2
