"""Tests for spellbook and session deck API endpoints."""

import httpx
import pytest
import respx
from httpx import AsyncClient

from grimoire.api.collections import AddSpellRequest


class TestAddSpellRequest:
    @pytest.mark.parametrize("payload", [{}, {"spell": {"index": "a"}, "index": "a"}])
    def test_requires_exactly_one_source(self, payload) -> None:
        with pytest.raises(ValueError, match="exactly one"):
            AddSpellRequest(**payload)


class TestSpellbookEndpoints:
    async def test_get_empty_spellbook(self, client: AsyncClient) -> None:
        response = await client.get("/spellbook")

        assert response.status_code == 200
        assert response.json() == {"items": [], "count": 0, "message": None}

    async def test_add_full_record(self, client: AsyncClient, fireball) -> None:
        response = await client.post("/spellbook", json={"spell": fireball})

        assert response.status_code == 201
        data = response.json()
        assert data["count"] == 1
        assert data["message"] == "Added Fireball to your spellbook"

    async def test_add_by_index(self, client: AsyncClient, upstream: respx.MockRouter) -> None:
        """Spells can be added by index; the record is fetched upstream."""
        response = await client.post("/spellbook", json={"index": "magic-missile"})

        assert response.status_code == 201
        assert response.json()["items"][0]["name"] == "Magic Missile"

    async def test_add_unknown_index(self, client: AsyncClient, upstream: respx.MockRouter) -> None:
        upstream.get("/spells/wish").mock(return_value=httpx.Response(404))

        response = await client.post("/spellbook", json={"index": "wish"})

        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "Unknown spell: wish"

    async def test_add_when_upstream_down(
        self, client: AsyncClient, upstream: respx.MockRouter
    ) -> None:
        upstream.get("/spells/fireball").mock(return_value=httpx.Response(503))

        response = await client.post("/spellbook", json={"index": "fireball"})

        assert response.status_code == 502
        assert response.json()["detail"]["kind"] == "upstream_error"

    async def test_duplicate_returns_409(self, client: AsyncClient, fireball) -> None:
        await client.post("/spellbook", json={"spell": fireball})

        response = await client.post("/spellbook", json={"spell": fireball})

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["kind"] == "duplicate"
        assert detail["message"] == "Fireball is already in your spellbook"

    async def test_invalid_record_returns_400(self, client: AsyncClient) -> None:
        response = await client.post("/spellbook", json={"spell": {"index": "x", "level": 12}})

        assert response.status_code == 400
        assert response.json()["detail"]["kind"] == "invalid_input"

    async def test_missing_source_returns_422(self, client: AsyncClient) -> None:
        response = await client.post("/spellbook", json={})

        assert response.status_code == 422

    async def test_remove(self, client: AsyncClient, fireball) -> None:
        await client.post("/spellbook", json={"spell": fireball})

        response = await client.delete("/spellbook/fireball")

        assert response.status_code == 200
        assert response.json()["count"] == 0
        assert (await client.get("/spellbook")).json()["items"] == []


class TestDeckEndpoints:
    async def test_add_returns_session_instance(self, client: AsyncClient, fireball) -> None:
        response = await client.post("/deck", json={"spell": fireball})

        assert response.status_code == 201
        data = response.json()
        assert data["session_instance"]["index"] == "fireball"
        assert data["session_instance"]["sessionId"]
        assert data["message"] == "Added Fireball to your spell deck"

    async def test_duplicates_allowed(self, client: AsyncClient, fireball) -> None:
        await client.post("/deck", json={"spell": fireball})
        await client.post("/deck", json={"spell": fireball})

        response = await client.get("/deck")

        assert response.json()["count"] == 2

    async def test_burn(self, client: AsyncClient, fireball) -> None:
        added = (await client.post("/deck", json={"spell": fireball})).json()
        session_id = added["session_instance"]["sessionId"]

        response = await client.delete(f"/deck/{session_id}")

        assert response.status_code == 200
        assert response.json()["message"] == "Spell burned from session deck"
        assert response.json()["count"] == 0

    async def test_cantrip_burn_is_refused(self, client: AsyncClient, fire_bolt) -> None:
        """Cantrips stay in the deck when a burn is attempted."""
        added = (await client.post("/deck", json={"spell": fire_bolt})).json()
        session_id = added["session_instance"]["sessionId"]

        response = await client.delete(f"/deck/{session_id}")

        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "refused"
        assert (await client.get("/deck")).json()["count"] == 1

    async def test_burn_unknown_session_id(self, client: AsyncClient) -> None:
        response = await client.delete("/deck/123_456")

        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "Spell not found in session deck"

    async def test_clear(self, client: AsyncClient, fireball, fire_bolt) -> None:
        await client.post("/deck", json={"spell": fireball})
        await client.post("/deck", json={"spell": fire_bolt})

        response = await client.delete("/deck")

        assert response.status_code == 200
        assert response.json()["message"] == "Session deck cleared"
        assert (await client.get("/deck")).json()["items"] == []

    async def test_deck_and_spellbook_are_independent(self, client: AsyncClient, fireball) -> None:
        await client.post("/deck", json={"spell": fireball})

        response = await client.post("/spellbook", json={"spell": fireball})

        assert response.status_code == 201
        assert "sessionId" not in response.json()["items"][0]
