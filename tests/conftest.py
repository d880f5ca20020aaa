from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

import httpx
import pytest
import respx
from httpx import ASGITransport, AsyncClient

from grimoire.api.dependencies import get_runtime
from grimoire.main import app
from grimoire.runtime import Runtime, create_runtime
from grimoire.services.catalog import CatalogAssembler
from grimoire.services.collections import CollectionService
from grimoire.services.events import EventBus
from grimoire.storage.local_storage import MemoryBackend, StorageArea
from grimoire.storage.store import PersistentStore
from grimoire.upstream.gateway import UpstreamGateway

BASE_URL = "https://dnd.test/api"


def build_spell(
    index: str,
    name: str,
    level: int,
    classes: tuple[str, ...] = ("Wizard",),
    school: str = "Evocation",
) -> dict[str, Any]:
    return {
        "index": index,
        "name": name,
        "level": level,
        "school": {"index": school.lower(), "name": school},
        "classes": [{"index": c.lower(), "name": c} for c in classes],
        "desc": [f"{name} description."],
        "components": ["V", "S"],
        "url": f"/api/2014/spells/{index}",
    }


# wizard: 3 spells, cleric: 2 spells, fighter: none
WORLD_SPELLS: dict[str, dict[str, Any]] = {
    "fireball": build_spell("fireball", "Fireball", 3),
    "magic-missile": build_spell("magic-missile", "Magic Missile", 1),
    "fire-bolt": build_spell("fire-bolt", "Fire Bolt", 0),
    "cure-wounds": build_spell("cure-wounds", "Cure Wounds", 1, ("Cleric",), "Evocation"),
    "light": build_spell("light", "Light", 0, ("Cleric", "Wizard"), "Evocation"),
}

WORLD_CLASSES: dict[str, tuple[str, list[str]]] = {
    "wizard": ("Wizard", ["fireball", "magic-missile", "fire-bolt", "light"]),
    "cleric": ("Cleric", ["cure-wounds", "light"]),
    "fighter": ("Fighter", []),
}


def _results(indexes: list[str]) -> list[dict[str, str]]:
    return [
        {"index": i, "name": WORLD_SPELLS[i]["name"], "url": f"/api/2014/spells/{i}"}
        for i in indexes
    ]


@pytest.fixture
def make_spell() -> Callable[..., dict[str, Any]]:
    """Factory for valid spell records."""
    return build_spell


@pytest.fixture
def fireball() -> dict[str, Any]:
    return build_spell("fireball", "Fireball", 3)


@pytest.fixture
def fire_bolt() -> dict[str, Any]:
    """A cantrip."""
    return build_spell("fire-bolt", "Fire Bolt", 0)


@pytest.fixture
def upstream() -> Iterator[respx.MockRouter]:
    """Mocked D&D 5e API serving a small three-class world."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock:
        mock.get("/classes").mock(
            return_value=httpx.Response(
                200,
                json={
                    "count": len(WORLD_CLASSES),
                    "results": [
                        {"index": idx, "name": name, "url": f"/api/2014/classes/{idx}"}
                        for idx, (name, _) in WORLD_CLASSES.items()
                    ],
                },
            )
        )
        for idx, (_, spells) in WORLD_CLASSES.items():
            mock.get(f"/classes/{idx}/spells").mock(
                return_value=httpx.Response(
                    200, json={"count": len(spells), "results": _results(spells)}
                )
            )
        for idx, spell in WORLD_SPELLS.items():
            mock.get(f"/spells/{idx}").mock(return_value=httpx.Response(200, json=spell))
        yield mock


@pytest.fixture
async def gateway() -> AsyncIterator[UpstreamGateway]:
    gateway = UpstreamGateway(base_url=BASE_URL)
    yield gateway
    await gateway.aclose()


@pytest.fixture
def assembler(gateway: UpstreamGateway) -> CatalogAssembler:
    """Assembler with no inter-batch delays and no retry waits."""
    return CatalogAssembler(
        gateway,
        spell_batch_delay_ms=0,
        class_probe_delay_ms=0,
        class_index_delay_ms=0,
        retry_attempts=2,
        retry_initial_wait=0,
        retry_max_wait=0,
    )


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def area(backend: MemoryBackend) -> StorageArea:
    return StorageArea(backend, tab_id="tab-a")


@pytest.fixture
def store(area: StorageArea) -> PersistentStore:
    return PersistentStore(area, daily_sample_size=12)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def collections(store: PersistentStore, bus: EventBus) -> CollectionService:
    return CollectionService(store, bus)


@pytest.fixture
def runtime(
    area: StorageArea, gateway: UpstreamGateway, assembler: CatalogAssembler
) -> Runtime:
    return create_runtime(area=area, gateway=gateway, assembler=assembler)


@pytest.fixture
async def client(runtime: Runtime) -> AsyncIterator[AsyncClient]:
    """Async test client bound to an in-memory runtime."""
    await runtime.store.initialize()
    app.dependency_overrides[get_runtime] = lambda: runtime

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
