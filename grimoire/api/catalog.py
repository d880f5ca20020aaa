"""
Catalog API endpoints.

Read-only access to the assembled spell catalog: class listing, the full
catalog with filters, per-class catalogs and fuzzy search.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from grimoire.api.dependencies import failure, from_error, get_runtime
from grimoire.models.failure import AssemblyError, FailureKind
from grimoire.models.spell import count_by_level
from grimoire.runtime import Runtime
from grimoire.services.search import filter_spells

router = APIRouter(prefix="/catalog", tags=["catalog"])


class ClassSummary(BaseModel):
    """A spellcasting class and how many spells it lists."""

    name: str
    spell_count: int


class CatalogResponse(BaseModel):
    """A list of spells with per-level counts."""

    spells: list[dict[str, Any]]
    total: int
    levels: dict[str, int] = Field(
        default_factory=dict,
        description="Spell count per level label, in display order",
    )


class SearchResult(BaseModel):
    spell: dict[str, Any]
    distance: float = Field(..., description="0 is a perfect match, 1 is unrelated")


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult]


def _catalog_response(spells: list[dict[str, Any]]) -> CatalogResponse:
    return CatalogResponse(spells=spells, total=len(spells), levels=count_by_level(spells))


@router.get("/classes", response_model=list[ClassSummary])
async def list_classes(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> list[ClassSummary]:
    """
    Spellcasting classes with their spell counts.

    Returns 503 if no class could be discovered.
    """
    index = await runtime.assembler.discover_partition_index()
    if not index:
        raise failure(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            FailureKind.CATALOG_UNAVAILABLE,
            "No spellcasting classes could be loaded. Please try again.",
        )
    return [ClassSummary(name=name, spell_count=len(ids)) for name, ids in index.items()]


@router.get("/spells", response_model=CatalogResponse)
async def list_spells(
    runtime: Annotated[Runtime, Depends(get_runtime)],
    class_name: Annotated[list[str] | None, Query(alias="class")] = None,
    level: Annotated[list[int] | None, Query()] = None,
    school: Annotated[list[str] | None, Query()] = None,
) -> CatalogResponse:
    """
    The full spell catalog, sorted by name.

    Optional filters (repeatable): class, level, school.
    Returns 503 with a retryable failure if the catalog cannot be assembled.
    """
    try:
        catalog = await runtime.assembler.assemble_full_catalog()
    except AssemblyError as e:
        raise from_error(status.HTTP_503_SERVICE_UNAVAILABLE, e) from e

    return _catalog_response(filter_spells(catalog, class_name, level, school))


@router.get("/classes/{name}/spells", response_model=CatalogResponse)
async def list_class_spells(
    name: str,
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> CatalogResponse:
    """
    Spells for one class, sorted by name.

    Class names match case-insensitively. Returns 404 for an unknown class.
    """
    index = await runtime.assembler.discover_partition_index()
    matched = next((n for n in index if n.casefold() == name.casefold()), None)
    if matched is None:
        raise failure(
            status.HTTP_404_NOT_FOUND,
            FailureKind.NOT_FOUND,
            f"Unknown spellcasting class: {name}",
        )

    spells = await runtime.assembler.assemble_partition_catalog(matched, index[matched])
    return _catalog_response(spells)


@router.get("/search", response_model=SearchResponse)
async def search_spells(
    runtime: Annotated[Runtime, Depends(get_runtime)],
    q: Annotated[str, Query(max_length=200)] = "",
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
) -> SearchResponse:
    """
    Fuzzy search over the full catalog, best match first.

    Queries shorter than two characters return no results.
    """
    try:
        catalog = await runtime.assembler.assemble_full_catalog()
    except AssemblyError as e:
        raise from_error(status.HTTP_503_SERVICE_UNAVAILABLE, e) from e

    hits = runtime.search_cache.get(catalog).search_with_scores(q)
    if limit is not None:
        hits = hits[:limit]
    return SearchResponse(
        query=q,
        results=[SearchResult(spell=hit.spell, distance=hit.distance) for hit in hits],
    )
