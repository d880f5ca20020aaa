"""
Spellbook and session deck API endpoints.

The spellbook holds each spell once. The session deck may hold several
copies of a spell, each with its own sessionId; burning a copy removes it.
Cantrips are cast at will and are refused when burned.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, model_validator

from grimoire.api.dependencies import failure, from_error, get_runtime
from grimoire.models.collection import CollectionKey
from grimoire.models.failure import FailureKind, UpstreamError
from grimoire.models.spell import SpellData, can_burn
from grimoire.runtime import Runtime
from grimoire.services.collections import MutationResult

spellbook_router = APIRouter(prefix="/spellbook", tags=["spellbook"])
deck_router = APIRouter(prefix="/deck", tags=["deck"])

FAILURE_STATUS: dict[FailureKind, int] = {
    FailureKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    FailureKind.DUPLICATE: status.HTTP_409_CONFLICT,
    FailureKind.STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class AddSpellRequest(BaseModel):
    """Add a spell either as a full record or by its API index."""

    spell: dict[str, Any] | None = Field(
        default=None,
        description="Full spell record as returned by the catalog",
    )
    index: str | None = Field(
        default=None,
        description="Spell index to fetch from the upstream API",
        examples=["fireball"],
    )

    @model_validator(mode="after")
    def _one_source(self) -> "AddSpellRequest":
        if (self.spell is None) == (self.index is None):
            raise ValueError("Provide exactly one of 'spell' or 'index'")
        return self


class CollectionResponse(BaseModel):
    """A collection's items after a read or an edit."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    message: str | None = None


class DeckAddResponse(CollectionResponse):
    session_instance: dict[str, Any] | None = None


def _response(items: list[SpellData], message: str | None = None) -> CollectionResponse:
    return CollectionResponse(items=items, count=len(items), message=message)


def _raise_on_failure(result: MutationResult) -> list[SpellData]:
    if result.success:
        return result.items or []
    kind = result.kind or FailureKind.STORAGE_ERROR
    raise failure(FAILURE_STATUS.get(kind, status.HTTP_400_BAD_REQUEST), kind, result.message)


async def _resolve_spell(runtime: Runtime, request: AddSpellRequest) -> SpellData:
    if request.spell is not None:
        return request.spell
    try:
        return await runtime.gateway.get_spell(request.index or "")
    except UpstreamError as e:
        if e.status == status.HTTP_404_NOT_FOUND:
            raise failure(
                status.HTTP_404_NOT_FOUND, FailureKind.NOT_FOUND, f"Unknown spell: {request.index}"
            ) from e
        raise from_error(status.HTTP_502_BAD_GATEWAY, e) from e


# --- Spellbook ---


@spellbook_router.get("", response_model=CollectionResponse)
async def get_spellbook(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> CollectionResponse:
    """The spellbook's spells."""
    return _response(await runtime.collections.get_items(CollectionKey.SPELLBOOK))


@spellbook_router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def add_to_spellbook(
    request: AddSpellRequest,
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> CollectionResponse:
    """
    Add a spell to the spellbook.

    Returns 409 if the spell is already there, 400 for an invalid record.
    """
    spell = await _resolve_spell(runtime, request)
    result = await runtime.collections.add_to_spellbook(spell)
    return _response(_raise_on_failure(result), result.message)


@spellbook_router.delete("/{index}", response_model=CollectionResponse)
async def remove_from_spellbook(
    index: str,
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> CollectionResponse:
    """Remove a spell from the spellbook by index."""
    result = await runtime.collections.remove_from_spellbook(index)
    return _response(_raise_on_failure(result), result.message)


# --- Session deck ---


@deck_router.get("", response_model=CollectionResponse)
async def get_deck(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> CollectionResponse:
    """The session deck's spell copies."""
    return _response(await runtime.collections.get_items(CollectionKey.SESSION_DECK))


@deck_router.post("", response_model=DeckAddResponse, status_code=status.HTTP_201_CREATED)
async def add_to_deck(
    request: AddSpellRequest,
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> DeckAddResponse:
    """Add a copy of a spell to the session deck. Duplicates are allowed."""
    spell = await _resolve_spell(runtime, request)
    result = await runtime.collections.add_to_session_deck(spell)
    items = _raise_on_failure(result)
    return DeckAddResponse(
        items=items,
        count=len(items),
        message=result.message,
        session_instance=result.session_instance,
    )


@deck_router.delete("/{session_id}", response_model=CollectionResponse)
async def burn_from_deck(
    session_id: str,
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> CollectionResponse:
    """
    Burn one spell copy from the session deck.

    Returns 404 for an unknown sessionId and 409 for a cantrip.
    """
    deck = await runtime.collections.get_items(CollectionKey.SESSION_DECK)
    spell = next((s for s in deck if s.get("sessionId") == session_id), None)
    if spell is None:
        raise failure(
            status.HTTP_404_NOT_FOUND,
            FailureKind.NOT_FOUND,
            "Spell not found in session deck",
        )
    if not can_burn(spell):
        raise failure(
            status.HTTP_409_CONFLICT,
            FailureKind.REFUSED,
            "Cantrips cannot be burned - they have unlimited use.",
        )

    result = await runtime.collections.remove_from_session_deck(session_id)
    return _response(_raise_on_failure(result), result.message)


@deck_router.delete("", response_model=CollectionResponse)
async def clear_deck(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> CollectionResponse:
    """Remove every spell copy from the session deck."""
    result = await runtime.collections.clear_session_deck()
    return _response(_raise_on_failure(result), result.message)
