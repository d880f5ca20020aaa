"""
Daily spell selection endpoints.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from grimoire.api.dependencies import from_error, get_runtime
from grimoire.models.collection import CollectionKey
from grimoire.models.failure import AssemblyError, DailySelectionError
from grimoire.runtime import Runtime

router = APIRouter(prefix="/daily", tags=["daily"])


class DailyResponse(BaseModel):
    """Today's selection."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    generated_date: str | None = None
    count: int = 0


async def _current(runtime: Runtime) -> DailyResponse:
    record = await runtime.store.load(CollectionKey.DAILY_SELECTION)
    return DailyResponse(
        items=record.items,
        generated_date=record.generated_date,
        count=len(record.items),
    )


@router.get("", response_model=DailyResponse)
async def get_daily(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> DailyResponse:
    """
    Today's daily spells.

    Draws a new selection if the stored one is from another day.
    Returns 503 with a retryable failure if no selection could be made.
    """
    try:
        await runtime.daily.refresh_if_needed()
    except (AssemblyError, DailySelectionError) as e:
        raise from_error(status.HTTP_503_SERVICE_UNAVAILABLE, e) from e
    return await _current(runtime)


@router.post("/refresh", response_model=DailyResponse)
async def refresh_daily(
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> DailyResponse:
    """
    Draw a new selection now, replacing today's.

    A draw already in progress is joined rather than started twice.
    """
    try:
        await runtime.daily.refresh_if_needed(force=True)
    except (AssemblyError, DailySelectionError) as e:
        raise from_error(status.HTTP_503_SERVICE_UNAVAILABLE, e) from e
    return await _current(runtime)
