"""
Health check endpoints.

Provides liveness and readiness probes with a storage round-trip check.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from grimoire.api.dependencies import get_runtime
from grimoire.models.failure import StorageError
from grimoire.runtime import Runtime

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    storage: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """
    Liveness probe.

    Returns healthy if the service is running.
    Does not check dependencies.
    """
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> HealthResponse:
    """
    Readiness probe.

    Checks that local storage can be read. Returns 503 if it cannot.
    """
    try:
        await runtime.store.area.keys()
        return HealthResponse(status="ready", storage="connected")
    except StorageError:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", storage="disconnected")
