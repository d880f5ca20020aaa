"""Shared FastAPI dependencies and error translation."""

from fastapi import HTTPException, Request

from grimoire.models.failure import FailureDetail, FailureKind, GrimoireError
from grimoire.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """The Runtime created by the application lifespan."""
    runtime: Runtime = request.app.state.runtime
    return runtime


def failure(status_code: int, kind: FailureKind, message: str) -> HTTPException:
    """HTTPException carrying a FailureDetail body."""
    detail = FailureDetail(kind=kind, message=message)
    return HTTPException(status_code=status_code, detail=detail.model_dump(mode="json"))


def from_error(status_code: int, error: GrimoireError) -> HTTPException:
    """HTTPException for a package error; never includes a traceback."""
    return HTTPException(status_code=status_code, detail=error.to_detail().model_dump(mode="json"))
