"""
Failure classification.

Every failure the package can surface falls into one of the exception
types below. Internal layers (batch fetching, class discovery, storage
reads) degrade instead of raising; the catalog assembler is the first
layer allowed to raise a fatal error, and collection mutators never raise.

INVARIANT: No raw traceback reaches an API consumer. The HTTP layer turns
these exceptions into a FailureDetail body.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    UPSTREAM_ERROR = "upstream_error"
    CATALOG_UNAVAILABLE = "catalog_unavailable"
    STORAGE_ERROR = "storage_error"
    INVALID_INPUT = "invalid_input"
    DUPLICATE = "duplicate"
    REFUSED = "refused"
    NOT_FOUND = "not_found"
    DAILY_UNAVAILABLE = "daily_unavailable"


class FailureDetail(BaseModel):
    """User-facing description of a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="Human-readable explanation of what went wrong",
    )
    retryable: bool = Field(
        default=False,
        description="True if the same request may succeed later",
    )


class GrimoireError(Exception):
    """Base class for all package errors."""

    kind: FailureKind = FailureKind.UPSTREAM_ERROR
    retryable: bool = False

    def to_detail(self) -> FailureDetail:
        """Convert to a user-facing failure body."""
        return FailureDetail(kind=self.kind, message=str(self), retryable=self.retryable)


class UpstreamError(GrimoireError):
    """
    A single HTTP request to the upstream catalog failed.

    status is 0 when no HTTP response was received (transport failure).
    """

    kind = FailureKind.UPSTREAM_ERROR
    retryable = True

    def __init__(self, status: int, status_text: str, path: str | None = None) -> None:
        self.status = status
        self.status_text = status_text
        self.path = path
        super().__init__(f"API Error: {status} {status_text}".rstrip())


class AssemblyError(GrimoireError):
    """
    The catalog could not be assembled.

    Raised when no spellcasting classes were discovered or no valid spells
    resulted. Fatal to the current load attempt; consumers may retry.
    """

    kind = FailureKind.CATALOG_UNAVAILABLE
    retryable = True


class StorageError(GrimoireError):
    """Writing to the local durable store failed (quota, disabled storage)."""

    kind = FailureKind.STORAGE_ERROR


class DailySelectionError(GrimoireError):
    """Today's daily selection could not be filled to its sample size."""

    kind = FailureKind.DAILY_UNAVAILABLE
    retryable = True
