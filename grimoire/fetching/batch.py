"""
Batched, rate-limited fetching.

Requests inside a batch run concurrently; batches run one after another
with a pause between them (never before the first, never after the last).
This is a self-imposed rate limit against the upstream API.

A failed request is recorded and skipped. It never aborts its batch or the
operation, and nothing is retried at this layer.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

D = TypeVar("D")
R = TypeVar("R")

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_DELAY_MS = 500


@dataclass(frozen=True, slots=True)
class BatchProgress:
    """How far a batched fetch has got."""

    loaded: int
    total: int
    percentage: int


@dataclass(frozen=True)
class BatchUpdate(Generic[R]):
    """Delivered to progressive-mode callbacks after each batch settles."""

    batch_items: list[R]
    is_complete: bool
    progress: BatchProgress


@dataclass
class BatchResult(Generic[D, R]):
    """Outcome of a batched fetch."""

    results: list[R] = field(default_factory=list)
    """Successful results, in original descriptor order."""

    failed: list[D] = field(default_factory=list)
    """Descriptors whose fetch raised."""

    cancelled: bool = False
    """True if a cancel event stopped the run before the last batch."""

    @property
    def failure_count(self) -> int:
        return len(self.failed)


BatchCallback = Callable[[BatchUpdate[R]], Awaitable[None] | None]


async def _pause(delay_ms: int) -> None:
    await asyncio.sleep(delay_ms / 1000)


def _progress(loaded: int, total: int) -> BatchProgress:
    percentage = round(loaded / total * 100) if total else 100
    return BatchProgress(loaded=loaded, total=total, percentage=percentage)


async def fetch_in_batches(
    descriptors: Sequence[D],
    fetch: Callable[[D], Awaitable[R]],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    delay_ms: int = DEFAULT_DELAY_MS,
    on_batch: BatchCallback[R] | None = None,
    cancel_event: asyncio.Event | None = None,
) -> BatchResult[D, R]:
    """
    Fetch many items in rate-limited batches.

    Bulk mode (on_batch omitted) returns after every batch completes.
    Progressive mode additionally calls on_batch after each batch with that
    batch's successful items and overall progress, so consumers can render
    while the network operation is still running.

    Args:
        descriptors: What to fetch, one entry per request
        fetch: Coroutine function performing one request
        batch_size: Requests issued concurrently per batch
        delay_ms: Pause between consecutive batches
        on_batch: Optional per-batch callback (sync or async)
        cancel_event: Optional event checked between batches; when set,
            remaining batches are skipped

    Returns:
        BatchResult with successful results and failed descriptors

    Raises:
        ValueError: If batch_size is not positive
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    total = len(descriptors)
    outcome: BatchResult[D, R] = BatchResult()

    for start in range(0, total, batch_size):
        if cancel_event is not None and cancel_event.is_set():
            outcome.cancelled = True
            logger.info(
                "batch_fetch_cancelled",
                extra={"loaded": start, "total": total},
            )
            break

        batch = descriptors[start : start + batch_size]
        settled = await asyncio.gather(*(fetch(d) for d in batch), return_exceptions=True)

        batch_items: list[R] = []
        for descriptor, result in zip(batch, settled, strict=True):
            if isinstance(result, Exception):
                outcome.failed.append(descriptor)
                logger.warning("Failed to fetch %r: %s", descriptor, result)
            elif isinstance(result, BaseException):
                # Cancellation and interpreter exits are not fetch failures
                raise result
            else:
                batch_items.append(result)
        outcome.results.extend(batch_items)

        loaded = min(start + batch_size, total)
        is_last = loaded >= total

        if on_batch is not None:
            update = BatchUpdate(
                batch_items=batch_items,
                is_complete=is_last,
                progress=_progress(loaded, total),
            )
            await _notify(on_batch, update)

        if not is_last:
            await _pause(delay_ms)

    if outcome.failed:
        logger.warning(
            "batch_fetch_failures",
            extra={"failed_count": outcome.failure_count, "total": total},
        )

    return outcome


async def _notify(on_batch: BatchCallback[R], update: BatchUpdate[R]) -> None:
    """Run a progress callback; a failing callback never aborts the fetch."""
    try:
        maybe_awaitable = on_batch(update)
        if inspect.isawaitable(maybe_awaitable):
            await maybe_awaitable
    except Exception:
        logger.exception("batch_callback_failed")
