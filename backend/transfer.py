"""Batched transfer — bounded-concurrency processing of large file sets.

Items are split into contiguous batches. Every item of a batch runs
concurrently; the next batch starts only once the whole batch has settled.
Per-item failures are collected, not raised, so the caller decides once
whether a partial result is acceptable.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypeVar

from logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into ceil(len / size) batches, preserving order."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def batch_count(total: int, size: int) -> int:
    return math.ceil(total / size) if total else 0


@dataclass
class BatchResult:
    succeeded: list = field(default_factory=list)
    failed: list[tuple[Any, BaseException]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed

    def merge(self, other: "BatchResult") -> "BatchResult":
        self.succeeded.extend(other.succeeded)
        self.failed.extend(other.failed)
        return self


class TransferProgress:
    """Completed-over-total counter for one transfer, reported as a percentage."""

    def __init__(self, total: int, listener: Callable[[int], None] | None = None):
        self.total = total
        self.completed = 0
        self._listener = listener

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.completed / self.total * 100)

    def advance(self, count: int = 1) -> int:
        self.completed = min(self.total, self.completed + count)
        self._notify()
        return self.percent

    def reset(self) -> None:
        """Zero the counter without notifying; listeners only see forward movement."""
        self.completed = 0

    def _notify(self) -> None:
        if self._listener:
            self._listener(self.percent)


async def run_batches(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[Any]],
    batch_size: int,
    progress: TransferProgress | None = None,
    label: str = "transfer",
) -> BatchResult:
    """
    Run ``worker`` over every item, one batch at a time.

    Args:
        items: The items to process, in order
        worker: Coroutine function called once per item. Its return value is
            recorded in ``succeeded``; an exception records the item in ``failed``
        batch_size: Maximum number of in-flight workers
        progress: Advanced once per settled item
        label: Used in log messages

    Returns:
        BatchResult over all items
    """
    items = list(items)
    batches = partition(items, batch_size)
    if progress is not None:
        progress.reset()

    result = BatchResult()

    async def settle(item):
        try:
            value = await worker(item)
        except Exception as e:
            logger.warning("%s: item %r failed: %s", label, item, e)
            result.failed.append((item, e))
        else:
            result.succeeded.append(value)
        finally:
            if progress is not None:
                progress.advance()

    for index, batch in enumerate(batches, start=1):
        logger.debug("%s: batch %d/%d (%d items)", label, index, len(batches), len(batch))
        await asyncio.gather(*(settle(item) for item in batch))

    if result.failed:
        logger.warning(
            "%s finished with %d of %d items failed", label, len(result.failed), len(items)
        )
    else:
        logger.info("%s finished: %d items in %d batches", label, len(items), len(batches))
    return result
