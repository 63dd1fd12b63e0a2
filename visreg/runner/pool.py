"""Bounded-parallelism task runner shared by the capture and compare phases."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class TaskFailure(Generic[T]):
    """Placeholder result for an item whose worker raised."""

    def __init__(self, index: int, item: T, error: BaseException):
        self.index = index
        self.item = item
        self.error = error

    def __repr__(self) -> str:
        return f"TaskFailure(index={self.index}, error={self.error!r})"


class ConcurrencyPool:
    """Runs an async worker over a list with at most ``concurrency`` in flight.

    A worker exception never aborts the batch: it is logged and the slot's
    result becomes a ``TaskFailure``. Results are returned in input order.
    The pool keeps no state between ``run`` calls.
    """

    def __init__(self, concurrency: int):
        if isinstance(concurrency, bool) or not isinstance(concurrency, int):
            raise ValueError("Concurrency must be an integer")
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")
        self.concurrency = concurrency

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T, int], Awaitable[R]],
    ) -> list[R | TaskFailure[T]]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _run_one(index: int, item: T) -> R | TaskFailure[T]:
            async with semaphore:
                try:
                    return await worker(item, index)
                except Exception as e:
                    logger.error("Task %d failed: %s", index, e)
                    return TaskFailure(index, item, e)

        return list(await asyncio.gather(
            *(_run_one(i, item) for i, item in enumerate(items))
        ))
