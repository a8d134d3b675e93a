"""Concurrent fan-out that settles every task instead of failing fast."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one task: either a value or the exception it raised."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(
    factories: Iterable[Callable[[], Awaitable[T]]],
    limit: int | None = None,
) -> list[Outcome[T]]:
    """
    Run every coroutine factory concurrently and collect one outcome per task.

    Args:
        factories: Zero-argument callables returning awaitables
        limit: Maximum number of tasks in flight at once (unbounded if None)

    Returns:
        Outcomes in the same order as ``factories``. An ``Exception`` raised
        by one task is stored in its outcome and never affects the others.
        Cancellation still propagates.
    """
    semaphore = asyncio.Semaphore(limit) if limit else None

    async def _settle(factory: Callable[[], Awaitable[T]]) -> Outcome[T]:
        try:
            if semaphore is None:
                value = await factory()
            else:
                async with semaphore:
                    value = await factory()
        except Exception as exc:
            return Outcome(error=exc)
        return Outcome(value=value)

    return list(await asyncio.gather(*(_settle(factory) for factory in factories)))
