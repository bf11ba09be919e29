"""
Concurrency utilities.
"""

import asyncio
from collections.abc import Awaitable, Coroutine, Iterable
from typing import Any, TypeVar

T = TypeVar("T")


async def gather_bounded(
    coros: Iterable[Coroutine[Any, Any, T]], limit: int
) -> list[T]:
    """
    Await coroutines with at most `limit` running at once.

    CONCURRENCY MODEL:
        All coroutines are wrapped in tasks up front and admitted through an
        asyncio.Semaphore. Results come back in input order regardless of
        completion order.

    FAILURE MODEL:
        The first exception cancels every other task and is re-raised once
        they have all settled. Coroutines that never started are closed, so
        no partial result escapes and nothing is left running. Cancelling
        the caller cancels the children the same way.

    Args:
        coros: Coroutines to run
        limit: Maximum number running concurrently (values below 1 mean 1)

    Returns:
        Results in input order
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(coro: Coroutine[Any, Any, T]) -> T:
        try:
            async with semaphore:
                return await coro
        finally:
            # No-op for finished coroutines; avoids "never awaited" for skipped ones
            coro.close()

    tasks = [asyncio.ensure_future(run(coro)) for coro in coros]
    if not tasks:
        return []

    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await _settle(tasks)
        raise


async def _settle(tasks: list[Awaitable[Any]]) -> None:
    await asyncio.gather(*tasks, return_exceptions=True)
