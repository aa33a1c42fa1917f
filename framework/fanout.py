"""Small async orchestration helpers (fan-out + fan-in)."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar, Union

T = TypeVar("T")


async def gather_settled(awaitables: list[Awaitable[T]]) -> list[Union[T, Exception]]:
    """Run awaitables concurrently; failures come back in place of results.

    Preserves input order. Cancellation of the caller still propagates.
    """
    results = await asyncio.gather(*awaitables, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            raise result
    return list(results)


async def gather_with_limit(awaitables: list[Awaitable[T]], concurrency: int) -> list[T]:
    """Run awaitables with an upper bound on in-flight tasks.

    Preserves input order; the first failure propagates.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    semaphore = asyncio.Semaphore(concurrency)

    async def _run_one(aw: Awaitable[T]) -> T:
        async with semaphore:
            return await aw

    return list(await asyncio.gather(*[_run_one(aw) for aw in awaitables]))
