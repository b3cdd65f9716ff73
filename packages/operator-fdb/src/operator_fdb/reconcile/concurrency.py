"""
Structured fan-out / fan-in for per-instance work.

Every unit of work is awaited before the step concludes, even when one of
them fails, so no background task outlives the step that started it. The
first error (in submission order) is then raised.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

T = TypeVar("T")
U = TypeVar("U")


async def join_all(*aws: Awaitable[Any]) -> list[Any]:
    """Await everything, then raise the first error if any failed."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


async def fan_out(items: Iterable[T], work: Callable[[T], Awaitable[U]]) -> list[U]:
    """
    Run work(item) concurrently for every item.

    Returns:
        Results in the same order as items.
    """
    return await join_all(*(work(item) for item in items))
