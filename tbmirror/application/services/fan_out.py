"""Bounded concurrent fan-out with per-item fault isolation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from tbmirror.domain.entities import ItemOutcome
from tbmirror.domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def fan_out(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[ItemOutcome]],
    *,
    category: str,
    name_of: Callable[[T], str] = str,
    limit: int = 8,
    timeout: float | None = None,
) -> list[ItemOutcome]:
    """Run ``worker`` once per item, at most ``limit`` at a time.

    Every item is awaited before returning; one outcome per item, in input
    order. Failures and timeouts become failed outcomes. Authentication
    errors are fatal for the whole run and are re-raised.
    """
    semaphore = asyncio.Semaphore(max(limit, 1))

    async def run(item: T) -> ItemOutcome:
        name = name_of(item)
        async with semaphore:
            try:
                if timeout:
                    return await asyncio.wait_for(worker(item), timeout)
                return await worker(item)
            except AuthenticationError:
                raise
            except asyncio.TimeoutError:
                logger.error("%s '%s' timed out after %.0fs", category, name, timeout)
                return ItemOutcome.failed(category, name, f"timed out after {timeout:.0f}s")
            except Exception as e:
                logger.error("%s '%s' failed: %s", category, name, e)
                return ItemOutcome.failed(category, name, e)

    return list(await asyncio.gather(*(run(item) for item in items)))
