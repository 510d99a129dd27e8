"""Helpers shared by the pipeline stages."""

import asyncio
import time
from typing import Awaitable, TypeVar

from ..core.errors import UpstreamError


T = TypeVar("T")


async def call_with_timeout(awaitable: Awaitable[T], timeout: float | None, stage: str) -> T:
    """Await a provider call, converting a timeout into an UpstreamError.

    Cancellation is not caught: CancelledError propagates to the caller.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise UpstreamError(f"{stage} stage timed out after {timeout}s") from e


def elapsed_ms(start: float) -> float:
    """Milliseconds since a time.perf_counter() reading, rounded to 0.01."""
    return round((time.perf_counter() - start) * 1000, 2)
