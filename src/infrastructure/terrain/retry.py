"""Retry policy shared by the remote elevation backends.

Every attempt runs under a hard timeout; failed attempts are retried a
bounded number of times with linear backoff (backoff_s, 2*backoff_s, ...).
Exhaustion raises ElevationUnavailable carrying every attempt's error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from domain.terrain.errors import ElevationUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ValueError covers malformed JSON and unexpected payload shapes
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    asyncio.TimeoutError,
    ValueError,
)


async def call_with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int,
    backoff_s: float,
    timeout_s: float,
    label: str,
) -> T:
    """Run operation up to retries + 1 times.

    ElevationShapeMismatch and other non-retryable errors propagate at once.
    """
    causes: list[BaseException] = []
    attempts = retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(operation(), timeout_s)
        except RETRYABLE_ERRORS as e:
            causes.append(e)
            if attempt == attempts:
                break
            delay = backoff_s * attempt
            logger.warning(
                "%s failed (attempt %d/%d): %r; retrying in %.2fs",
                label,
                attempt,
                attempts,
                e,
                delay,
            )
            await asyncio.sleep(delay)

    logger.error("%s failed after %d attempts", label, attempts)
    raise ElevationUnavailable(f"{label} failed after {attempts} attempts", causes=causes)
