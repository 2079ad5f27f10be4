"""Superseding request runner.

Hosts start a new relay search or high-point scan whenever the user moves
the map or markers. Only the latest request matters: submitting a new one
cancels the one in flight, and a result that completes after being
superseded is discarded instead of being handed back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SupersedingRunner:
    """Keeps at most one live request per slot (e.g. "relays", "high-points")."""

    def __init__(self, name: str = "request") -> None:
        self.name = name
        self._generation = 0
        self._task: asyncio.Future | None = None

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Abandon the in-flight request; its caller receives None."""
        self._generation += 1
        if self.busy:
            self._task.cancel()

    async def run(self, work: Awaitable[T]) -> T | None:
        """Run work as the latest request.

        Returns:
            The result, or None when a newer request (or cancel()) superseded
            this one before it was delivered.
        """
        self.cancel()
        generation = self._generation
        task = asyncio.ensure_future(work)
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("%s superseded while running", self.name)
                return None
            raise
        if generation != self._generation:
            logger.debug("%s finished after being superseded; result discarded", self.name)
            return None
        return result
