"""Concurrency coordinator - bounded fan-out / full-batch fan-in."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar, Union

logger = logging.getLogger(__name__)

R = TypeVar("R")


class ConcurrencyCoordinator:
    """Admits at most ``limit`` units at once and joins whole batches.

    The limit is fixed at construction and shared by every batch the
    coordinator runs within one event loop. Results come back in submission
    order regardless of completion order.
    """

    def __init__(self, limit: int = 1) -> None:
        if limit < 1:
            raise ValueError(f"Concurrency limit must be >= 1, got {limit}")
        self.limit = limit
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._active = 0
        self.peak_active = 0

    @property
    def active(self) -> int:
        return self._active

    def _slots(self) -> asyncio.Semaphore:
        # A semaphore binds to the loop it first waits in; each asyncio.run gets its own.
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self.limit)
            self._loop = loop
        return self._semaphore

    async def _admit(self, slots: asyncio.Semaphore, unit: Callable[[], Awaitable[R]]) -> R:
        async with slots:
            self._active += 1
            self.peak_active = max(self.peak_active, self._active)
            try:
                return await unit()
            finally:
                self._active -= 1

    async def run_batch(
        self, units: Sequence[Callable[[], Awaitable[R]]]
    ) -> list[Union[R, BaseException]]:
        """Run every unit, waiting for all of them.

        A unit that raises does not cancel its siblings; its exception takes
        its slot in the returned list.
        """
        if not units:
            return []
        slots = self._slots()
        logger.debug(f"Dispatching batch of {len(units)} unit(s), limit {self.limit}")
        return await asyncio.gather(
            *(self._admit(slots, unit) for unit in units),
            return_exceptions=True,
        )
