"""Timer abstraction for the poll loop.

The loop only needs "what time is it" and "wait this long"; tests swap in a
virtual clock so deadlines can be exercised without real sleeps.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod


class Scheduler(ABC):

    @abstractmethod
    def now(self) -> float:
        """Current wall-clock time in epoch seconds."""
        ...

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        ...


class AsyncioScheduler(Scheduler):
    """Real clock; suspends only the calling task."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
