"""Pacing gates for rate-limited upstream services."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol


class RateGate(Protocol):
    async def acquire(self) -> None: ...


class IntervalGate:
    """Fixed-interval gate: the first acquire passes immediately, every later one waits ``interval_seconds``.

    The wait is unconditional rather than elapsed-time aware so each request is
    separated by at least the full interval regardless of how long the previous
    one took.
    """

    def __init__(
        self,
        interval_seconds: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative.")
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.acquisitions = 0

    async def acquire(self) -> None:
        async with self._lock:
            if self.acquisitions > 0 and self.interval_seconds > 0:
                await self._sleep(self.interval_seconds)
            self.acquisitions += 1

    def reset(self) -> None:
        self.acquisitions = 0
