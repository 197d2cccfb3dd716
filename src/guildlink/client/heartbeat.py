"""Repeating heartbeat timer owned by a gateway session."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class HeartbeatMonitor:
    """Cancellable repeating task that invokes ``tick`` every interval.

    At most one timer task exists at a time: :meth:`arm` cancels any running
    instance before starting a new one. The first tick fires one full
    interval after arming.
    """

    def __init__(self, tick: TickCallback) -> None:
        self._tick = tick
        self._task: Optional[asyncio.Task[None]] = None
        self._interval_s: Optional[float] = None
        self._generation = 0

    @property
    def active(self) -> bool:
        task = self._task
        return task is not None and not task.done()

    @property
    def interval_s(self) -> Optional[float]:
        return self._interval_s

    @property
    def generation(self) -> int:
        """Number of times the timer has been armed."""

        return self._generation

    def arm(self, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError(f"heartbeat interval must be positive, got {interval_s!r}")
        self.cancel()
        self._interval_s = float(interval_s)
        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._interval_s),
            name=f"guildlink-heartbeat-{self._generation}",
        )

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Heartbeat tick failed")
