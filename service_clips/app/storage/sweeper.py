"""
Periodic purge of expired clips from the memory tier.
"""

import asyncio
from contextlib import suppress
from datetime import datetime
from typing import Callable, Optional, TYPE_CHECKING

from shared.logging import get_logger

from .memory import MemoryTier

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ExpirySweeper:
    """Background task that reclaims memory held by expired clips.

    Expiry is already enforced on every read, so the sweeper only bounds
    memory growth. Redis expires its own keys and is never touched here.
    """

    def __init__(
        self,
        memory: MemoryTier,
        clock: Callable[[], datetime],
        interval: float = 60.0,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.memory = memory
        self.clock = clock
        self.interval = interval
        self.metrics = metrics
        self.logger = get_logger("clips.storage.sweeper")
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        self.logger.debug("Expiry sweeper started", interval=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self.logger.debug("Expiry sweeper stopped")

    def sweep_once(self) -> int:
        removed = self.memory.purge_expired(self.clock())
        if removed:
            self.logger.info("Memory cleanup: expired clips removed", removed=removed)
            if self.metrics:
                try:
                    self.metrics.increment_counter("sweeper_purged_total", removed)
                except Exception as e:  # pragma: no cover - metrics failures never break sweeping
                    self.logger.debug("Failed to record sweep metrics", error=str(e))
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep_once()
            except Exception as e:
                self.logger.error("Expiry sweep failed", error=str(e), exc_info=True)
