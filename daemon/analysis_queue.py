"""
Analysis queue: "on any committed change to hero fields or item count,
enqueue one analysis task".

At most one analysis is in flight. Submissions while one is pending are
folded into it; a submission while one is running schedules exactly one
follow-up run, which reads the matchup when it starts. Analysis results
therefore land in the order they were issued.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("wr_tactician.live")


class AnalysisQueue:

    def __init__(self, job: Callable[[], Awaitable[None]]):
        self._job = job
        self._pending = False
        self._in_flight = False
        self._worker: Optional[asyncio.Task] = None
        self.runs = 0
        self.coalesced = 0

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def submit(self) -> bool:
        """Enqueue one analysis. Returns False when folded into a pending one."""
        if self._pending:
            self.coalesced += 1
            logger.debug("Analysis already pending — coalesced")
            return False

        self._pending = True
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain())
        return True

    async def _drain(self):
        while self._pending:
            self._pending = False
            self._in_flight = True
            try:
                await self._job()
            except Exception as e:
                logger.error(f"Analysis job failed: {e}", exc_info=True)
            finally:
                self._in_flight = False
                self.runs += 1

    async def join(self):
        """Wait until nothing is pending or running."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    def cancel(self):
        self._pending = False
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
