"""Periodic background sweep of inactive sessions."""

import asyncio
import logging
from dataclasses import dataclass, field

from bacchus.services.engine import SessionEngine

logger = logging.getLogger(__name__)


@dataclass
class InactivitySweeper:
    """Runs ``SessionEngine.sweep_inactive`` on a fixed interval."""

    engine: SessionEngine
    interval_seconds: float = 3600.0
    _task: asyncio.Task[None] | None = field(init=False, default=None)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="inactivity-sweeper")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run_once(self) -> int:
        """Run a single sweep off the event loop, returning how many ended."""
        try:
            terminated = await asyncio.to_thread(self.engine.sweep_inactive)
        except Exception:
            logger.exception("Inactivity sweep failed")
            return 0
        return len(terminated)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()
