import asyncio
from typing import List, Optional

from core.contracts.store import ContextStore
from utils.logger import logger


class ContextSweeper:
    """Periodically evicts expired contexts from a store, independent of request traffic."""

    def __init__(self, store: ContextStore, interval_sec: float):
        if interval_sec <= 0:
            raise ValueError("Sweep interval must be a positive number of seconds.")
        self.store = store
        self.interval_sec = interval_sec
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> List[str]:
        return await self.store.evict_expired()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Context eviction sweep failed: {e}")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="context-sweeper")
        logger.info(f"Context sweeper started (every {self.interval_sec}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Context sweeper stopped")
