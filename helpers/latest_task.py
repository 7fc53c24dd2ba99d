from __future__ import annotations

from typing import Any, Coroutine, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


class LatestTask:
    """A slot holding at most one running task; launching a new one cancels the old one."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def launch(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        if self.running:
            logger.info("Cancelling previous %s task", self.name)
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(coro, name=self.name)
        return self._task

    def cancel(self) -> None:
        if self.running:
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the current task to settle, ignoring its outcome."""
        task = self._task
        if task is None:
            return
        await asyncio.wait([task])
