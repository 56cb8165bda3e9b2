"""
Periodic refresh of the recent-entries list.

Runs as its own asyncio task, independent of the entrance workflow. A failed
refresh is logged and the next tick tries again; stop() cancels the loop
without waiting for the interval to elapse.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from portaria import config
from portaria.access_log import AccessLogWriter
from portaria.errors import RegistrationError
from portaria.models import LogView

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[list[LogView]], Awaitable[None] | None]


class AccessLogPoller:
    def __init__(
        self,
        writer: AccessLogWriter,
        on_refresh: RefreshCallback,
        interval: float = None,
        limit: int = None,
    ):
        self.writer = writer
        self.on_refresh = on_refresh
        self.interval = interval if interval is not None else config.POLL_INTERVAL_SECONDS
        self.limit = limit if limit is not None else config.RECENT_LOG_LIMIT
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> list[LogView] | None:
        """Load once and hand the result to the callback. None on failure."""
        try:
            views = await self.writer.list_recent(self.limit)
        except RegistrationError as e:
            logger.warning("Refreshing recent entries failed: %s", e)
            return None
        outcome = self.on_refresh(views)
        if asyncio.iscoroutine(outcome):
            await outcome
        return views

    async def _run(self) -> None:
        while not self._stop.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._stop.clear()
        self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def __aenter__(self) -> "AccessLogPoller":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
