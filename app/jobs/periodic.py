"""In-process periodic task with an injectable sleep."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

SCAN_INTERVAL_SECONDS = float(os.environ.get("SCAN_INTERVAL_SECONDS", 300))


class PeriodicTask:
    """Run ``action`` now and then every ``interval`` seconds until stopped.

    Failures inside ``action`` are logged and the schedule keeps going. Tests
    pass a fake ``sleep`` and call :meth:`request_stop` from it.
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Awaitable[object]],
        interval: float,
        *,
        run_immediately: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.action = action
        self.interval = interval
        self.run_immediately = run_immediately
        self._sleep = sleep
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task  # type: ignore[return-value]
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=self.name)
        return self._task

    def request_stop(self) -> None:
        self._stop.set()

    async def stop(self) -> None:
        self.request_stop()
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def tick(self) -> None:
        self.runs += 1
        try:
            await self.action()
        except Exception:
            logger.exception("Periodic task %s failed", self.name)

    async def _loop(self) -> None:
        if self.run_immediately:
            await self.tick()
        while not self._stop.is_set():
            await self._sleep(self.interval)
            if self._stop.is_set():
                break
            await self.tick()
