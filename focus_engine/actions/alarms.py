"""
Alarm Bridge — named one-shot and periodic timers on the running event loop.

Alarms are advisory: a session alarm only flags overtime, it never stops a
session.  Re-creating an alarm under an existing name replaces it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict

logger = logging.getLogger(__name__)

AlarmCallback = Callable[[], Awaitable[None]]


class AlarmBridge:

    def __init__(self):
        self._alarms: Dict[str, asyncio.Task] = {}

    def create(self, name: str, delay_s: float, callback: AlarmCallback) -> None:
        """Fire *callback* once after *delay_s* seconds."""
        self.clear(name)
        self._alarms[name] = asyncio.create_task(self._once(name, delay_s, callback))

    def create_periodic(self, name: str, interval_s: float, callback: AlarmCallback) -> None:
        """Fire *callback* every *interval_s* seconds until cleared."""
        self.clear(name)
        self._alarms[name] = asyncio.create_task(self._every(name, interval_s, callback))

    def clear(self, name: str) -> bool:
        task = self._alarms.pop(name, None)
        if task is None:
            return False
        task.cancel()
        return True

    def clear_all(self) -> None:
        for name in list(self._alarms):
            self.clear(name)

    def is_scheduled(self, name: str) -> bool:
        task = self._alarms.get(name)
        return task is not None and not task.done()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _once(self, name: str, delay_s: float, callback: AlarmCallback) -> None:
        await asyncio.sleep(max(0.0, delay_s))
        if self._alarms.get(name) is asyncio.current_task():
            del self._alarms[name]
        await self._fire(name, callback)

    async def _every(self, name: str, interval_s: float, callback: AlarmCallback) -> None:
        while True:
            await asyncio.sleep(interval_s)
            await self._fire(name, callback)

    async def _fire(self, name: str, callback: AlarmCallback) -> None:
        try:
            await callback()
        except Exception:
            logger.exception("Alarm %s callback failed", name)
