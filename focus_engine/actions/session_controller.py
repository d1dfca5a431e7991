"""
Session Controller — wires the timer, the focus enforcer, the activity
tracker and the alarms together for every lifecycle event:

    start  → timer.start_session → alarm armed → enforcement + task time (focus)
                                               → domain tracking (breaks)
    stop   → task entries closed + enforcement off (focus)
             domain tracking off (breaks)  → timer.stop_session
    alarm  → overtime flag only
    locked → treated as stop
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from ..config import Config, config as default_config
from ..storage.repository import StateRepository
from ..telemetry.activity import ActivityTracker
from ..telemetry.browser_bridge import BrowserHost
from .alarms import AlarmBridge
from .focus_mode import FocusEnforcer
from .models import Session, SessionType, TaskTimeEntry, TimerState, find_doing_task, utcnow
from .pomodoro import TimerStateMachine
from .session_clock import badge_for, get_remaining

logger = logging.getLogger(__name__)

LOCKED = "locked"


class SessionController:

    def __init__(
        self,
        repo: StateRepository,
        browser: BrowserHost,
        alarms: Optional[AlarmBridge] = None,
        cfg: Optional[Config] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._config = cfg or default_config
        self._clock = clock
        self.repo = repo
        self.alarms = alarms or AlarmBridge()
        self.timer = TimerStateMachine(repo, self._config, clock)
        self.enforcer = FocusEnforcer(repo, browser, self._config)
        self.activity = ActivityTracker(repo, browser, clock)
        self.badge: Tuple[str, Optional[str]] = ("", None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_session(self, session_type: SessionType) -> Tuple[TimerState, Session]:
        session_type = SessionType(session_type)
        if (await self.repo.get_timer_state()).is_running:
            await self.stop_session()

        state, session = await self.timer.start_session(session_type)
        self._arm_session_alarm(state.duration or 0)

        if session_type == SessionType.FOCUS:
            await self._activate_enforcement()
            doing = find_doing_task(await self.repo.get_tasks())
            if doing is not None:
                await self.activity.open_task_entry(doing["id"])
        else:
            await self.activity.start_domain_tracking()

        return state, session

    async def stop_session(self) -> Optional[Session]:
        state = await self.repo.get_timer_state()
        if not state.is_running:
            return None

        self.alarms.clear(self._config.session_alarm_name)

        if state.type == SessionType.FOCUS:
            await self.activity.close_all_task_entries()
            try:
                await self.enforcer.deactivate()
            except Exception:
                logger.exception("Failed to lift focus enforcement")
        else:
            await self.activity.stop_domain_tracking()

        session = await self.timer.stop_session()
        self.badge = ("", None)
        return session

    async def on_alarm(self) -> Optional[TimerState]:
        return await self.timer.on_alarm_fired()

    async def on_idle_state(self, idle_state: str) -> Optional[Session]:
        """A locked screen stops the session exactly like the stop command."""
        if idle_state != LOCKED:
            return None
        logger.info("Screen locked; stopping the running session")
        return await self.stop_session()

    # ------------------------------------------------------------------
    # Board signals
    # ------------------------------------------------------------------

    async def task_moved_to_doing(self, task_id: str) -> Optional[TaskTimeEntry]:
        if not (await self.repo.get_timer_state()).is_focus:
            return None
        return await self.activity.open_task_entry(task_id)

    async def task_moved_from_doing(self, task_id: str) -> int:
        return await self.activity.close_task_entry(task_id)

    # ------------------------------------------------------------------
    # Startup and presentation
    # ------------------------------------------------------------------

    async def resume(self) -> None:
        """Re-establish enforcement/tracking and the alarm after a restart."""
        state = await self.repo.get_timer_state()
        if state.is_running:
            if state.type == SessionType.FOCUS:
                await self._activate_enforcement()
            else:
                await self.activity.start_domain_tracking()
            if not state.alarm_fired:
                self._arm_session_alarm(get_remaining(state, self._clock()))
            logger.info("Resumed %s session %s", state.type.value if state.type else "?", state.session_id)

        report = await self.activity.find_orphans()
        if report:
            logger.warning(
                "Found %d open task entries and %d open domain visits left by a previous run",
                len(report.task_entries), len(report.domain_visits),
            )
            if self._config.close_orphaned_intervals:
                closed = await self.activity.close_orphans(report)
                logger.warning("Closed %d orphaned intervals", closed)

    async def refresh_badge(self) -> Tuple[str, Optional[str]]:
        state = await self.repo.get_timer_state()
        self.badge = badge_for(state, self._clock())
        return self.badge

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _arm_session_alarm(self, delay_s: float) -> None:
        self.alarms.create(self._config.session_alarm_name, delay_s, self._on_session_alarm)

    async def _on_session_alarm(self) -> None:
        await self.on_alarm()

    async def _activate_enforcement(self) -> None:
        try:
            await self.enforcer.activate()
        except Exception:
            logger.exception("Focus enforcement failed; the session keeps running")
