"""
Pomodoro Timer State Machine — owns the TimerState singleton and the
append-only session ledger.

States are ``idle`` and ``running``.  A running session whose alarm has fired
is in overtime: it keeps running until it is explicitly stopped.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from ..config import Config, config as default_config
from ..storage.repository import StateRepository
from .models import (
    Session,
    SessionStatus,
    SessionType,
    TimerState,
    TimerStatus,
    utcnow,
)
from .session_clock import nominal_duration

logger = logging.getLogger(__name__)

STREAK_SCAN_DAYS = 365


class TimerStateMachine:

    def __init__(
        self,
        repo: StateRepository,
        cfg: Optional[Config] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repo = repo
        self._config = cfg or default_config
        self._clock = clock

    @property
    def long_break_after(self) -> int:
        return self._config.long_break_after

    async def get_state(self) -> TimerState:
        return await self._repo.get_timer_state()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start_session(self, session_type: SessionType) -> Tuple[TimerState, Session]:
        """Start *session_type*, completing any running session first."""
        session_type = SessionType(session_type)
        if (await self._repo.get_timer_state()).is_running:
            await self.stop_session()

        current = await self._repo.get_timer_state()
        cycle_position = current.cycle_position or 1
        now = self._clock()

        session = Session(
            id=str(uuid.uuid4()),
            type=session_type,
            started_at=now,
            ended_at=None,
            status=SessionStatus.RUNNING,
            cycle_position=cycle_position,
        )
        await self._repo.append_session(session)

        state = TimerState(
            status=TimerStatus.RUNNING,
            type=session_type,
            started_at=now,
            duration=nominal_duration(session_type, self._config),
            cycle_position=cycle_position,
            session_id=session.id,
            alarm_fired=False,
        )
        await self._repo.save_timer_state(state)
        logger.info(
            "Started %s session %s (cycle %d)",
            session_type.value, session.id, cycle_position,
        )
        return state, session

    async def stop_session(self) -> Optional[Session]:
        """Complete the running session and return it; None when idle."""
        state = await self._repo.get_timer_state()
        if not state.is_running:
            return None

        now = self._clock()

        def _close(sessions: List[Session]) -> Optional[Session]:
            for s in sessions:
                if s.id == state.session_id:
                    s.ended_at = now
                    s.status = SessionStatus.COMPLETED
                    return s
            return None

        session = await self._repo.update_sessions(_close)

        next_position = state.cycle_position
        if state.type == SessionType.FOCUS:
            next_position = (state.cycle_position % self.long_break_after) + 1

        await self._repo.save_timer_state(TimerState.idle(cycle_position=next_position))
        logger.info(
            "Stopped %s session %s; next cycle position %d",
            state.type.value if state.type else "unknown",
            state.session_id, next_position,
        )
        return session

    async def on_alarm_fired(self) -> Optional[TimerState]:
        """Flag overtime. The session is not stopped."""
        state = await self._repo.get_timer_state()
        if not state.is_running:
            return None
        state = state.with_alarm_fired()
        await self._repo.save_timer_state(state)
        logger.info("Session %s reached its nominal duration", state.session_id)
        return state

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def suggest_next(self) -> SessionType:
        state = await self._repo.get_timer_state()
        if state.is_running:
            return SessionType.FOCUS

        sessions = await self._repo.get_sessions()
        last = sessions[-1] if sessions else None

        # cyclePosition wraps to 1 after the Nth focus; the ledger row tells
        # us whether that wrap just happened.
        if (
            state.cycle_position == 1
            and last is not None
            and last.type == SessionType.FOCUS
            and last.status == SessionStatus.COMPLETED
            and last.cycle_position == self.long_break_after
        ):
            return SessionType.LONG_BREAK

        if last is None or last.type != SessionType.FOCUS:
            return SessionType.FOCUS
        return SessionType.SHORT_BREAK

    async def compute_streak(self) -> int:
        """Consecutive local calendar days, ending today or yesterday, with a completed focus."""
        sessions = await self._repo.get_sessions()
        days = {
            s.started_at.astimezone().date()
            for s in sessions
            if s.type == SessionType.FOCUS and s.status == SessionStatus.COMPLETED
        }
        if not days:
            return 0

        check = self._clock().astimezone().date()
        if check not in days:
            check -= timedelta(days=1)
            if check not in days:
                return 0

        streak = 0
        for _ in range(STREAK_SCAN_DAYS):
            if check not in days:
                break
            streak += 1
            check -= timedelta(days=1)
        return streak
