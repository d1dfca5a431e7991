"""
Session Clock — pure functions over a TimerState snapshot.
Nothing here reads or writes the store.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional, Tuple

from ..config import Config, config as default_config
from .models import SessionType, TimerState, utcnow

BADGE_COLORS = {
    SessionType.FOCUS: "#e94560",
    SessionType.SHORT_BREAK: "#4ecdc4",
    SessionType.LONG_BREAK: "#45b7d1",
}


def nominal_duration(session_type: Optional[SessionType], cfg: Optional[Config] = None) -> int:
    cfg = cfg or default_config
    if session_type == SessionType.FOCUS:
        return cfg.focus_duration_s
    if session_type == SessionType.SHORT_BREAK:
        return cfg.short_break_duration_s
    if session_type == SessionType.LONG_BREAK:
        return cfg.long_break_duration_s
    return 0


def elapsed_seconds(state: TimerState, now: Optional[datetime] = None) -> float:
    if not state.is_running or state.started_at is None:
        return 0.0
    now = now or utcnow()
    return max(0.0, (now - state.started_at).total_seconds())


def get_remaining(state: TimerState, now: Optional[datetime] = None) -> float:
    """Seconds left in the nominal duration, floored at zero."""
    if not state.is_running:
        return 0.0
    return max(0.0, (state.duration or 0) - elapsed_seconds(state, now))


def is_overtime(state: TimerState, now: Optional[datetime] = None) -> bool:
    if not state.is_running:
        return False
    return get_remaining(state, now) == 0


def format_time(seconds: float) -> str:
    """mm:ss; negative values (time past the nominal end) get a leading '+'."""
    mins = int(abs(seconds) // 60)
    secs = int(abs(seconds) % 60)
    sign = "+" if seconds < 0 else ""
    return f"{sign}{mins:02d}:{secs:02d}"


def format_duration(seconds: float) -> str:
    """Human readable, e.g. '42s', '25m', '1h 25m'."""
    if seconds < 60:
        return f"{round(seconds)}s"
    hours = int(seconds // 3600)
    mins = int((seconds % 3600) // 60)
    if hours == 0:
        return f"{mins}m"
    return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"


def display(state: TimerState, now: Optional[datetime] = None) -> str:
    if not state.is_running:
        return format_time(0)
    if is_overtime(state, now):
        return format_time((state.duration or 0) - elapsed_seconds(state, now))
    return format_time(get_remaining(state, now))


def badge_for(state: TimerState, now: Optional[datetime] = None) -> Tuple[str, Optional[str]]:
    """Badge text and colour for the toolbar icon."""
    if not state.is_running:
        return "", None
    if state.alarm_fired:
        return "!", BADGE_COLORS[SessionType.FOCUS]
    mins = math.ceil(get_remaining(state, now) / 60)
    return str(mins), BADGE_COLORS.get(state.type) if state.type else None
