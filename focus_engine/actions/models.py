"""
Core data model — timer state, the session ledger and the two interval logs.

Persisted shapes use camelCase keys and ISO-8601 timestamps so the browser
extension can read the store's JSON directly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionType(str, Enum):
    FOCUS = "focus"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"


class TimerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class SessionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"


class TaskColumn(str, Enum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"
    CLEARED = "cleared"


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_ts(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------------------------
# Timer state (singleton)
# ---------------------------------------------------------------------------

@dataclass
class TimerState:
    status: TimerStatus = TimerStatus.IDLE
    type: Optional[SessionType] = None
    started_at: Optional[datetime] = None
    duration: Optional[int] = None          # nominal seconds
    cycle_position: int = 1
    session_id: Optional[str] = None
    alarm_fired: bool = False

    @property
    def is_running(self) -> bool:
        return self.status == TimerStatus.RUNNING

    @property
    def is_focus(self) -> bool:
        return self.is_running and self.type == SessionType.FOCUS

    @classmethod
    def idle(cls, cycle_position: int = 1) -> "TimerState":
        return cls(cycle_position=cycle_position)

    def with_alarm_fired(self) -> "TimerState":
        return replace(self, alarm_fired=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "type": self.type.value if self.type else None,
            "startedAt": to_iso(self.started_at),
            "duration": self.duration,
            "cyclePosition": self.cycle_position,
            "sessionId": self.session_id,
            "alarmFired": self.alarm_fired,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TimerState":
        if not data:
            return cls()
        status = TimerStatus(data.get("status") or TimerStatus.IDLE.value)
        raw_type = data.get("type")
        return cls(
            status=status,
            type=SessionType(raw_type) if raw_type else None,
            started_at=parse_ts(data.get("startedAt")),
            duration=data.get("duration"),
            cycle_position=int(data.get("cyclePosition") or 1),
            session_id=data.get("sessionId"),
            alarm_fired=bool(data.get("alarmFired", False)),
        )


# ---------------------------------------------------------------------------
# Session ledger
# ---------------------------------------------------------------------------

@dataclass
class Session:
    id: str
    type: SessionType
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: SessionStatus = SessionStatus.RUNNING
    cycle_position: int = 1                 # snapshot at creation

    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "startedAt": to_iso(self.started_at),
            "endedAt": to_iso(self.ended_at),
            "status": self.status.value,
            "cyclePosition": self.cycle_position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            type=SessionType(data["type"]),
            started_at=parse_ts(data["startedAt"]),  # type: ignore[arg-type]
            ended_at=parse_ts(data.get("endedAt")),
            status=SessionStatus(data.get("status", SessionStatus.RUNNING.value)),
            cycle_position=int(data.get("cyclePosition") or 1),
        )


# ---------------------------------------------------------------------------
# Interval logs
# ---------------------------------------------------------------------------

@dataclass
class TaskTimeEntry:
    id: str
    task_id: str
    session_id: Optional[str]
    started_at: datetime
    ended_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "taskId": self.task_id,
            "sessionId": self.session_id,
            "startedAt": to_iso(self.started_at),
            "endedAt": to_iso(self.ended_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskTimeEntry":
        return cls(
            id=data["id"],
            task_id=data["taskId"],
            session_id=data.get("sessionId"),
            started_at=parse_ts(data["startedAt"]),  # type: ignore[arg-type]
            ended_at=parse_ts(data.get("endedAt")),
        )


@dataclass
class DomainVisit:
    id: str
    session_id: Optional[str]
    domain: str                             # hostname only
    started_at: datetime
    ended_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "domain": self.domain,
            "startedAt": to_iso(self.started_at),
            "endedAt": to_iso(self.ended_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainVisit":
        return cls(
            id=data["id"],
            session_id=data.get("sessionId"),
            domain=data["domain"],
            started_at=parse_ts(data["startedAt"]),  # type: ignore[arg-type]
            ended_at=parse_ts(data.get("endedAt")),
        )


# ---------------------------------------------------------------------------
# Tasks (owned by the board; only id and column are read here)
# ---------------------------------------------------------------------------

def find_doing_task(tasks: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for task in tasks:
        if task.get("column") == TaskColumn.DOING.value:
            return task
    return None
