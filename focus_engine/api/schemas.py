"""
Pydantic schemas for the FastAPI local API.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..actions.models import SessionType

# ── Extension messages ─────────────────────────────────────────────────────
# One model per action; "action" is the discriminator.


class _Message(BaseModel):
    model_config = ConfigDict(extra="ignore")


class StartSessionMessage(_Message):
    action: Literal["startSession"]
    type: SessionType


class StopSessionMessage(_Message):
    action: Literal["stopSession"]


class GetTimerStateMessage(_Message):
    action: Literal["getTimerState"]


class GetSuggestedNextMessage(_Message):
    action: Literal["getSuggestedNext"]


class GetStreakMessage(_Message):
    action: Literal["getStreak"]


class TaskMovedToDoingMessage(_Message):
    action: Literal["taskMovedToDoing"]
    taskId: str


class TaskMovedFromDoingMessage(_Message):
    action: Literal["taskMovedFromDoing"]
    taskId: str


class GetTasksMessage(_Message):
    action: Literal["getTasks"]


class SaveTasksMessage(_Message):
    action: Literal["saveTasks"]
    tasks: List[Dict[str, Any]]


class UpdateTaskMessage(_Message):
    action: Literal["updateTask"]
    task: Dict[str, Any]

    @field_validator("task")
    @classmethod
    def _has_id(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if "id" not in v:
            raise ValueError("task must have an id")
        return v


class GetSettingsMessage(_Message):
    action: Literal["getSettings"]


class SaveSettingsMessage(_Message):
    action: Literal["saveSettings"]
    settings: Dict[str, Any]


class GetSessionsMessage(_Message):
    action: Literal["getSessions"]


class GetTaskTimeEntriesMessage(_Message):
    action: Literal["getTaskTimeEntries"]


class GetDomainVisitsMessage(_Message):
    action: Literal["getDomainVisits"]


MESSAGE_TYPES = (
    StartSessionMessage,
    StopSessionMessage,
    GetTimerStateMessage,
    GetSuggestedNextMessage,
    GetStreakMessage,
    TaskMovedToDoingMessage,
    TaskMovedFromDoingMessage,
    GetTasksMessage,
    SaveTasksMessage,
    UpdateTaskMessage,
    GetSettingsMessage,
    SaveSettingsMessage,
    GetSessionsMessage,
    GetTaskTimeEntriesMessage,
    GetDomainVisitsMessage,
)

MessageRequest = Annotated[Union[MESSAGE_TYPES], Field(discriminator="action")]  # type: ignore[valid-type]


# ── Timer ──────────────────────────────────────────────────────────────────

class StartSessionRequest(BaseModel):
    type: SessionType


class TimerStateOut(BaseModel):
    status: str
    type: Optional[str]
    started_at: Optional[str]
    duration: Optional[int]
    cycle_position: int
    session_id: Optional[str]
    alarm_fired: bool
    remaining_seconds: float
    overtime: bool
    display: str


class SessionOut(BaseModel):
    id: str
    type: str
    started_at: str
    ended_at: Optional[str]
    status: str
    cycle_position: int


class BadgeOut(BaseModel):
    text: str
    color: Optional[str]


class SuggestedNextOut(BaseModel):
    type: str


class StreakOut(BaseModel):
    streak: int


# ── Settings ───────────────────────────────────────────────────────────────

class TagOut(BaseModel):
    displayName: str
    color: str


class SettingsPatch(BaseModel):
    blockedDomains: Optional[List[str]] = None
    tags: Optional[Dict[str, TagOut]] = None


# ── Browser bridge ─────────────────────────────────────────────────────────

class BrowserEventIn(BaseModel):
    type: str = Field(..., description="TAB_UPDATED | TAB_ACTIVATED | WINDOW_FOCUS | ...")
    data: Dict[str, Any] = Field(default_factory=dict)


class RulesOut(BaseModel):
    version: int
    rules: List[Dict[str, Any]]


class CommandsOut(BaseModel):
    commands: List[Dict[str, Any]]
