"""
Message Dispatcher — one handler per extension message type.

Incoming payloads are validated against the MessageRequest union; the
"action" field picks the model.  Every outcome is a JSON-compatible value:
validation failures and handler exceptions become {"error": ...}.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from pydantic import TypeAdapter, ValidationError

from ..actions.session_controller import SessionController
from .schemas import (
    MESSAGE_TYPES,
    GetDomainVisitsMessage,
    GetSessionsMessage,
    GetSettingsMessage,
    GetStreakMessage,
    GetSuggestedNextMessage,
    GetTaskTimeEntriesMessage,
    GetTasksMessage,
    GetTimerStateMessage,
    MessageRequest,
    SaveSettingsMessage,
    SaveTasksMessage,
    StartSessionMessage,
    StopSessionMessage,
    TaskMovedFromDoingMessage,
    TaskMovedToDoingMessage,
    UpdateTaskMessage,
)

logger = logging.getLogger(__name__)

_ADAPTER: TypeAdapter = TypeAdapter(MessageRequest)

_UNKNOWN_ACTION_ERRORS = {"union_tag_invalid", "union_tag_not_found"}

OK = {"ok": True}


class MessageDispatcher:

    def __init__(self, controller: SessionController):
        self._controller = controller
        self._repo = controller.repo
        self._handlers: Dict[type, Callable[[Any], Awaitable[Any]]] = {
            StartSessionMessage: self._start_session,
            StopSessionMessage: self._stop_session,
            GetTimerStateMessage: self._get_timer_state,
            GetSuggestedNextMessage: self._get_suggested_next,
            GetStreakMessage: self._get_streak,
            TaskMovedToDoingMessage: self._task_moved_to_doing,
            TaskMovedFromDoingMessage: self._task_moved_from_doing,
            GetTasksMessage: self._get_tasks,
            SaveTasksMessage: self._save_tasks,
            UpdateTaskMessage: self._update_task,
            GetSettingsMessage: self._get_settings,
            SaveSettingsMessage: self._save_settings,
            GetSessionsMessage: self._get_sessions,
            GetTaskTimeEntriesMessage: self._get_task_time_entries,
            GetDomainVisitsMessage: self._get_domain_visits,
        }
        missing = [m.__name__ for m in MESSAGE_TYPES if m not in self._handlers]
        if missing:
            raise TypeError(f"No handler registered for: {', '.join(missing)}")

    async def dispatch(self, payload: Any) -> Any:
        try:
            message = _ADAPTER.validate_python(payload)
        except ValidationError as exc:
            return {"error": _describe(exc, payload)}

        handler = self._handlers[type(message)]
        try:
            return await handler(message)
        except Exception as exc:
            logger.exception("Handler for %r failed", message.action)
            return {"error": str(exc) or exc.__class__.__name__}

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def _start_session(self, msg: StartSessionMessage) -> Any:
        state, session = await self._controller.start_session(msg.type)
        return {"timerState": state.to_dict(), "session": session.to_dict()}

    async def _stop_session(self, msg: StopSessionMessage) -> Any:
        session = await self._controller.stop_session()
        return session.to_dict() if session else None

    async def _get_timer_state(self, msg: GetTimerStateMessage) -> Any:
        return (await self._repo.get_timer_state()).to_dict()

    async def _get_suggested_next(self, msg: GetSuggestedNextMessage) -> Any:
        return (await self._controller.timer.suggest_next()).value

    async def _get_streak(self, msg: GetStreakMessage) -> Any:
        return await self._controller.timer.compute_streak()

    # ------------------------------------------------------------------
    # Board
    # ------------------------------------------------------------------

    async def _task_moved_to_doing(self, msg: TaskMovedToDoingMessage) -> Any:
        await self._controller.task_moved_to_doing(msg.taskId)
        return OK

    async def _task_moved_from_doing(self, msg: TaskMovedFromDoingMessage) -> Any:
        await self._controller.task_moved_from_doing(msg.taskId)
        return OK

    async def _get_tasks(self, msg: GetTasksMessage) -> Any:
        return await self._repo.get_tasks()

    async def _save_tasks(self, msg: SaveTasksMessage) -> Any:
        await self._repo.save_tasks(msg.tasks)
        return OK

    async def _update_task(self, msg: UpdateTaskMessage) -> Any:
        await self._repo.update_task(msg.task)
        return OK

    # ------------------------------------------------------------------
    # Settings and ledgers
    # ------------------------------------------------------------------

    async def _get_settings(self, msg: GetSettingsMessage) -> Any:
        return await self._repo.get_settings()

    async def _save_settings(self, msg: SaveSettingsMessage) -> Any:
        await self._repo.save_settings(msg.settings)
        return OK

    async def _get_sessions(self, msg: GetSessionsMessage) -> Any:
        return [s.to_dict() for s in await self._repo.get_sessions()]

    async def _get_task_time_entries(self, msg: GetTaskTimeEntriesMessage) -> Any:
        return [e.to_dict() for e in await self._repo.get_task_time_entries()]

    async def _get_domain_visits(self, msg: GetDomainVisitsMessage) -> Any:
        return [v.to_dict() for v in await self._repo.get_domain_visits()]


def _describe(exc: ValidationError, payload: Any) -> str:
    errors = exc.errors()
    if any(e.get("type") in _UNKNOWN_ACTION_ERRORS for e in errors):
        action = payload.get("action") if isinstance(payload, dict) else None
        return f"Unknown action: {action!r}" if action else "Unknown action"
    first = errors[0] if errors else {}
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid message: {loc} {first.get('msg', '')}".strip()
