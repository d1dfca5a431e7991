"""
State Repository — typed access to every key the engine persists.

Nothing is cached: each call re-reads the store, so the process can be
restarted between any two calls.  Read-modify-write sequences on one key are
serialised behind a per-key asyncio.Lock; writers in other processes still
race with last-write-wins.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ..actions.models import DomainVisit, Session, TaskTimeEntry, TimerState
from ..settings import merge_settings, normalize_settings
from .kv_store import KeyValueStore

R = TypeVar("R")


class StoreKey(str, Enum):
    TIMER_STATE = "timerState"
    SESSIONS = "sessions"
    TASK_TIME_ENTRIES = "taskTimeEntries"
    DOMAIN_VISITS = "domainVisits"
    SETTINGS = "settings"
    TASKS = "tasks"


class StateRepository:

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._locks: Dict[StoreKey, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Timer state
    # ------------------------------------------------------------------

    async def get_timer_state(self) -> TimerState:
        return TimerState.from_dict(await self._store.get(StoreKey.TIMER_STATE.value))

    async def save_timer_state(self, state: TimerState) -> None:
        async with self._lock(StoreKey.TIMER_STATE):
            await self._store.set(StoreKey.TIMER_STATE.value, state.to_dict())

    # ------------------------------------------------------------------
    # Session ledger (append-only)
    # ------------------------------------------------------------------

    async def get_sessions(self) -> List[Session]:
        return [Session.from_dict(s) for s in await self._get_list(StoreKey.SESSIONS)]

    async def append_session(self, session: Session) -> None:
        def _append(sessions: List[Session]) -> None:
            sessions.append(session)

        await self.update_sessions(_append)

    async def update_sessions(self, fn: Callable[[List[Session]], R]) -> R:
        return await self._update_list(StoreKey.SESSIONS, Session.from_dict, fn)

    # ------------------------------------------------------------------
    # Task time entries
    # ------------------------------------------------------------------

    async def get_task_time_entries(self) -> List[TaskTimeEntry]:
        return [
            TaskTimeEntry.from_dict(e)
            for e in await self._get_list(StoreKey.TASK_TIME_ENTRIES)
        ]

    async def update_task_time_entries(
        self, fn: Callable[[List[TaskTimeEntry]], R]
    ) -> R:
        return await self._update_list(
            StoreKey.TASK_TIME_ENTRIES, TaskTimeEntry.from_dict, fn
        )

    # ------------------------------------------------------------------
    # Domain visits
    # ------------------------------------------------------------------

    async def get_domain_visits(self) -> List[DomainVisit]:
        return [
            DomainVisit.from_dict(v) for v in await self._get_list(StoreKey.DOMAIN_VISITS)
        ]

    async def update_domain_visits(self, fn: Callable[[List[DomainVisit]], R]) -> R:
        return await self._update_list(StoreKey.DOMAIN_VISITS, DomainVisit.from_dict, fn)

    # ------------------------------------------------------------------
    # Settings and tasks (owned by external collaborators)
    # ------------------------------------------------------------------

    async def get_settings(self) -> Dict[str, Any]:
        return merge_settings(await self._store.get(StoreKey.SETTINGS.value))

    async def save_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        normalized = normalize_settings(settings)
        async with self._lock(StoreKey.SETTINGS):
            await self._store.set(StoreKey.SETTINGS.value, normalized)
        return normalized

    async def get_blocked_domains(self) -> List[str]:
        return list((await self.get_settings()).get("blockedDomains") or [])

    async def get_tasks(self) -> List[Dict[str, Any]]:
        return await self._get_list(StoreKey.TASKS)

    async def save_tasks(self, tasks: List[Dict[str, Any]]) -> None:
        async with self._lock(StoreKey.TASKS):
            await self._store.set(StoreKey.TASKS.value, list(tasks))

    async def update_task(self, task: Dict[str, Any]) -> bool:
        """Replace the stored task with the same id; unknown ids are ignored."""
        async with self._lock(StoreKey.TASKS):
            tasks = await self._get_list(StoreKey.TASKS)
            for idx, existing in enumerate(tasks):
                if existing.get("id") == task.get("id"):
                    tasks[idx] = task
                    await self._store.set(StoreKey.TASKS.value, tasks)
                    return True
        return False

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _lock(self, key: StoreKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _get_list(self, key: StoreKey) -> List[Any]:
        value = await self._store.get(key.value)
        return list(value) if isinstance(value, list) else []

    async def _update_list(
        self,
        key: StoreKey,
        parse: Callable[[Dict[str, Any]], Any],
        fn: Callable[[List[Any]], R],
    ) -> R:
        """Load the collection, let *fn* mutate it in place, write it back if changed."""
        async with self._lock(key):
            raw: Optional[List[Any]] = await self._store.get(key.value)
            before = list(raw) if isinstance(raw, list) else []
            items = [parse(item) for item in before]
            result = fn(items)
            after = [item.to_dict() for item in items]
            if after != before:
                await self._store.set(key.value, after)
            return result
