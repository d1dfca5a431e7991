"""
Activity Tracker — attributes session time to tasks (focus) and to visited
websites (breaks).

TaskTimeTracker reacts to "task entered doing" / "task left doing" signals.
DomainVisitTracker follows the active tab of the focused browser window and
keeps a single current-visit pointer; the pointer lives in process memory only.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
from urllib.parse import urlparse

from ..actions.models import DomainVisit, TaskTimeEntry, utcnow
from ..errors import BrowserError
from ..storage.repository import StateRepository
from .browser_bridge import BrowserEvent, BrowserHost

logger = logging.getLogger(__name__)

_TRACKED_SCHEMES = ("http", "https")


# ---------------------------------------------------------------------------
# Task time (focus sessions)
# ---------------------------------------------------------------------------

class TaskTimeTracker:

    def __init__(self, repo: StateRepository, clock: Callable[[], datetime] = utcnow):
        self._repo = repo
        self._clock = clock

    async def open_entry(self, task_id: str) -> Optional[TaskTimeEntry]:
        """Open an entry for *task_id* in the running focus session."""
        state = await self._repo.get_timer_state()
        if not state.is_focus:
            return None

        now = self._clock()

        def _open(entries: List[TaskTimeEntry]) -> TaskTimeEntry:
            for e in entries:
                if e.task_id == task_id and e.is_open:
                    return e
            entry = TaskTimeEntry(
                id=str(uuid.uuid4()),
                task_id=task_id,
                session_id=state.session_id,
                started_at=now,
                ended_at=None,
            )
            entries.append(entry)
            return entry

        return await self._repo.update_task_time_entries(_open)

    async def close_entry(self, task_id: str) -> int:
        now = self._clock()

        def _close(entries: List[TaskTimeEntry]) -> int:
            closed = 0
            for e in entries:
                if e.task_id == task_id and e.is_open:
                    e.ended_at = now
                    closed += 1
            return closed

        return await self._repo.update_task_time_entries(_close)

    async def close_all(self) -> int:
        now = self._clock()

        def _close(entries: List[TaskTimeEntry]) -> int:
            closed = 0
            for e in entries:
                if e.is_open:
                    e.ended_at = now
                    closed += 1
            return closed

        return await self._repo.update_task_time_entries(_close)


# ---------------------------------------------------------------------------
# Domain visits (break sessions)
# ---------------------------------------------------------------------------

class DomainVisitTracker:

    def __init__(
        self,
        repo: StateRepository,
        browser: BrowserHost,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repo = repo
        self._browser = browser
        self._clock = clock
        self._current: Optional[DomainVisit] = None
        self._listening = False
        # Held across close-old / append-new / set-pointer so concurrent
        # browser events can never leave two visits open.
        self._lock = asyncio.Lock()

    @property
    def current_visit(self) -> Optional[DomainVisit]:
        return self._current

    @property
    def listening(self) -> bool:
        return self._listening

    async def start(self) -> Optional[DomainVisit]:
        if not self._listening:
            self._browser.add_listener(BrowserEvent.TAB_ACTIVATED, self.on_tab_activated)
            self._browser.add_listener(BrowserEvent.TAB_UPDATED, self.on_tab_updated)
            self._browser.add_listener(
                BrowserEvent.WINDOW_FOCUS_CHANGED, self.on_window_focus_changed
            )
            self._listening = True

        if not self._browser.window_focused:
            return None
        tab = await self._browser.active_tab()
        if tab and tab.url:
            return await self.open_visit(tab.url)
        return None

    async def stop(self) -> None:
        self._browser.remove_listener(BrowserEvent.TAB_ACTIVATED, self.on_tab_activated)
        self._browser.remove_listener(BrowserEvent.TAB_UPDATED, self.on_tab_updated)
        self._browser.remove_listener(
            BrowserEvent.WINDOW_FOCUS_CHANGED, self.on_window_focus_changed
        )
        self._listening = False
        await self.close_current_visit()

    async def open_visit(self, url: str) -> Optional[DomainVisit]:
        """Close the current visit and open one for *url*'s hostname."""
        async with self._lock:
            return await self._open_visit(url)

    async def close_current_visit(self) -> Optional[DomainVisit]:
        async with self._lock:
            return await self._close_current()

    # ------------------------------------------------------------------
    # Browser signals
    # ------------------------------------------------------------------

    async def on_tab_activated(self, tab_id: int) -> None:
        try:
            tab = await self._browser.get_tab(tab_id)
        except BrowserError:
            return
        if not tab.url:
            return
        await self._switch_to(tab.url)

    async def on_tab_updated(self, tab_id: int, url: str) -> None:
        if not url:
            return
        active = await self._browser.active_tab()
        if active is None or active.id != tab_id:
            return
        await self._switch_to(url)

    async def on_window_focus_changed(self, window_id: Optional[int]) -> None:
        if window_id is None:
            await self.close_current_visit()
            return

        tab = await self._browser.active_tab()
        if tab and tab.url:
            await self.open_visit(tab.url)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _switch_to(self, url: str) -> None:
        async with self._lock:
            await self._close_current()
            if self._browser.window_focused:
                await self._open_visit(url)

    async def _open_visit(self, url: str) -> Optional[DomainVisit]:
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            return None
        if parsed.scheme not in _TRACKED_SCHEMES or not hostname:
            return None

        state = await self._repo.get_timer_state()
        if not state.is_running:
            return None

        await self._close_current()

        visit = DomainVisit(
            id=str(uuid.uuid4()),
            session_id=state.session_id,
            domain=hostname,
            started_at=self._clock(),
            ended_at=None,
        )

        def _append(visits: List[DomainVisit]) -> None:
            visits.append(visit)

        await self._repo.update_domain_visits(_append)
        self._current = visit
        return visit

    async def _close_current(self) -> Optional[DomainVisit]:
        if self._current is None:
            return None

        visit_id = self._current.id
        self._current = None
        now = self._clock()

        def _close(visits: List[DomainVisit]) -> Optional[DomainVisit]:
            for v in visits:
                if v.id == visit_id:
                    v.ended_at = now
                    return v
            return None

        return await self._repo.update_domain_visits(_close)


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------

@dataclass
class OrphanReport:
    task_entries: List[TaskTimeEntry] = field(default_factory=list)
    domain_visits: List[DomainVisit] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.task_entries or self.domain_visits)


class ActivityTracker:
    """Both sub-trackers behind the calls the session lifecycle makes."""

    def __init__(
        self,
        repo: StateRepository,
        browser: BrowserHost,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repo = repo
        self._clock = clock
        self.tasks = TaskTimeTracker(repo, clock)
        self.domains = DomainVisitTracker(repo, browser, clock)

    async def open_task_entry(self, task_id: str) -> Optional[TaskTimeEntry]:
        return await self.tasks.open_entry(task_id)

    async def close_task_entry(self, task_id: str) -> int:
        return await self.tasks.close_entry(task_id)

    async def close_all_task_entries(self) -> int:
        return await self.tasks.close_all()

    async def start_domain_tracking(self) -> Optional[DomainVisit]:
        return await self.domains.start()

    async def stop_domain_tracking(self) -> None:
        await self.domains.stop()

    # ------------------------------------------------------------------
    # Restart reconciliation
    # ------------------------------------------------------------------

    async def find_orphans(self) -> OrphanReport:
        """Open intervals that no live pointer or running session accounts for."""
        state = await self._repo.get_timer_state()
        current = self.domains.current_visit

        entries = [
            e for e in await self._repo.get_task_time_entries()
            if e.is_open and not (state.is_focus and e.session_id == state.session_id)
        ]
        visits = [
            v for v in await self._repo.get_domain_visits()
            if v.is_open and (current is None or v.id != current.id)
        ]
        return OrphanReport(task_entries=entries, domain_visits=visits)

    async def close_orphans(self, report: OrphanReport) -> int:
        now = self._clock()
        entry_ids = {e.id for e in report.task_entries}
        visit_ids = {v.id for v in report.domain_visits}

        def _close_entries(entries: List[TaskTimeEntry]) -> int:
            closed = 0
            for e in entries:
                if e.id in entry_ids and e.is_open:
                    e.ended_at = now
                    closed += 1
            return closed

        def _close_visits(visits: List[DomainVisit]) -> int:
            closed = 0
            for v in visits:
                if v.id in visit_ids and v.is_open:
                    v.ended_at = now
                    closed += 1
            return closed

        closed = await self._repo.update_task_time_entries(_close_entries)
        closed += await self._repo.update_domain_visits(_close_visits)
        return closed
