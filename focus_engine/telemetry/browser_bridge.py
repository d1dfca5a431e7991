"""
Extension Bridge — the engine's model of the browser.

The browser extension keeps this in sync by POSTing tab/window events and
polls it for two things: the declarative redirect rule table (which it mirrors
into its own request-blocking API) and queued tab navigations.  Engine code
only ever talks to the BrowserHost interface.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import TabNotFoundError

logger = logging.getLogger(__name__)

Listener = Callable[..., Awaitable[None]]


class BrowserEvent(str, Enum):
    TAB_UPDATED = "tab_updated"             # (tab_id, url)
    TAB_ACTIVATED = "tab_activated"         # (tab_id,)
    WINDOW_FOCUS_CHANGED = "window_focus_changed"   # (window_id | None,)


@dataclass
class Tab:
    id: int
    url: str = ""
    active: bool = False
    window_id: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "url": self.url, "active": self.active, "windowId": self.window_id}


@dataclass
class RedirectRule:
    """Redirect top-level navigations to *domain* (and its subdomains)."""
    id: int
    domain: str
    redirect_url: str
    resource_types: Tuple[str, ...] = ("main_frame",)
    priority: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "priority": self.priority,
            "action": {"type": "redirect", "redirect": {"url": self.redirect_url}},
            "condition": {
                "requestDomains": [self.domain],
                "resourceTypes": list(self.resource_types),
            },
        }


@dataclass
class BrowserSignal:
    """A parsed extension event."""
    kind: str
    tab_id: Optional[int] = None
    url: Optional[str] = None
    window_id: Optional[int] = None
    tabs: List[Tab] = field(default_factory=list)
    idle_state: Optional[str] = None


class BrowserHost(ABC):

    @abstractmethod
    async def get_dynamic_rules(self) -> List[RedirectRule]: ...

    @abstractmethod
    async def update_dynamic_rules(
        self, remove_rule_ids: Iterable[int], add_rules: Iterable[RedirectRule]
    ) -> None: ...

    @abstractmethod
    async def query_tabs(self) -> List[Tab]: ...

    @abstractmethod
    async def active_tab(self) -> Optional[Tab]: ...

    @abstractmethod
    async def get_tab(self, tab_id: int) -> Tab: ...

    @abstractmethod
    async def update_tab(self, tab_id: int, url: str) -> None: ...

    @abstractmethod
    def add_listener(self, event: BrowserEvent, fn: Listener) -> None: ...

    @abstractmethod
    def remove_listener(self, event: BrowserEvent, fn: Listener) -> None: ...

    @abstractmethod
    def has_listener(self, event: BrowserEvent, fn: Listener) -> bool: ...

    @property
    @abstractmethod
    def window_focused(self) -> bool:
        """False while no browser window has OS focus."""


class ExtensionBridge(BrowserHost):

    def __init__(self):
        self._rules: Dict[int, RedirectRule] = {}
        self.rules_version = 0
        self._tabs: Dict[int, Tab] = {}
        self._focused_window: Optional[int] = 1
        self._commands: List[Dict[str, Any]] = []
        self._listeners: Dict[BrowserEvent, List[Listener]] = {e: [] for e in BrowserEvent}

    # ------------------------------------------------------------------
    # Declarative rules
    # ------------------------------------------------------------------

    async def get_dynamic_rules(self) -> List[RedirectRule]:
        return [self._rules[k] for k in sorted(self._rules)]

    async def update_dynamic_rules(
        self, remove_rule_ids: Iterable[int], add_rules: Iterable[RedirectRule]
    ) -> None:
        """Remove then add in one step; the extension never sees the gap."""
        rules = dict(self._rules)
        for rule_id in remove_rule_ids:
            rules.pop(rule_id, None)
        for rule in add_rules:
            rules[rule.id] = rule
        self._rules = rules
        self.rules_version += 1

    # ------------------------------------------------------------------
    # Tabs
    # ------------------------------------------------------------------

    async def query_tabs(self) -> List[Tab]:
        return list(self._tabs.values())

    async def active_tab(self) -> Optional[Tab]:
        for tab in self._tabs.values():
            if tab.active and tab.window_id == self._focused_window:
                return tab
        for tab in self._tabs.values():
            if tab.active:
                return tab
        return None

    async def get_tab(self, tab_id: int) -> Tab:
        try:
            return self._tabs[tab_id]
        except KeyError:
            raise TabNotFoundError(tab_id) from None

    async def update_tab(self, tab_id: int, url: str) -> None:
        tab = await self.get_tab(tab_id)
        tab.url = url
        self._commands.append({"tabId": tab_id, "url": url})

    def drain_commands(self) -> List[Dict[str, Any]]:
        commands, self._commands = self._commands, []
        return commands

    @property
    def window_focused(self) -> bool:
        return self._focused_window is not None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, event: BrowserEvent, fn: Listener) -> None:
        if fn not in self._listeners[event]:
            self._listeners[event].append(fn)

    def remove_listener(self, event: BrowserEvent, fn: Listener) -> None:
        if fn in self._listeners[event]:
            self._listeners[event].remove(fn)

    def has_listener(self, event: BrowserEvent, fn: Listener) -> bool:
        return fn in self._listeners[event]

    async def _emit(self, event: BrowserEvent, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                await listener(*args)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, event.value)

    # ------------------------------------------------------------------
    # Event ingestion from the extension
    # ------------------------------------------------------------------

    async def apply(self, signal: BrowserSignal) -> None:
        """Update the tab registry from *signal*, then notify listeners."""
        if signal.kind == "tabs_snapshot":
            self._tabs = {t.id: t for t in signal.tabs}
            return

        if signal.kind == "tab_removed" and signal.tab_id is not None:
            self._tabs.pop(signal.tab_id, None)
            return

        if signal.kind == "tab_updated" and signal.tab_id is not None:
            tab = self._tabs.setdefault(signal.tab_id, Tab(id=signal.tab_id))
            if signal.window_id is not None:
                tab.window_id = signal.window_id
            if signal.url:
                tab.url = signal.url
                await self._emit(BrowserEvent.TAB_UPDATED, signal.tab_id, signal.url)
            return

        if signal.kind == "tab_activated" and signal.tab_id is not None:
            tab = self._tabs.setdefault(signal.tab_id, Tab(id=signal.tab_id))
            if signal.window_id is not None:
                tab.window_id = signal.window_id
            if signal.url:
                tab.url = signal.url
            for other in self._tabs.values():
                if other.window_id == tab.window_id:
                    other.active = other.id == tab.id
            await self._emit(BrowserEvent.TAB_ACTIVATED, signal.tab_id)
            return

        if signal.kind == "window_focus":
            self._focused_window = signal.window_id
            await self._emit(BrowserEvent.WINDOW_FOCUS_CHANGED, signal.window_id)
