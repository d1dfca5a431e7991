"""
Browser Event Parser — converts events POSTed by the browser extension into
BrowserSignal objects for the ExtensionBridge.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..browser_bridge import BrowserSignal, Tab

# Mapping from browser extension event names → internal signal kinds
_EVENT_MAP: Dict[str, str] = {
    "TAB_UPDATED": "tab_updated",
    "NAVIGATION": "tab_updated",
    "TAB_ACTIVATED": "tab_activated",
    "TAB_SWITCH": "tab_activated",
    "TAB_REMOVED": "tab_removed",
    "TAB_CLOSE": "tab_removed",
    "WINDOW_FOCUS": "window_focus",
    "FOCUS_LOST": "window_focus",
    "FOCUS_GAINED": "window_focus",
    "TABS_SNAPSHOT": "tabs_snapshot",
    "IDLE_STATE": "idle_state",
}


def parse_browser_event(payload: Dict[str, Any]) -> Optional[BrowserSignal]:
    """
    Parse a raw extension payload into a BrowserSignal.
    Returns None if the event type is unknown or malformed.

    Expected payload shape:
    {
        "type": "TAB_UPDATED",
        "data": { ...event-specific fields... }
    }
    """
    raw_type = payload.get("type", "")
    kind = _EVENT_MAP.get(raw_type)
    if not kind:
        return None

    data = payload.get("data") or {}
    try:
        if kind in ("tab_updated", "tab_activated", "tab_removed"):
            tab_id = data.get("tabId")
            if tab_id is None:
                return None
            return BrowserSignal(
                kind=kind,
                tab_id=int(tab_id),
                url=data.get("url") or None,
                window_id=_optional_int(data.get("windowId")),
            )

        if kind == "window_focus":
            window_id = None if raw_type == "FOCUS_LOST" else _optional_int(data.get("windowId"))
            if raw_type == "FOCUS_GAINED" and window_id is None:
                window_id = 1
            return BrowserSignal(kind=kind, window_id=window_id)

        if kind == "tabs_snapshot":
            return BrowserSignal(kind=kind, tabs=_parse_tabs(data.get("tabs") or []))

        if kind == "idle_state":
            state = data.get("state")
            if state not in ("active", "idle", "locked"):
                return None
            return BrowserSignal(kind=kind, idle_state=state)
    except (KeyError, TypeError, ValueError):
        return None

    return None


def _optional_int(value: Any) -> Optional[int]:
    # The extension reports "no focused window" as -1
    if value is None or int(value) < 0:
        return None
    return int(value)


def _parse_tabs(raw_tabs: List[Dict[str, Any]]) -> List[Tab]:
    return [
        Tab(
            id=int(t["id"]),
            url=t.get("url") or "",
            active=bool(t.get("active", False)),
            window_id=int(t.get("windowId", 1)),
        )
        for t in raw_tabs
    ]
