"""
Shared pytest fixtures and configuration.
"""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from focus_engine.actions.focus_mode import FocusEnforcer
from focus_engine.actions.pomodoro import TimerStateMachine
from focus_engine.actions.session_controller import SessionController
from focus_engine.api.app import create_app
from focus_engine.config import Config
from focus_engine.storage.kv_store import MemoryStore
from focus_engine.storage.repository import StateRepository
from focus_engine.telemetry.activity import ActivityTracker
from focus_engine.telemetry.browser_bridge import BrowserSignal, ExtensionBridge, Tab


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def local_noon(days_ago: int = 0) -> datetime:
    """Noon local time, *days_ago* days back; safe from DST date flips."""
    noon = datetime.now().astimezone().replace(hour=12, minute=0, second=0, microsecond=0)
    return noon - timedelta(days=days_ago)


async def open_tabs(bridge: ExtensionBridge, *urls: str, active: int = 0) -> None:
    """Replace the bridge's tab registry with tabs 1..n on window 1."""
    tabs = [
        Tab(id=i + 1, url=url, active=(i == active), window_id=1)
        for i, url in enumerate(urls)
    ]
    await bridge.apply(BrowserSignal(kind="tabs_snapshot", tabs=tabs))


@pytest.fixture()
def cfg(tmp_path):
    return Config(data_dir=tmp_path / "data")


@pytest.fixture()
def clock():
    return FakeClock(local_noon())


@pytest.fixture()
def store():
    return MemoryStore()


@pytest.fixture()
def repo(store):
    return StateRepository(store)


@pytest.fixture()
def bridge():
    return ExtensionBridge()


@pytest.fixture()
def timer(repo, cfg, clock):
    return TimerStateMachine(repo, cfg, clock)


@pytest.fixture()
def enforcer(repo, bridge, cfg):
    return FocusEnforcer(repo, bridge, cfg)


@pytest.fixture()
def tracker(repo, bridge, clock):
    return ActivityTracker(repo, bridge, clock)


@pytest_asyncio.fixture()
async def controller(repo, bridge, cfg, clock):
    ctrl = SessionController(repo, bridge, cfg=cfg, clock=clock)
    yield ctrl
    ctrl.alarms.clear_all()


@pytest.fixture()
def app(store, cfg, clock):
    """Create a fresh app instance per test, backed by the in-memory store."""
    return create_app(store=store, cfg=cfg, clock=clock)


@pytest_asyncio.fixture()
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
