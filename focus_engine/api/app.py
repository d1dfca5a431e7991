"""
FastAPI application — local focus-session engine API.
Runs on http://127.0.0.1:8765 by default.

Singletons (store, browser bridge, controller, dispatcher) live on app.state
so that each call to create_app() produces a fully independent instance with
no shared module-level globals. This makes test isolation straightforward.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..actions.alarms import AlarmBridge
from ..actions.models import utcnow
from ..actions.session_controller import SessionController
from ..config import Config, config as default_config
from ..storage.kv_store import KeyValueStore, SqliteStore
from ..storage.repository import StateRepository
from ..telemetry.browser_bridge import ExtensionBridge
from .dispatch import MessageDispatcher

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan: initialises and tears down all per-app state
# ---------------------------------------------------------------------------

def _make_lifespan(
    store: Optional[KeyValueStore],
    cfg: Config,
    clock: Callable[[], datetime],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        kv = store if store is not None else SqliteStore(cfg.store_path)
        repo = StateRepository(kv)
        bridge = ExtensionBridge()
        alarms = AlarmBridge()
        controller = SessionController(repo, bridge, alarms, cfg, clock)

        app.state.bridge = bridge
        app.state.controller = controller
        app.state.dispatcher = MessageDispatcher(controller)

        await controller.resume()
        alarms.create_periodic(
            cfg.badge_alarm_name, cfg.badge_refresh_interval_s, controller.refresh_badge
        )

        yield

        alarms.clear_all()

    return lifespan


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    store: Optional[KeyValueStore] = None,
    cfg: Optional[Config] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    cfg = cfg or default_config
    app = FastAPI(
        title="Focus Engine",
        description="Local focus-session timer, site blocker and activity tracker",
        version=VERSION,
        lifespan=_make_lifespan(store, cfg, clock),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^(chrome-extension|moz-extension)://.*$",
        allow_origins=["null"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .routers import browser, messages, settings, timer

    app.include_router(messages.router)
    app.include_router(timer.router)
    app.include_router(settings.router)
    app.include_router(browser.router)

    @app.get("/health")
    async def health(request: Request):
        controller = getattr(request.app.state, "controller", None)
        if controller is None:
            timer_status = "unknown"
        else:
            timer_status = (await controller.repo.get_timer_state()).status.value
        return {
            "status": "ok",
            "version": VERSION,
            "timer": timer_status,
            "idle_detection_interval_s": cfg.idle_detection_interval_s,
        }

    return app


app = create_app()
