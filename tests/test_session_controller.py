"""Tests for the session lifecycle wiring."""

import asyncio

import pytest

from focus_engine.actions.models import SessionStatus, SessionType, TimerStatus
from focus_engine.actions.session_clock import BADGE_COLORS
from focus_engine.actions.session_controller import SessionController
from focus_engine.config import Config
from focus_engine.telemetry.browser_bridge import BrowserEvent

from conftest import open_tabs

DOING = {"id": "t1", "title": "Write report", "column": "doing"}
TODO = {"id": "t2", "title": "Review", "column": "todo"}


class TestFocusLifecycle:
    async def test_start_focus_enforces_and_opens_doing_entry(self, controller, repo, bridge):
        await repo.save_tasks([TODO, DOING])
        await open_tabs(bridge, "https://x.com/home")

        state, session = await controller.start_session(SessionType.FOCUS)

        assert state.is_focus
        assert controller.enforcer.active
        assert [r.domain for r in await bridge.get_dynamic_rules()][0] == "x.com"
        [entry] = await repo.get_task_time_entries()
        assert (entry.task_id, entry.session_id) == ("t1", session.id)
        assert controller.alarms.is_scheduled(controller._config.session_alarm_name)

    async def test_start_focus_without_doing_task(self, controller, repo):
        await repo.save_tasks([TODO])
        await controller.start_session(SessionType.FOCUS)
        assert await repo.get_task_time_entries() == []

    async def test_stop_focus_tears_everything_down(self, controller, repo, bridge, clock):
        await repo.save_tasks([DOING])
        await open_tabs(bridge, "https://x.com/home")
        await controller.start_session(SessionType.FOCUS)
        clock.advance(600)

        session = await controller.stop_session()

        assert session.status == SessionStatus.COMPLETED
        assert session.duration_seconds() == 600
        assert not controller.enforcer.active
        assert await bridge.get_dynamic_rules() == []
        assert not any(e.is_open for e in await repo.get_task_time_entries())
        assert (await repo.get_timer_state()).status == TimerStatus.IDLE
        assert not controller.alarms.is_scheduled(controller._config.session_alarm_name)
        assert bridge.drain_commands()[-1] == {"tabId": 1, "url": "https://x.com/home"}

    async def test_stop_when_idle(self, controller, store):
        before = store.snapshot()
        assert await controller.stop_session() is None
        assert store.snapshot() == before

    async def test_enforcement_failure_keeps_timer_running(self, controller, repo, monkeypatch):
        async def boom():
            raise RuntimeError("rules rejected")

        monkeypatch.setattr(controller.enforcer, "activate", boom)
        state, _ = await controller.start_session(SessionType.FOCUS)
        assert state.is_running
        assert (await repo.get_timer_state()).is_focus


class TestBoardSignals:
    async def test_moves_during_focus(self, controller, repo):
        await controller.start_session(SessionType.FOCUS)
        entry = await controller.task_moved_to_doing("t9")
        assert entry.task_id == "t9"
        assert await controller.task_moved_from_doing("t9") == 1

    async def test_move_to_doing_outside_focus(self, controller, repo):
        assert await controller.task_moved_to_doing("t9") is None
        await controller.start_session(SessionType.SHORT_BREAK)
        assert await controller.task_moved_to_doing("t9") is None
        assert await repo.get_task_time_entries() == []


class TestBreakLifecycle:
    async def test_break_tracks_domains(self, controller, repo, bridge):
        await open_tabs(bridge, "https://news.example/today")
        await controller.start_session(SessionType.SHORT_BREAK)

        assert not controller.enforcer.active
        assert await bridge.get_dynamic_rules() == []
        [visit] = await repo.get_domain_visits()
        assert visit.domain == "news.example" and visit.is_open

        await controller.stop_session()
        [visit] = await repo.get_domain_visits()
        assert not visit.is_open
        assert not controller.activity.domains.listening

    async def test_switching_focus_to_break_lifts_blocking(self, controller, repo, bridge):
        await repo.save_tasks([DOING])
        await open_tabs(bridge, "https://x.com/home")
        await controller.start_session(SessionType.FOCUS)

        await controller.start_session(SessionType.SHORT_BREAK)

        assert not controller.enforcer.active
        assert await bridge.get_dynamic_rules() == []
        assert not bridge.has_listener(BrowserEvent.TAB_UPDATED, controller.enforcer._on_tab_updated)
        assert not any(e.is_open for e in await repo.get_task_time_entries())
        sessions = await repo.get_sessions()
        assert [(s.type, s.status) for s in sessions] == [
            (SessionType.FOCUS, SessionStatus.COMPLETED),
            (SessionType.SHORT_BREAK, SessionStatus.RUNNING),
        ]


class TestIdleAndAlarm:
    async def test_locked_screen_stops_session(self, controller, repo):
        await controller.start_session(SessionType.FOCUS)
        session = await controller.on_idle_state("locked")
        assert session.status == SessionStatus.COMPLETED
        assert not (await repo.get_timer_state()).is_running

    @pytest.mark.parametrize("idle_state", ["idle", "active"])
    async def test_other_idle_states_ignored(self, controller, repo, idle_state):
        await controller.start_session(SessionType.FOCUS)
        assert await controller.on_idle_state(idle_state) is None
        assert (await repo.get_timer_state()).is_running

    async def test_alarm_flags_overtime_only(self, repo, bridge, tmp_path, clock):
        cfg = Config(data_dir=tmp_path / "data", focus_duration_s=0)
        ctrl = SessionController(repo, bridge, cfg=cfg, clock=clock)
        try:
            await ctrl.start_session(SessionType.FOCUS)
            await asyncio.sleep(0.05)
            state = await repo.get_timer_state()
            assert state.is_running
            assert state.alarm_fired
            assert await ctrl.refresh_badge() == ("!", BADGE_COLORS[SessionType.FOCUS])
        finally:
            ctrl.alarms.clear_all()


class TestResume:
    async def test_resume_reestablishes_focus_enforcement(self, controller, repo, bridge, cfg, clock):
        await repo.save_settings({"blockedDomains": ["x.com"]})
        await controller.start_session(SessionType.FOCUS)
        controller.alarms.clear_all()

        restarted = SessionController(repo, bridge, cfg=cfg, clock=clock)
        try:
            await restarted.resume()
            assert restarted.enforcer.active
            assert restarted.alarms.is_scheduled(cfg.session_alarm_name)
        finally:
            restarted.alarms.clear_all()

    async def test_resume_keeps_orphans_open_by_default(self, controller, repo, bridge, cfg, clock):
        await controller.start_session(SessionType.SHORT_BREAK)
        await controller.activity.domains.open_visit("https://a.example")
        await controller.timer.stop_session()

        restarted = SessionController(repo, bridge, cfg=cfg, clock=clock)
        await restarted.resume()
        assert any(v.is_open for v in await repo.get_domain_visits())

    async def test_resume_can_close_orphans(self, controller, repo, bridge, tmp_path, clock):
        await controller.start_session(SessionType.SHORT_BREAK)
        await controller.activity.domains.open_visit("https://a.example")
        await controller.timer.stop_session()

        cfg = Config(data_dir=tmp_path / "data", close_orphaned_intervals=True)
        restarted = SessionController(repo, bridge, cfg=cfg, clock=clock)
        await restarted.resume()
        assert not any(v.is_open for v in await repo.get_domain_visits())
