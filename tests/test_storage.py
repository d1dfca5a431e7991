"""Tests for the key-value stores and the state repository."""

import asyncio
import sqlite3
from datetime import datetime, timezone

import pytest

from focus_engine.actions.models import Session, SessionType, TimerState, TimerStatus
from focus_engine.errors import StoreError
from focus_engine.settings import DEFAULT_BLOCKED_DOMAINS
from focus_engine.storage.kv_store import MemoryStore, SqliteStore
from focus_engine.storage.repository import StateRepository, StoreKey

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _session(i: int) -> Session:
    return Session(id=f"s{i}", type=SessionType.FOCUS, started_at=T0)


class TestMemoryStore:
    async def test_missing_key_is_none(self):
        assert await MemoryStore().get("nope") is None

    async def test_values_are_copied(self):
        store = MemoryStore()
        value = {"items": [1, 2]}
        await store.set("k", value)
        value["items"].append(3)

        loaded = await store.get("k")
        loaded["items"].append(4)
        assert await store.get("k") == {"items": [1, 2]}


class TestSqliteStore:
    async def test_round_trip_and_overwrite(self, tmp_path):
        store = SqliteStore(tmp_path / "db" / "kv.db")
        await store.set("timerState", {"status": "idle"})
        await store.set("timerState", {"status": "running"})
        assert await store.get("timerState") == {"status": "running"}
        assert await store.get("sessions") is None

    async def test_survives_reopen(self, tmp_path):
        path = tmp_path / "kv.db"
        await SqliteStore(path).set("tasks", [{"id": "a"}])
        assert await SqliteStore(path).get("tasks") == [{"id": "a"}]

    def test_sqlite_errors_become_store_errors(self, tmp_path):
        store = SqliteStore(tmp_path / "kv.db")
        with sqlite3.connect(str(store.db_path)) as conn:
            conn.execute("DROP TABLE kv")
        with pytest.raises(StoreError):
            store.get_sync("timerState")


class TestStateRepository:
    async def test_defaults_on_empty_store(self, repo):
        state = await repo.get_timer_state()
        assert state.status == TimerStatus.IDLE
        assert state.cycle_position == 1
        assert await repo.get_sessions() == []
        assert await repo.get_task_time_entries() == []
        assert await repo.get_domain_visits() == []
        assert await repo.get_tasks() == []
        assert await repo.get_blocked_domains() == DEFAULT_BLOCKED_DOMAINS

    async def test_timer_state_uses_camel_case(self, repo, store):
        await repo.save_timer_state(TimerState(
            status=TimerStatus.RUNNING, type=SessionType.FOCUS, started_at=T0,
            duration=1500, cycle_position=3, session_id="s1",
        ))
        raw = store.snapshot()[StoreKey.TIMER_STATE.value]
        assert raw["cyclePosition"] == 3
        assert raw["startedAt"] == "2024-03-01T09:00:00+00:00"
        assert (await repo.get_timer_state()).started_at == T0

    async def test_settings_are_normalised_on_save(self, repo):
        saved = await repo.save_settings(
            {"blockedDomains": ["X.com", "x.com", "  ", "https://web.whatsapp.com/"]}
        )
        assert saved["blockedDomains"] == ["x.com", "web.whatsapp.com"]
        assert await repo.get_blocked_domains() == ["x.com", "web.whatsapp.com"]

    async def test_partial_settings_merge_with_defaults(self):
        repo = StateRepository(MemoryStore({"settings": {"tags": {"deep": {"color": "#000"}}}}))
        settings = await repo.get_settings()
        assert settings["blockedDomains"] == DEFAULT_BLOCKED_DOMAINS
        assert settings["tags"] == {"deep": {"color": "#000"}}

    async def test_update_task_ignores_unknown_id(self, repo):
        await repo.save_tasks([{"id": "a", "column": "todo"}])
        assert await repo.update_task({"id": "b", "column": "done"}) is False
        assert await repo.update_task({"id": "a", "column": "doing"}) is True
        assert await repo.get_tasks() == [{"id": "a", "column": "doing"}]

    async def test_unchanged_list_is_not_written(self, repo, store):
        await repo.update_sessions(lambda sessions: None)
        assert StoreKey.SESSIONS.value not in store.snapshot()

    async def test_concurrent_appends_are_not_lost(self, tmp_path):
        repo = StateRepository(SqliteStore(tmp_path / "kv.db"))
        await asyncio.gather(*(repo.append_session(_session(i)) for i in range(10)))
        assert sorted(s.id for s in await repo.get_sessions()) == sorted(f"s{i}" for i in range(10))
