"""
Persistent key-value stores — the engine's only durable state.

Every value is a JSON-compatible structure.  Callers always receive a private
copy, so mutating a returned value never changes what is stored until it is
written back with set().
"""

from __future__ import annotations

import asyncio
import copy
import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from ..errors import StoreError


class KeyValueStore(ABC):
    """Async get/set store consumed as an opaque collaborator."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...


class MemoryStore(KeyValueStore):
    """Process-local store; used by tests and ephemeral runs."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)


class SqliteStore(KeyValueStore):
    """SQLite-backed store; blocking I/O runs on the default executor."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._init_db()

    async def get(self, key: str) -> Optional[Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.get_sync, key)

    async def set(self, key: str, value: Any) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.set_sync, key, value)

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def get_sync(self, key: str) -> Optional[Any]:
        try:
            with self._conn() as conn:
                row = conn.execute(
                    "SELECT value_json FROM kv WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read {key!r}: {exc}") from exc
        if row is None:
            return None
        return json.loads(row[0])

    def set_sync(self, key: str, value: Any) -> None:
        try:
            with self._conn() as conn:
                conn.execute(
                    """
                    INSERT INTO kv (key, value_json) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json
                    """,
                    (key, json.dumps(value)),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write {key!r}: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key        TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL
                )
                """
            )

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()
