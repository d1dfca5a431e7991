"""
Central configuration for the focus engine.
All values can be overridden via environment variables or a local config.json.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8765

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    store_db: str = "focus_engine.db"

    # Session durations (seconds)
    focus_duration_s: int = 25 * 60
    short_break_duration_s: int = 5 * 60
    long_break_duration_s: int = 15 * 60
    long_break_after: int = 4                # focus sessions per long break

    # Alarms
    session_alarm_name: str = "pomofocus-timer"
    badge_alarm_name: str = "pomofocus-badge-update"
    badge_refresh_interval_s: float = 1.0
    idle_detection_interval_s: int = 60

    # Enforcement
    blocked_page_url: str = "chrome-extension://pomofocus/blocked/blocked.html"

    # Restart reconciliation
    close_orphaned_intervals: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def store_path(self) -> Path:
        return self.data_dir / self.store_db

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            overrides = json.loads(_CONFIG_FILE.read_text())
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (FOCUS_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"FOCUS_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, _coerce(getattr(cfg, k), os.environ[env_key]))
        cfg.data_dir = Path(cfg.data_dir)
        cfg.data_dir.mkdir(parents=True, exist_ok=True)
        return cfg


def _coerce(current, raw: str):
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if current is None:
        return raw
    return type(current)(raw)


# Module-level singleton
config = Config.load()
