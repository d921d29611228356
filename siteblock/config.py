"""
Central configuration for the siteblock service.
All values can be overridden via environment variables or a local config.json.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8766
    log_level: str = "info"

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    store_db: str = "store.db"
    rules_file: str = "rules.json"

    # Blocking
    block_page_path: str = "/blocked.html"
    temporary_allow_seconds: int = 300       # "five more minutes"
    max_rules: int = 5000                    # dynamic rule cap of the matcher
    stats_retention_days: int = 30

    # Timer
    work_duration_seconds: int = 1500
    break_duration_seconds: int = 300
    tick_interval_seconds: int = 1

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            overrides = json.loads(_CONFIG_FILE.read_text())
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (SITEBLOCK_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"SITEBLOCK_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, type(getattr(cfg, k))(os.environ[env_key]))
        cfg.data_dir = Path(cfg.data_dir)
        cfg.data_dir.mkdir(parents=True, exist_ok=True)
        return cfg

    @property
    def store_path(self) -> Path:
        return self.data_dir / self.store_db

    @property
    def rules_path(self) -> Path:
        return self.data_dir / self.rules_file


# Module-level singleton
config = Config.load()
