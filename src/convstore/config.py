"""Configuration management for convstore.

Handles:
- ~/.config/convstore/config.yaml parsing (user-facing config)
- Session and history retention policies
- Environment variable overrides
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import yaml


CONFIG_YAML = "config.yaml"
APP_NAME = "convstore"
DEFAULT_DB_NAME = "convstore.sqlite"


def default_config_dir() -> str:
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base, APP_NAME)


def default_data_dir() -> str:
    base = os.environ.get("XDG_DATA_HOME") or os.path.join(
        os.path.expanduser("~"), ".local", "share")
    return os.path.join(base, APP_NAME)


def default_config_path() -> str:
    """Config file location, overridable with CONVSTORE_CONFIG."""
    return os.environ.get("CONVSTORE_CONFIG") or os.path.join(default_config_dir(), CONFIG_YAML)


def default_db_path() -> str:
    return os.path.join(default_data_dir(), DEFAULT_DB_NAME)


@dataclass
class SessionConfig:
    """Session persistence and retention policy."""
    enabled: bool = True
    max_sessions: int = 50
    max_age_days: int = 30
    list_limit: int = 0
    auto_save: bool = True
    save_interval: int = 300

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionConfig:
        cfg = cls()
        cfg.enabled = data.get("enabled", cfg.enabled)
        cfg.max_sessions = int(data.get("max-sessions", cfg.max_sessions))
        cfg.max_age_days = int(data.get("max-age-days", cfg.max_age_days))
        cfg.list_limit = int(data.get("list-limit", cfg.list_limit))
        cfg.auto_save = data.get("auto-save", cfg.auto_save)
        cfg.save_interval = int(data.get("save-interval", cfg.save_interval))
        return cfg

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "max-sessions": self.max_sessions,
            "max-age-days": self.max_age_days,
            "list-limit": self.list_limit,
            "auto-save": self.auto_save,
            "save-interval": self.save_interval,
        }


@dataclass
class HistoryConfig:
    """Prompt/command history retention policy.

    ``max_entries`` caps rows per branch and per history kind.
    """
    enabled: bool = True
    max_entries: int = 1000
    max_age_days: int = 90
    list_limit: int = 0
    auto_save: bool = False
    save_interval: int = 300

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryConfig:
        cfg = cls()
        cfg.enabled = data.get("enabled", cfg.enabled)
        # Older config files reused the session key for the entry cap
        cap = data.get("max-entries", data.get("max-sessions", cfg.max_entries))
        cfg.max_entries = int(cap)
        cfg.max_age_days = int(data.get("max-age-days", cfg.max_age_days))
        cfg.list_limit = int(data.get("list-limit", cfg.list_limit))
        cfg.auto_save = data.get("auto-save", cfg.auto_save)
        cfg.save_interval = int(data.get("save-interval", cfg.save_interval))
        return cfg

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "max-entries": self.max_entries,
            "max-age-days": self.max_age_days,
            "list-limit": self.list_limit,
            "auto-save": self.auto_save,
            "save-interval": self.save_interval,
        }


@dataclass
class Config:
    """User-facing config from config.yaml."""
    database_path: str = ""
    log_level: str = "warning"
    log_format: str = "console"
    log_file: str = ""
    session: SessionConfig = field(default_factory=SessionConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> Config:
        """Load config.yaml, then apply environment overrides."""
        if config_path is None:
            config_path = default_config_path()
        cfg = cls()
        if os.path.exists(config_path):
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            cfg.database_path = data.get("database-path", "")
            logging_data = data.get("logging") or {}
            cfg.log_level = logging_data.get("level", cfg.log_level)
            cfg.log_format = logging_data.get("format", cfg.log_format)
            cfg.log_file = logging_data.get("file", cfg.log_file)
            cfg.session = SessionConfig.from_dict(data.get("session") or {})
            cfg.history = HistoryConfig.from_dict(data.get("history") or {})

        # Environment variable overrides
        if os.environ.get("CONVSTORE_DB"):
            cfg.database_path = os.environ["CONVSTORE_DB"]
        if os.environ.get("CONVSTORE_LOG_LEVEL"):
            cfg.log_level = os.environ["CONVSTORE_LOG_LEVEL"]

        if not cfg.database_path:
            cfg.database_path = default_db_path()
        cfg.database_path = os.path.expanduser(cfg.database_path)
        return cfg

    def to_dict(self) -> dict[str, Any]:
        logging_data: dict[str, Any] = {"level": self.log_level, "format": self.log_format}
        if self.log_file:
            logging_data["file"] = self.log_file
        return {
            "database-path": self.database_path,
            "logging": logging_data,
            "session": self.session.to_dict(),
            "history": self.history.to_dict(),
        }

    def save(self, config_path: str | None = None) -> str:
        """Save config to config.yaml. Returns the path written."""
        if config_path is None:
            config_path = default_config_path()
        os.makedirs(os.path.dirname(os.path.abspath(config_path)), exist_ok=True)
        with open(config_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        return config_path
