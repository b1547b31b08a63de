"""YAML + .env configuration loader."""

from __future__ import annotations

import os
from datetime import time
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


def _find_project_root() -> Path:
    """Walk up from this file to find the directory containing config.yaml."""
    current = Path(__file__).resolve().parent
    for _ in range(10):
        if (current / "config.yaml").exists():
            return current
        current = current.parent
    # Fallback to cwd
    return Path.cwd()


PROJECT_ROOT = _find_project_root()


def load_env() -> None:
    """Load .env file from project root."""
    env_path = PROJECT_ROOT / ".env"
    load_dotenv(env_path)


def load_yaml_config(path: Path | None = None) -> dict[str, Any]:
    """Load config.yaml from project root (or an explicit path)."""
    config_path = path or PROJECT_ROOT / "config.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"config.yaml not found at {config_path}")
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def get_env(key: str, default: str | None = None) -> str | None:
    """Get an environment variable."""
    return os.environ.get(key, default)


def get_env_required(key: str) -> str:
    """Get a required environment variable or raise."""
    val = os.environ.get(key)
    if val is None:
        raise RuntimeError(f"Required environment variable {key!r} is not set")
    return val


def get_database_url() -> str:
    """Return the database URL, defaulting to a local SQLite file."""
    default = f"sqlite:///{PROJECT_ROOT / 'turnover.db'}"
    return get_env("DATABASE_URL", default)


def get_log_level() -> str:
    return (get_env("LOG_LEVEL", "INFO") or "INFO").upper()


def parse_clock_time(value: str | time | None, default: time) -> time:
    """Parse an "HH:MM" setting into a time of day."""
    if value is None:
        return default
    if isinstance(value, time):
        return value
    hour, _, minute = str(value).partition(":")
    try:
        return time(int(hour), int(minute or 0))
    except ValueError as exc:
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM") from exc


def section(name: str, source: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return one top-level config section, empty if absent."""
    source = settings if source is None else source
    return source.get(name) or {}


# Load on import
load_env()
settings: dict[str, Any] = (
    load_yaml_config() if (PROJECT_ROOT / "config.yaml").exists() else {}
)
