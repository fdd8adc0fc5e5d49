"""
Application configuration.

Infrastructure settings come from the environment via Pydantic Settings.
Domain tunables (End Room timings, circle size, text limits) come from
config/defaults.yaml, optionally overridden key by key in
config/settings.yaml, and are read with get_config_value().
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic_settings import BaseSettings

CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/will_engine.db"

    # Lifecycle scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60

    # Canonical zone for Wills whose creator did not send one
    default_timezone: str = "UTC"

    # Environment
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def is_production() -> bool:
    return get_settings().environment.lower() == "production"


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def merge_tunables(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Nested sections merge; any other override value replaces the base value."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_tunables(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_tunables(config_dir: Optional[Path] = None) -> Dict[str, Any]:
    config_dir = config_dir or CONFIG_DIR
    return merge_tunables(
        _read_yaml(config_dir / "defaults.yaml"),
        _read_yaml(config_dir / "settings.yaml"),
    )


@lru_cache()
def get_tunables() -> Dict[str, Any]:
    """Tunables from the repository config dir, read once per process."""
    return load_tunables()


def get_config_value(key_path: str, default: Any = None) -> Any:
    """Read a dotted key such as ``"end_room.delay_minutes"``."""
    value: Any = get_tunables()
    for key in key_path.split("."):
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value
