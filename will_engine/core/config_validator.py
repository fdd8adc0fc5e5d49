"""
Fail-fast checks run by the lifespan before anything touches the store.

Each check returns human-readable problems; startup aborts if any are found.
"""

import logging
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .config import Settings, get_tunables

logger = logging.getLogger(__name__)

# (dotted key, smallest accepted value)
_TUNABLE_MINIMUMS = (
    ("end_room.duration_minutes", 1),
    ("end_room.delay_minutes", 0),
    ("end_room.max_delay_hours", 1),
    ("circles.max_members", 2),
    ("circles.invite_code_length", 4),
    ("limits.commitment_text_max", 1),
    ("limits.reflection_text_max", 1),
)


def _check_database(settings: Settings) -> List[str]:
    raw = (settings.database_url or "").strip()
    if not raw:
        return ["DATABASE_URL is required but missing or empty"]
    try:
        url = make_url(raw)
    except ArgumentError:
        return [f"DATABASE_URL is not a SQLAlchemy URL: '{raw}'"]

    if url.get_backend_name() != "sqlite" or url.get_driver_name() != "aiosqlite":
        return [f"DATABASE_URL must use the sqlite+aiosqlite driver, got '{url.drivername}'"]
    in_memory = url.database in (None, "", ":memory:")
    if in_memory and settings.environment.lower() == "production":
        return ["DATABASE_URL points at an in-memory database, which loses every Will on restart"]
    return []


def _lookup(tunables: Dict[str, Any], key_path: str) -> Any:
    value: Any = tunables
    for key in key_path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _check_tunables(tunables: Dict[str, Any]) -> List[str]:
    errors = []
    for key_path, minimum in _TUNABLE_MINIMUMS:
        value = _lookup(tunables, key_path)
        if value is None:
            continue  # code default applies
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            errors.append(f"{key_path} must be an integer >= {minimum}, got {value!r}")

    auto_schedule = _lookup(tunables, "end_room.auto_schedule")
    if auto_schedule is not None and not isinstance(auto_schedule, bool):
        errors.append(f"end_room.auto_schedule must be true or false, got {auto_schedule!r}")
    return errors


def validate_config(
    settings: Settings, tunables: Optional[Dict[str, Any]] = None
) -> List[str]:
    """Return every configuration problem found; an empty list means startup may proceed."""
    errors = _check_database(settings)

    if settings.scheduler_interval_seconds <= 0:
        errors.append(
            f"SCHEDULER_INTERVAL_SECONDS must be positive, "
            f"got {settings.scheduler_interval_seconds}"
        )

    try:
        ZoneInfo(settings.default_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"DEFAULT_TIMEZONE is not a known zone: '{settings.default_timezone}'")

    errors.extend(_check_tunables(get_tunables() if tunables is None else tunables))
    return errors


def log_config_summary(settings: Settings) -> None:
    """Log the effective configuration; the URL is rendered with its password hidden."""
    try:
        database = make_url(settings.database_url).render_as_string(hide_password=True)
    except ArgumentError:
        database = "<invalid>"
    logger.info(
        "Config: environment=%s database=%s scheduler=%s every %ss timezone=%s",
        settings.environment,
        database,
        "on" if settings.scheduler_enabled else "off",
        settings.scheduler_interval_seconds,
        settings.default_timezone,
    )
