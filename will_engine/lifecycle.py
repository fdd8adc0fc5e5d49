"""
Application lifespan.

Startup order: validate config, open the database (unless a container was
supplied), build the container, start the lifecycle scheduler loop.
Shutdown runs the same steps backwards.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.config import get_settings
from .core.config_validator import log_config_summary, validate_config
from .core.database import close_database, init_database
from .core.services import build_container
from .utils.retry import async_retry
from .utils.task_tracker import (
    cancel_all_tasks,
    create_tracked_task,
    get_active_task_count,
)

logger = logging.getLogger(__name__)

SCHEDULER_TASK = "lifecycle_scheduler"


@async_retry(max_attempts=5, base_delay=1.0, exponential_base=2.0)
async def _open_database(database_url: str) -> None:
    await init_database(database_url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    supplied = getattr(app.state, "container", None)
    settings = supplied.get("settings") if supplied is not None else get_settings()

    problems = validate_config(settings)
    if problems:
        for problem in problems:
            logger.error(f"Config validation error: {problem}")
        logger.critical("Refusing to start with %d configuration error(s)", len(problems))
        sys.exit(1)
    log_config_summary(settings)

    if supplied is None:
        await _open_database(settings.database_url)
        app.state.container = build_container(settings)
        logger.info("Database opened and services wired")

    if settings.scheduler_enabled:
        scheduler = app.state.container.get("scheduler")
        create_tracked_task(scheduler.run_forever(), name=SCHEDULER_TASK)
        logger.info(f"Lifecycle scheduler running every {settings.scheduler_interval_seconds}s")
    else:
        logger.info("Lifecycle scheduler disabled")

    yield

    if get_active_task_count():
        await cancel_all_tasks(timeout=5.0)
    if supplied is None:
        await close_database()
    logger.info("Will engine stopped")
