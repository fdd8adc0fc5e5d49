"""
Named background tasks.

The lifespan starts long-running loops (the lifecycle scheduler) through
here so shutdown can find and cancel them. Names are unique: starting a
second task under a live name is refused.
"""

import asyncio
import logging
from typing import Coroutine, Dict, Optional

logger = logging.getLogger(__name__)

_tasks: Dict[str, asyncio.Task] = {}


def _forget(task: asyncio.Task) -> None:
    name = task.get_name()
    if _tasks.get(name) is task:
        del _tasks[name]

    if task.cancelled():
        logger.info(f"Background task {name} cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            f"Background task {name} failed: {type(exc).__name__}: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )
    else:
        logger.debug(f"Background task {name} finished")


def create_tracked_task(coro: Coroutine, name: str) -> asyncio.Task:
    """Start ``coro`` as a task registered under ``name``."""
    existing = _tasks.get(name)
    if existing is not None and not existing.done():
        coro.close()
        raise RuntimeError(f"Background task {name} is already running")

    task = asyncio.create_task(coro, name=name)
    _tasks[name] = task
    task.add_done_callback(_forget)
    return task


def get_task(name: str) -> Optional[asyncio.Task]:
    return _tasks.get(name)


def get_active_task_count() -> int:
    return sum(1 for t in _tasks.values() if not t.done())


async def cancel_all_tasks(timeout: float = 5.0) -> int:
    """Cancel every tracked task and wait up to ``timeout`` seconds; returns how many were cancelled."""
    pending = [t for t in _tasks.values() if not t.done()]
    if not pending:
        return 0

    logger.info(f"Cancelling {len(pending)} background task(s)")
    for task in pending:
        task.cancel()

    done, still_running = await asyncio.wait(pending, timeout=timeout)
    if still_running:
        logger.warning(
            "Background tasks did not stop in time: "
            + ", ".join(t.get_name() for t in still_running)
        )
    return sum(1 for t in done if t.cancelled())
