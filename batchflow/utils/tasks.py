from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


def log_task_failure(task: asyncio.Task) -> None:
    """Done-callback reporting background tasks that died with an exception."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} crashed", exc_info=exc)
