"""
Fire-and-forget task scheduling.

Audit and system-log writes are scheduled here so the request that
triggered them never waits on, or fails because of, the write. Tasks are
held in a module-level set until they finish so the event loop's weak
references cannot let them be collected mid-flight.
"""

import asyncio
import logging
from typing import Coroutine, Any

logger = logging.getLogger(__name__)

_pending: set = set()


async def safe_background_task(coro: Coroutine, task_name: str) -> Any:
    """Await `coro`, logging and discarding any exception. Returns None on failure."""
    try:
        result = await coro
    except Exception as e:
        logger.error(f"Background task {task_name} failed: {e}", exc_info=True)
        return None
    logger.debug(f"Background task {task_name} done")
    return result


def create_safe_task(coro: Coroutine, task_name: str) -> asyncio.Task:
    """
    Schedule `coro` on the running loop without awaiting it.

    Raises:
        RuntimeError: no event loop is running
    """
    wrapper = safe_background_task(coro, task_name)
    try:
        task = asyncio.create_task(wrapper, name=task_name)
    except RuntimeError:
        wrapper.close()
        raise

    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain_background_tasks() -> None:
    """Wait for every scheduled task; used on shutdown and in tests."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
