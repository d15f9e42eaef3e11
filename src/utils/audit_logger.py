"""
Fire-and-forget audit logging for AI actions and server errors.

Both helpers schedule the database write and return immediately. A failed
write is logged and dropped; it never blocks, fails or retries the primary
operation.
"""

import asyncio
import logging
import traceback
from typing import Optional

from ..database.models import AiActionType, LogLevelEnum
from .background_tasks import create_safe_task

logger = logging.getLogger(__name__)

__all__ = ["AiActionType", "LogLevelEnum", "log_ai_action", "log_system_error"]


async def _write_ai_action(user_id: int, action_type: AiActionType) -> None:
    from ..database.repositories import get_audit_repository

    await get_audit_repository().log_ai_action(user_id, action_type.value)


async def _write_system_error(
    user_id: Optional[int],
    message: str,
    route: str,
    level: LogLevelEnum,
    stack: Optional[str],
) -> None:
    from ..database.repositories import get_audit_repository

    await get_audit_repository().log_system_error(
        message=message,
        user_id=user_id,
        route=route,
        level=level.value,
        stack=stack,
    )


def log_ai_action(user_id: int, action_type: AiActionType) -> Optional[asyncio.Task]:
    """
    Record an executed AI action without waiting for the write.

    Returns the scheduled task, or None if scheduling itself failed.
    """
    coro = _write_ai_action(user_id, action_type)
    try:
        return create_safe_task(coro, f"ai-log-{action_type.value}-{user_id}")
    except Exception as e:
        # Never fail the operation due to audit logging failure
        coro.close()
        logger.error(f"Failed to schedule AI action log: {e}")
        return None


def log_system_error(
    user_id: Optional[int],
    error: BaseException,
    route: str = "N/A",
    level: LogLevelEnum = LogLevelEnum.ERROR,
) -> Optional[asyncio.Task]:
    """Record a server-side error without waiting for the write."""
    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    coro = _write_system_error(user_id, str(error) or type(error).__name__, route, level, stack)
    try:
        return create_safe_task(coro, f"system-log-{route}")
    except Exception as e:
        coro.close()
        logger.error(f"Failed to schedule system log: {e}")
        return None
