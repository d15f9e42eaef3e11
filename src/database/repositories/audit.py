"""
Audit repository for AI action logs and system error logs.

Both tables are append-only. Writes are normally scheduled fire-and-forget
through src.utils.audit_logger and never block a user-facing response.
"""

import logging
from typing import Optional

from ..connection import get_database
from ..models import AiActionLogDB, SystemLogDB, LogLevelEnum

logger = logging.getLogger(__name__)


class AuditRepository:
    """Repository for audit log operations."""

    def __init__(self):
        self.db = get_database()

    async def log_ai_action(self, user_id: int, action_type: str) -> AiActionLogDB:
        """Record that a user executed an AI action."""
        async with self.db.session() as session:
            entry = AiActionLogDB(user_id=user_id, action_type=action_type)
            session.add(entry)
            await session.flush()

            logger.debug(f"AI action log: {action_type} by user {user_id}")
            return entry

    async def log_system_error(
        self,
        message: str,
        user_id: Optional[int] = None,
        route: str = "N/A",
        level: str = LogLevelEnum.ERROR.value,
        stack: Optional[str] = None,
    ) -> SystemLogDB:
        """Record a server-side error."""
        async with self.db.session() as session:
            entry = SystemLogDB(
                user_id=user_id,
                level=level,
                route=route,
                message=message,
                stack=stack,
            )
            session.add(entry)
            await session.flush()

            logger.debug(f"System log [{level}] {route}: {message}")
            return entry


# Singleton
_audit_repository: Optional[AuditRepository] = None


def get_audit_repository() -> AuditRepository:
    """Get the audit repository singleton."""
    global _audit_repository
    if _audit_repository is None:
        _audit_repository = AuditRepository()
    return _audit_repository
