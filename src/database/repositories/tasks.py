"""
Task repository.

Handles:
- Listing tasks for a set of team ids
- Task creation
- Bulk update/delete by a caller-built list of conditions
- Report and estimate lookups for a single team
"""

import logging
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import TaskDB, TaskStatusEnum
from ..exceptions import (
    DatabaseConstraintError,
    DatabaseOperationError,
)

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for task operations."""

    def __init__(self):
        self.db = get_database()

    # ==================== READS ====================

    async def list_by_teams(self, team_ids: List[int]) -> List[TaskDB]:
        """Get all tasks belonging to the given teams."""
        if not team_ids:
            return []
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskDB)
                .where(TaskDB.team_id.in_(team_ids))
                .order_by(TaskDB.created_at, TaskDB.id)
            )
            return list(result.scalars().all())

    async def find(self, conditions: List[Any]) -> List[TaskDB]:
        """Get tasks matching every condition."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskDB).where(*conditions).order_by(TaskDB.created_at, TaskDB.id)
            )
            return list(result.scalars().all())

    async def list_completed_titles(self, team_id: int, limit: int = 20) -> List[str]:
        """Get titles of the team's most recently completed tasks."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskDB.title)
                .where(
                    TaskDB.team_id == team_id,
                    TaskDB.status == TaskStatusEnum.COMPLETED.value,
                )
                .order_by(TaskDB.updated_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # ==================== WRITES ====================

    async def create(self, task_data: Dict[str, Any]) -> TaskDB:
        """Create a new task."""
        async with self.db.session() as session:
            try:
                task = TaskDB(
                    team_id=task_data["team_id"],
                    title=task_data["title"],
                    description=task_data.get("description") or "",
                    status=task_data.get("status", TaskStatusEnum.PENDING.value),
                    assigned_to=task_data["assigned_to"],
                    due_date=task_data.get("due_date"),
                    created_by=task_data["created_by"],
                )
                session.add(task)
                await session.flush()

                logger.info(f"Created task '{task.title}' in team {task.team_id}")
                return task

            except IntegrityError as e:
                logger.error(f"Constraint violation creating task: {e}")
                raise DatabaseConstraintError(
                    f"Cannot create task '{task_data.get('title')}': constraint violation"
                )

            except Exception as e:
                logger.error(f"CRITICAL: Task creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create task: {e}")

    async def update_matching(self, conditions: List[Any], values: Dict[str, Any]) -> int:
        """Update every task matching all conditions. Returns the affected row count."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    update(TaskDB)
                    .where(*conditions)
                    .values(**values, updated_at=func.now())
                    .execution_options(synchronize_session=False)
                )
                count = result.rowcount or 0
                logger.info(f"Updated {count} tasks")
                return count

            except IntegrityError as e:
                logger.error(f"Constraint violation updating tasks: {e}")
                raise DatabaseConstraintError("Cannot update tasks: constraint violation")

            except Exception as e:
                logger.error(f"CRITICAL: Bulk task update failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update tasks: {e}")

    async def delete_matching(self, conditions: List[Any]) -> int:
        """Delete every task matching all conditions. Returns the affected row count."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    delete(TaskDB)
                    .where(*conditions)
                    .execution_options(synchronize_session=False)
                )
                count = result.rowcount or 0
                logger.info(f"Deleted {count} tasks")
                return count

            except Exception as e:
                logger.error(f"CRITICAL: Bulk task delete failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to delete tasks: {e}")


# Singleton
_task_repository: Optional[TaskRepository] = None


def get_task_repository() -> TaskRepository:
    """Get the task repository singleton."""
    global _task_repository
    if _task_repository is None:
        _task_repository = TaskRepository()
    return _task_repository
