"""
Insight repository.

Unread insights are replaced wholesale on each generation cycle; read
insights are kept as history.
"""

import logging
from typing import Optional, List, Dict

from sqlalchemy import select, update, delete

from ..connection import get_database
from ..models import InsightDB
from ..exceptions import DatabaseOperationError

logger = logging.getLogger(__name__)


class InsightRepository:
    """Repository for insight operations."""

    def __init__(self):
        self.db = get_database()

    async def get_latest(self, user_id: int) -> Optional[InsightDB]:
        """Get the user's most recently created insight (read or unread)."""
        async with self.db.session() as session:
            result = await session.execute(
                select(InsightDB)
                .where(InsightDB.user_id == user_id)
                .order_by(InsightDB.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def list_unread(self, user_id: int) -> List[InsightDB]:
        """Get the user's unread insights, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(InsightDB)
                .where(InsightDB.user_id == user_id, InsightDB.is_read.is_(False))
                .order_by(InsightDB.created_at.desc(), InsightDB.id.desc())
            )
            return list(result.scalars().all())

    async def replace_unread(self, user_id: int, insights: List[Dict[str, str]]) -> List[InsightDB]:
        """Delete the user's unread insights and insert the new ones in one transaction."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    delete(InsightDB).where(
                        InsightDB.user_id == user_id,
                        InsightDB.is_read.is_(False),
                    )
                )
                removed = result.rowcount or 0

                rows = [
                    InsightDB(
                        user_id=user_id,
                        type=item["type"],
                        title=item["title"],
                        message=item["message"],
                        is_read=False,
                    )
                    for item in insights
                ]
                session.add_all(rows)
                await session.flush()

                logger.info(f"Replaced {removed} unread insights with {len(rows)} new ones for user {user_id}")
                return rows

            except Exception as e:
                logger.error(f"Insight replacement failed for user {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to replace insights: {e}")

    async def mark_read(self, insight_id: int, user_id: int) -> Optional[InsightDB]:
        """Mark one insight read. Returns None if it is missing or not the user's."""
        async with self.db.session() as session:
            result = await session.execute(
                update(InsightDB)
                .where(InsightDB.id == insight_id, InsightDB.user_id == user_id)
                .values(is_read=True)
                .returning(InsightDB)
            )
            return result.scalar_one_or_none()


# Singleton
_insight_repository: Optional[InsightRepository] = None


def get_insight_repository() -> InsightRepository:
    """Get the insight repository singleton."""
    global _insight_repository
    if _insight_repository is None:
        _insight_repository = InsightRepository()
    return _insight_repository
