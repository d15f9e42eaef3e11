"""
Meeting repository.

Meetings are looked up by a case-insensitive title substring within the
caller's teams, optionally narrowed by team and exact meeting time.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import MeetingDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError, EntityNotFoundError

logger = logging.getLogger(__name__)


class MeetingRepository:
    """Repository for meeting operations."""

    def __init__(self):
        self.db = get_database()

    async def list_by_teams(self, team_ids: List[int]) -> List[MeetingDB]:
        """Get all meetings of the given teams, soonest first."""
        if not team_ids:
            return []
        async with self.db.session() as session:
            result = await session.execute(
                select(MeetingDB)
                .where(MeetingDB.team_id.in_(team_ids))
                .order_by(MeetingDB.meeting_time)
            )
            return list(result.scalars().all())

    async def find_by_title(
        self,
        team_ids: List[int],
        title: str,
        meeting_time: Optional[datetime] = None,
    ) -> List[MeetingDB]:
        """
        Find meetings whose title contains `title` (case-insensitive).

        Results are ordered oldest-created first so callers can act on the
        first match deterministically.
        """
        if not team_ids:
            return []
        conditions = [
            MeetingDB.team_id.in_(team_ids),
            MeetingDB.title.icontains(title, autoescape=True),
        ]
        if meeting_time is not None:
            conditions.append(MeetingDB.meeting_time == meeting_time)

        async with self.db.session() as session:
            result = await session.execute(
                select(MeetingDB)
                .where(*conditions)
                .order_by(MeetingDB.created_at, MeetingDB.id)
            )
            return list(result.scalars().all())

    async def create(self, meeting_data: Dict[str, Any]) -> MeetingDB:
        """Create a new meeting."""
        async with self.db.session() as session:
            try:
                meeting = MeetingDB(
                    team_id=meeting_data["team_id"],
                    title=meeting_data["title"],
                    agenda=meeting_data.get("agenda") or "",
                    meeting_time=meeting_data["meeting_time"],
                    meeting_link=meeting_data["meeting_link"],
                    participants=meeting_data.get("participants") or [],
                    calendar_event_id=meeting_data.get("calendar_event_id"),
                    created_by=meeting_data["created_by"],
                )
                session.add(meeting)
                await session.flush()

                logger.info(f"Created meeting '{meeting.title}' at {meeting.meeting_time}")
                return meeting

            except IntegrityError as e:
                logger.error(f"Constraint violation creating meeting: {e}")
                raise DatabaseConstraintError(
                    f"Cannot create meeting '{meeting_data.get('title')}': constraint violation"
                )

            except Exception as e:
                logger.error(f"CRITICAL: Meeting creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create meeting: {e}")

    async def update(self, meeting_id: int, updates: Dict[str, Any]) -> MeetingDB:
        """Update a meeting and return the fresh row."""
        async with self.db.session() as session:
            try:
                await session.execute(
                    update(MeetingDB)
                    .where(MeetingDB.id == meeting_id)
                    .values(**updates, updated_at=func.now())
                )
                result = await session.execute(
                    select(MeetingDB).where(MeetingDB.id == meeting_id)
                )
                meeting = result.scalar_one_or_none()

                if not meeting:
                    raise EntityNotFoundError("Meeting", meeting_id)

                return meeting

            except EntityNotFoundError:
                raise

            except Exception as e:
                logger.error(f"CRITICAL: Meeting update failed for {meeting_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update meeting {meeting_id}: {e}")

    async def delete(self, meeting_id: int) -> bool:
        """Delete a meeting. Returns False if it was already gone."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    delete(MeetingDB).where(MeetingDB.id == meeting_id)
                )
                return (result.rowcount or 0) > 0

            except Exception as e:
                logger.error(f"CRITICAL: Meeting delete failed for {meeting_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to delete meeting {meeting_id}: {e}")


# Singleton
_meeting_repository: Optional[MeetingRepository] = None


def get_meeting_repository() -> MeetingRepository:
    """Get the meeting repository singleton."""
    global _meeting_repository
    if _meeting_repository is None:
        _meeting_repository = MeetingRepository()
    return _meeting_repository
