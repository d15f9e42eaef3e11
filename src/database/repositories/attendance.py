"""
Attendance and member profile repositories.

Handles:
- Attendance history for a leader over a date window
- All-time counts grouped by (member, status)
- Holiday records
- Per-day upsert keyed by (leader, member, date)
- Member profiles
"""

import logging
from typing import Optional, List, Tuple
from datetime import date

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import AttendanceDB, AttendanceStatusEnum, MemberProfileDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class AttendanceRepository:
    """Repository for attendance operations."""

    def __init__(self):
        self.db = get_database()

    async def list_since(self, leader_id: int, since: date) -> List[AttendanceDB]:
        """Get the leader's attendance records on or after `since`, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(AttendanceDB)
                .where(
                    AttendanceDB.leader_id == leader_id,
                    AttendanceDB.date >= since,
                )
                .order_by(AttendanceDB.date.desc(), AttendanceDB.member)
            )
            return list(result.scalars().all())

    async def status_counts(self, leader_id: int) -> List[Tuple[str, str, int]]:
        """Get all-time (member, status, count) rows for the leader."""
        async with self.db.session() as session:
            result = await session.execute(
                select(AttendanceDB.member, AttendanceDB.status, func.count(AttendanceDB.id))
                .where(AttendanceDB.leader_id == leader_id)
                .group_by(AttendanceDB.member, AttendanceDB.status)
                .order_by(AttendanceDB.member, AttendanceDB.status)
            )
            return [(member, status, count) for member, status, count in result.all()]

    async def list_holidays(self, leader_id: int) -> List[AttendanceDB]:
        """Get every holiday record the leader has marked."""
        async with self.db.session() as session:
            result = await session.execute(
                select(AttendanceDB)
                .where(
                    AttendanceDB.leader_id == leader_id,
                    AttendanceDB.status == AttendanceStatusEnum.HOLIDAY.value,
                )
                .order_by(AttendanceDB.date.desc())
            )
            return list(result.scalars().all())

    async def upsert_many(
        self,
        leader_id: int,
        members: List[str],
        day: date,
        status: str,
    ) -> int:
        """
        Set `status` for each member on `day`.

        One statement, one row per member: an existing (leader, member, date)
        row is updated in place, otherwise a new row is inserted. Concurrent
        writers on the same key resolve as last-write-wins.
        """
        if not members:
            return 0

        async with self.db.session() as session:
            try:
                stmt = pg_insert(AttendanceDB).values([
                    {"leader_id": leader_id, "member": member, "date": day, "status": status}
                    for member in members
                ])
                stmt = stmt.on_conflict_do_update(
                    index_elements=[AttendanceDB.leader_id, AttendanceDB.member, AttendanceDB.date],
                    set_={"status": stmt.excluded.status, "updated_at": func.now()},
                )
                await session.execute(stmt)

                logger.info(f"Marked {len(members)} members {status} on {day} for leader {leader_id}")
                return len(members)

            except IntegrityError as e:
                logger.error(f"Attendance upsert conflict: {e}", exc_info=True)
                raise DatabaseConstraintError(f"Attendance upsert failed for {day}") from e
            except Exception as e:
                logger.error(f"Error upserting attendance: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to mark attendance for {day}") from e


class MemberProfileRepository:
    """Read access to member profiles."""

    def __init__(self):
        self.db = get_database()

    async def list_for_leader(self, leader_id: int) -> List[MemberProfileDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(MemberProfileDB)
                .where(MemberProfileDB.leader_id == leader_id)
                .order_by(MemberProfileDB.name)
            )
            return list(result.scalars().all())


# Singletons
_attendance_repository: Optional[AttendanceRepository] = None
_member_profile_repository: Optional[MemberProfileRepository] = None


def get_attendance_repository() -> AttendanceRepository:
    """Get the attendance repository singleton."""
    global _attendance_repository
    if _attendance_repository is None:
        _attendance_repository = AttendanceRepository()
    return _attendance_repository


def get_member_profile_repository() -> MemberProfileRepository:
    """Get the member profile repository singleton."""
    global _member_profile_repository
    if _member_profile_repository is None:
        _member_profile_repository = MemberProfileRepository()
    return _member_profile_repository
