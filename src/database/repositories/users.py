"""
User and team repositories.

Handles:
- Loading the caller's account row
- Listing teams owned by a set of leaders (tenant scope)
"""

import logging
from typing import Optional, List

from sqlalchemy import select

from ..connection import get_database
from ..models import UserDB, TeamDB

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user lookups."""

    def __init__(self):
        self.db = get_database()

    async def get_by_id(self, user_id: int) -> Optional[UserDB]:
        """Get a user by primary key."""
        async with self.db.session() as session:
            result = await session.execute(
                select(UserDB).where(UserDB.id == user_id)
            )
            return result.scalar_one_or_none()


class TeamRepository:
    """Repository for team operations. Every query is scoped by leader ids."""

    def __init__(self):
        self.db = get_database()

    async def list_for_leaders(self, leader_ids: List[int]) -> List[TeamDB]:
        """Get all teams owned by any of the given leaders."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TeamDB)
                .where(TeamDB.owner_id.in_(leader_ids))
                .order_by(TeamDB.created_at, TeamDB.id)
            )
            return list(result.scalars().all())

    async def get_for_leaders(self, team_id: int, leader_ids: List[int]) -> Optional[TeamDB]:
        """Get one team, only if it belongs to one of the given leaders."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TeamDB).where(
                    TeamDB.id == team_id,
                    TeamDB.owner_id.in_(leader_ids),
                )
            )
            return result.scalar_one_or_none()


# Singletons
_user_repository: Optional[UserRepository] = None
_team_repository: Optional[TeamRepository] = None


def get_user_repository() -> UserRepository:
    """Get the user repository singleton."""
    global _user_repository
    if _user_repository is None:
        _user_repository = UserRepository()
    return _user_repository


def get_team_repository() -> TeamRepository:
    """Get the team repository singleton."""
    global _team_repository
    if _team_repository is None:
        _team_repository = TeamRepository()
    return _team_repository
