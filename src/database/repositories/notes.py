"""
Personal note and team note repositories.
"""

import logging
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, delete, func

from ..connection import get_database
from ..models import NoteDB, TeamNoteDB
from ..exceptions import DatabaseOperationError, EntityNotFoundError

logger = logging.getLogger(__name__)


class NoteRepository:
    """Repository for personal notes. Every query is scoped to one user."""

    def __init__(self):
        self.db = get_database()

    async def list_for_user(self, user_id: int) -> List[NoteDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(NoteDB)
                .where(NoteDB.user_id == user_id)
                .order_by(NoteDB.created_at, NoteDB.id)
            )
            return list(result.scalars().all())

    async def find_by_title(self, user_id: int, title: str) -> List[NoteDB]:
        """Find the user's notes whose title contains `title`, oldest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(NoteDB)
                .where(
                    NoteDB.user_id == user_id,
                    NoteDB.title.icontains(title, autoescape=True),
                )
                .order_by(NoteDB.created_at, NoteDB.id)
            )
            return list(result.scalars().all())

    async def create(self, note_data: Dict[str, Any]) -> NoteDB:
        """Create a personal note."""
        async with self.db.session() as session:
            try:
                note = NoteDB(
                    user_id=note_data["user_id"],
                    title=note_data["title"],
                    content=note_data.get("content") or "",
                    category=note_data.get("category") or "Personal",
                    plan_period=note_data.get("plan_period") or "General",
                )
                session.add(note)
                await session.flush()

                logger.info(f"Created note '{note.title}' for user {note.user_id}")
                return note

            except Exception as e:
                logger.error(f"CRITICAL: Note creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create note: {e}")

    async def update(self, note_id: int, updates: Dict[str, Any]) -> NoteDB:
        """Update a note and return the fresh row."""
        async with self.db.session() as session:
            try:
                await session.execute(
                    update(NoteDB)
                    .where(NoteDB.id == note_id)
                    .values(**updates, updated_at=func.now())
                )
                result = await session.execute(select(NoteDB).where(NoteDB.id == note_id))
                note = result.scalar_one_or_none()

                if not note:
                    raise EntityNotFoundError("Note", note_id)

                return note

            except EntityNotFoundError:
                raise

            except Exception as e:
                logger.error(f"CRITICAL: Note update failed for {note_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update note {note_id}: {e}")

    async def delete(self, note_id: int) -> bool:
        async with self.db.session() as session:
            try:
                result = await session.execute(delete(NoteDB).where(NoteDB.id == note_id))
                return (result.rowcount or 0) > 0

            except Exception as e:
                logger.error(f"CRITICAL: Note delete failed for {note_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to delete note {note_id}: {e}")


class TeamNoteRepository:
    """Read access to team notes."""

    def __init__(self):
        self.db = get_database()

    async def list_by_teams(self, team_ids: List[int]) -> List[TeamNoteDB]:
        if not team_ids:
            return []
        async with self.db.session() as session:
            result = await session.execute(
                select(TeamNoteDB)
                .where(TeamNoteDB.team_id.in_(team_ids))
                .order_by(TeamNoteDB.created_at, TeamNoteDB.id)
            )
            return list(result.scalars().all())


# Singletons
_note_repository: Optional[NoteRepository] = None
_team_note_repository: Optional[TeamNoteRepository] = None


def get_note_repository() -> NoteRepository:
    """Get the note repository singleton."""
    global _note_repository
    if _note_repository is None:
        _note_repository = NoteRepository()
    return _note_repository


def get_team_note_repository() -> TeamNoteRepository:
    """Get the team note repository singleton."""
    global _team_note_repository
    if _team_note_repository is None:
        _team_note_repository = TeamNoteRepository()
    return _team_note_repository
