"""
Repository classes for database operations.

Each repository handles CRUD and scoped queries for its entity type.
"""

from .users import UserRepository, TeamRepository, get_user_repository, get_team_repository
from .tasks import TaskRepository, get_task_repository
from .meetings import MeetingRepository, get_meeting_repository
from .notes import NoteRepository, TeamNoteRepository, get_note_repository, get_team_note_repository
from .attendance import (
    AttendanceRepository,
    MemberProfileRepository,
    get_attendance_repository,
    get_member_profile_repository,
)
from .insights import InsightRepository, get_insight_repository
from .audit import AuditRepository, get_audit_repository

__all__ = [
    "UserRepository",
    "get_user_repository",
    "TeamRepository",
    "get_team_repository",
    "TaskRepository",
    "get_task_repository",
    "MeetingRepository",
    "get_meeting_repository",
    "NoteRepository",
    "get_note_repository",
    "TeamNoteRepository",
    "get_team_note_repository",
    "AttendanceRepository",
    "get_attendance_repository",
    "MemberProfileRepository",
    "get_member_profile_repository",
    "InsightRepository",
    "get_insight_repository",
    "AuditRepository",
    "get_audit_repository",
]
