"""
PostgreSQL Database Module for E-Manager AI.

Handles:
- Tenant hierarchy (owners, managers) and teams with name-string members
- Tasks, meetings, personal notes and team notes
- Member profiles and daily attendance
- AI insights, AI action logs and system logs
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
)
from .models import (
    Base,
    UserDB,
    TeamDB,
    TaskDB,
    MeetingDB,
    NoteDB,
    TeamNoteDB,
    MemberProfileDB,
    AttendanceDB,
    InsightDB,
    AiActionLogDB,
    SystemLogDB,
)

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "Base",
    "UserDB",
    "TeamDB",
    "TaskDB",
    "MeetingDB",
    "NoteDB",
    "TeamNoteDB",
    "MemberProfileDB",
    "AttendanceDB",
    "InsightDB",
    "AiActionLogDB",
    "SystemLogDB",
]
