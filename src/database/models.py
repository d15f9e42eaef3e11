"""
SQLAlchemy models for PostgreSQL database.

Schema includes:
- Users (owners, managers, employees) with a one-level owner back-reference
- Teams whose members are plain name strings
- Tasks, meetings, personal notes and team notes
- Member profiles and daily attendance (one row per leader/member/day)
- AI insights, AI action logs and system error logs
"""

from datetime import datetime, date
from typing import Optional, List
from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    Date,
    ForeignKey,
    JSON,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
from sqlalchemy.sql import func
import enum


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ==================== ENUMS ====================

class UserRoleEnum(str, enum.Enum):
    OWNER = "owner"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class TaskStatusEnum(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class AttendanceStatusEnum(str, enum.Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LEAVE = "Leave"
    HOLIDAY = "Holiday"


class InsightTypeEnum(str, enum.Enum):
    WARNING = "Warning"
    SUGGESTION = "Suggestion"
    INSIGHT = "Insight"


class AiActionType(str, enum.Enum):
    # Chat agent actions
    GET_ANSWER = "AI_GET_ANSWER"
    CREATE_TASK = "AI_CREATE_TASK"
    UPDATE_TASKS = "AI_UPDATE_TASKS"
    DELETE_TASKS = "AI_DELETE_TASKS"
    SCHEDULE_MEETING = "AI_SCHEDULE_MEETING"
    UPDATE_MEETING = "AI_UPDATE_MEETING"
    DELETE_MEETING = "AI_DELETE_MEETING"
    ADD_NOTE = "AI_ADD_NOTE"
    UPDATE_NOTE = "AI_UPDATE_NOTE"
    DELETE_NOTE = "AI_DELETE_NOTE"
    SET_ATTENDANCE = "AI_SET_ATTENDANCE"

    # Other AI features
    DRAFT_EMAIL = "AI_DRAFT_EMAIL"
    PROACTIVE_INSIGHT = "AI_PROACTIVE_INSIGHT"
    TASK_ESTIMATE = "AI_TASK_ESTIMATE"
    GENERATE_SUBTASKS = "AI_GENERATE_SUBTASKS"
    TEAM_REPORT = "AI_TEAM_REPORT"


class LogLevelEnum(str, enum.Enum):
    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"


# ==================== USERS ====================

class UserDB(Base):
    """Account holder. Managers point at their owner through owner_id."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=UserRoleEnum.OWNER.value)
    owner_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_users_owner", "owner_id"),
    )


# ==================== TEAMS ====================

class TeamDB(Base):
    """A leader's team. Members are name strings, not foreign keys."""
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    members: Mapped[List[str]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    tasks: Mapped[List["TaskDB"]] = relationship("TaskDB", back_populates="team", cascade="all, delete-orphan")
    meetings: Mapped[List["MeetingDB"]] = relationship("MeetingDB", back_populates="team", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_teams_owner", "owner_id"),
    )


# ==================== TASKS ====================

class TaskDB(Base):
    """Team task assigned to a member by name."""
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default=TaskStatusEnum.PENDING.value)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_to: Mapped[str] = mapped_column(String(100), nullable=False)
    created_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    team: Mapped["TeamDB"] = relationship("TeamDB", back_populates="tasks")

    __table_args__ = (
        Index("idx_tasks_team", "team_id"),
        Index("idx_tasks_status", "status"),
        Index("idx_tasks_assigned", "assigned_to"),
        Index("idx_tasks_due", "due_date"),
    )


# ==================== MEETINGS ====================

class MeetingDB(Base):
    """Team meeting; meeting_time is an absolute UTC instant."""
    __tablename__ = "meetings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    agenda: Mapped[str] = mapped_column(Text, default="")
    meeting_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    meeting_link: Mapped[str] = mapped_column(String(500), nullable=False)
    participants: Mapped[List[str]] = mapped_column(JSON, default=list)
    created_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    # Google Calendar event backing the meeting link (if one was created)
    calendar_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    team: Mapped["TeamDB"] = relationship("TeamDB", back_populates="meetings")

    __table_args__ = (
        Index("idx_meetings_team", "team_id"),
        Index("idx_meetings_time", "meeting_time"),
    )


# ==================== NOTES ====================

class NoteDB(Base):
    """Personal note owned by a single user."""
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    plan_period: Mapped[str] = mapped_column(String(50), default="General")  # 1 week, 1 month, 1 year...
    category: Mapped[str] = mapped_column(String(100), default="Personal")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_notes_user", "user_id"),
    )


class TeamNoteDB(Base):
    """Note shared within a team."""
    __tablename__ = "team_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    created_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_team_notes_team", "team_id"),
    )


# ==================== MEMBERS & ATTENDANCE ====================

class MemberProfileDB(Base):
    """Optional profile for a member name, one per leader."""
    __tablename__ = "member_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    leader_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), default="")
    joining_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    ending_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("leader_id", "name", name="uq_member_profile_leader_name"),
    )


class AttendanceDB(Base):
    """Daily attendance; unique per (leader, member, date)."""
    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    leader_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    member: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)  # UTC day
    status: Mapped[str] = mapped_column(String(20), default=AttendanceStatusEnum.PRESENT.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("leader_id", "member", "date", name="uq_attendance_leader_member_date"),
        Index("idx_attendance_leader_date", "leader_id", "date"),
    )


# ==================== AI ====================

class InsightDB(Base):
    """Proactive AI insight; unread ones are replaced on every regeneration."""
    __tablename__ = "insights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    type: Mapped[str] = mapped_column(String(20), default=InsightTypeEnum.INSIGHT.value)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_insights_user_read_created", "user_id", "is_read", "created_at"),
    )


class AiActionLogDB(Base):
    """Append-only record of executed AI actions."""
    __tablename__ = "ai_action_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_ai_logs_user_created", "user_id", "created_at"),
        Index("idx_ai_logs_action", "action_type"),
    )


class SystemLogDB(Base):
    """Server-side errors captured for later triage."""
    __tablename__ = "system_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    level: Mapped[str] = mapped_column(String(10), default=LogLevelEnum.ERROR.value)
    route: Mapped[str] = mapped_column(String(255), default="N/A")
    message: Mapped[str] = mapped_column(Text, nullable=False)
    stack: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_system_logs_user_created", "user_id", "created_at"),
    )
