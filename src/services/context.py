"""
Context aggregation for AI calls.

Builds a text snapshot of everything one leader can see (teams, tasks,
meetings, member profiles, attendance, notes) plus the structured team
list used downstream for name resolution. Read-only; any read failure
propagates, because a partial context silently degrades every LLM
decision made from it.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Dict

from config import settings
from ..database.models import (
    UserDB,
    TeamDB,
    TaskDB,
    MeetingDB,
    NoteDB,
    TeamNoteDB,
    MemberProfileDB,
    AttendanceDB,
    TaskStatusEnum,
)
from ..database.repositories import (
    TeamRepository,
    TaskRepository,
    MeetingRepository,
    NoteRepository,
    TeamNoteRepository,
    MemberProfileRepository,
    AttendanceRepository,
    get_team_repository,
    get_task_repository,
    get_meeting_repository,
    get_note_repository,
    get_team_note_repository,
    get_member_profile_repository,
    get_attendance_repository,
)
from ..utils.datetime_utils import (
    resolve_timezone,
    ensure_utc,
    utc_day,
    format_date,
    format_local,
    to_iso_z,
    is_overdue,
)

logger = logging.getLogger(__name__)

START_MARKER = "--- START OF USER'S ACCOUNT DATA ---"
END_MARKER = "--- END OF USER'S ACCOUNT DATA ---"


def leader_scope(user: UserDB) -> List[int]:
    """Leader ids whose data the user may see: self plus their owner, one level only."""
    scope = [user.id]
    if user.owner_id is not None and user.owner_id != user.id:
        scope.append(user.owner_id)
    return scope


@dataclass
class AggregatedContext:
    """Serialized account data plus the caller's teams."""
    text: str
    teams: List[TeamDB] = field(default_factory=list)


class ContextAggregator:
    """Collects a user's visible data and renders it for the LLM."""

    def __init__(
        self,
        teams: Optional[TeamRepository] = None,
        tasks: Optional[TaskRepository] = None,
        meetings: Optional[MeetingRepository] = None,
        notes: Optional[NoteRepository] = None,
        team_notes: Optional[TeamNoteRepository] = None,
        profiles: Optional[MemberProfileRepository] = None,
        attendance: Optional[AttendanceRepository] = None,
    ):
        self.teams = teams or get_team_repository()
        self.tasks = tasks or get_task_repository()
        self.meetings = meetings or get_meeting_repository()
        self.notes = notes or get_note_repository()
        self.team_notes = team_notes or get_team_note_repository()
        self.profiles = profiles or get_member_profile_repository()
        self.attendance = attendance or get_attendance_repository()

    async def _team_scoped_reads(self, user: UserDB):
        """Teams first, then everything keyed by their ids."""
        teams = await self.teams.list_for_leaders(leader_scope(user))
        team_ids = [team.id for team in teams]
        tasks, meetings, team_notes = await asyncio.gather(
            self.tasks.list_by_teams(team_ids),
            self.meetings.list_by_teams(team_ids),
            self.team_notes.list_by_teams(team_ids),
        )
        return teams, tasks, meetings, team_notes

    async def gather(self, user: UserDB, timezone_name: Optional[str], now: datetime) -> AggregatedContext:
        """
        Read and render the user's account data.

        Independent reads run concurrently; only the team-keyed reads wait
        for the team list.
        """
        tz = resolve_timezone(timezone_name)
        since = utc_day(now) - timedelta(days=settings.attendance_history_days)

        (
            (teams, tasks, meetings, team_notes),
            notes,
            profiles,
            recent_attendance,
            status_counts,
            holidays,
        ) = await asyncio.gather(
            self._team_scoped_reads(user),
            self.notes.list_for_user(user.id),
            self.profiles.list_for_leader(user.id),
            self.attendance.list_since(user.id, since),
            self.attendance.status_counts(user.id),
            self.attendance.list_holidays(user.id),
        )

        team_names = {team.id: team.team_name for team in teams}
        lines: List[str] = [START_MARKER, ""]
        local_now = ensure_utc(now).astimezone(tz)
        lines.append(f"Today's Date: {local_now.strftime('%Y-%m-%d')} ({tz.zone})")
        lines.append(f"Current UTC Time: {to_iso_z(now)}")
        lines.append(f"User's Name: {user.username}")

        lines.extend(self._render_teams(teams))
        lines.extend(self._render_tasks(tasks, team_names, now))
        lines.extend(self._render_meetings(meetings, team_names, tz))
        lines.extend(self._render_profiles(profiles))
        lines.extend(self._render_attendance(recent_attendance, status_counts, holidays))
        lines.extend(self._render_notes(notes, team_notes, team_names))

        lines.extend(["", END_MARKER])

        logger.debug(
            f"Aggregated context for user {user.id}: {len(teams)} teams, "
            f"{len(tasks)} tasks, {len(meetings)} meetings"
        )
        return AggregatedContext(text="\n".join(lines), teams=teams)

    # ==================== RENDERING ====================

    @staticmethod
    def _section(title: str, rows: List[str]) -> List[str]:
        return ["", f"## {title} ##"] + (rows or ["- None"])

    def _render_teams(self, teams: List[TeamDB]) -> List[str]:
        rows = [
            f"- {team.team_name} (Members: {', '.join(team.members or []) or 'None'})"
            for team in teams
        ]
        return self._section("TEAMS", rows)

    def _render_tasks(self, tasks: List[TaskDB], team_names: Dict[int, str], now: datetime) -> List[str]:
        rows = []
        for task in tasks:
            due = "N/A"
            if task.due_date is not None:
                due = f"{format_date(task.due_date)} [{to_iso_z(task.due_date)}]"
                if task.status != TaskStatusEnum.COMPLETED.value and is_overdue(task.due_date, now):
                    due += " OVERDUE"
            rows.append(
                f"- {task.title} (Team: {team_names.get(task.team_id, 'Unknown')}, "
                f"Status: {task.status}, Assigned: {task.assigned_to}, Due: {due})"
            )
        return self._section("TASKS", rows)

    def _render_meetings(self, meetings: List[MeetingDB], team_names: Dict[int, str], tz) -> List[str]:
        rows = [
            f"- {meeting.title} (Team: {team_names.get(meeting.team_id, 'Unknown')}, "
            f"Time: {format_local(meeting.meeting_time, tz)} [{to_iso_z(meeting.meeting_time)}], "
            f"Participants: {', '.join(meeting.participants or []) or 'None'})"
            for meeting in meetings
        ]
        return self._section("MEETINGS", rows)

    def _render_profiles(self, profiles: List[MemberProfileDB]) -> List[str]:
        rows = [
            f"- {profile.name} (Email: {profile.email or 'N/A'}, Joined: {format_date(profile.joining_date)})"
            for profile in profiles
        ]
        return self._section("MEMBER PROFILES", rows)

    def _render_attendance(
        self,
        recent: List[AttendanceDB],
        counts: List[tuple],
        holidays: List[AttendanceDB],
    ) -> List[str]:
        lines = self._section(
            f"ATTENDANCE (LAST {settings.attendance_history_days} DAYS)",
            [f"- {record.member} was {record.status} on {format_date(record.date)}" for record in recent],
        )

        totals: Dict[str, List[str]] = defaultdict(list)
        for member, status, count in counts:
            totals[member].append(f"{status} {count}")
        lines.extend(self._section(
            "ATTENDANCE TOTALS (ALL TIME)",
            [f"- {member}: {', '.join(parts)}" for member, parts in totals.items()],
        ))

        by_day: Dict[str, List[str]] = defaultdict(list)
        for record in holidays:
            by_day[format_date(record.date)].append(record.member)
        lines.extend(self._section(
            "HOLIDAYS",
            [f"- {day} ({', '.join(members)})" for day, members in by_day.items()],
        ))
        return lines

    def _render_notes(
        self,
        notes: List[NoteDB],
        team_notes: List[TeamNoteDB],
        team_names: Dict[int, str],
    ) -> List[str]:
        lines = self._section(
            "PERSONAL NOTES",
            [
                f"- {note.title} (Category: {note.category}, Plan: {note.plan_period})"
                + (f": {note.content[:200]}" if note.content else "")
                for note in notes
            ],
        )
        lines.extend(self._section(
            "TEAM NOTES",
            [f"- {note.title} (Team: {team_names.get(note.team_id, 'Unknown')})" for note in team_notes],
        ))
        return lines


# Singleton
_context_aggregator: Optional[ContextAggregator] = None


def get_context_aggregator() -> ContextAggregator:
    """Get the context aggregator singleton."""
    global _context_aggregator
    if _context_aggregator is None:
        _context_aggregator = ContextAggregator()
    return _context_aggregator
