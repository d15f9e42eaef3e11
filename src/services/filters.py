"""
Filter-query builder for chat-driven task mutations.

Turns a loosely-typed find object {teamName, assignedTo, title, status,
dueDate} into precise SQLAlchemy conditions. The caller's own team ids are
always part of the query: a team name can narrow that scope but never
widen it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Any

from sqlalchemy import func

from ..ai.intent import TaskFind
from ..database.models import TaskDB, TeamDB, TaskStatusEnum
from ..utils.datetime_utils import is_date_only, parse_day, parse_instant, utc_day_range
from .exceptions import TeamNotFoundError, InvalidFilterError

logger = logging.getLogger(__name__)

# Spellings the model tends to use for each status
_STATUS_ALIASES = {
    "pending": TaskStatusEnum.PENDING.value,
    "todo": TaskStatusEnum.PENDING.value,
    "to do": TaskStatusEnum.PENDING.value,
    "open": TaskStatusEnum.PENDING.value,
    "in progress": TaskStatusEnum.IN_PROGRESS.value,
    "in-progress": TaskStatusEnum.IN_PROGRESS.value,
    "in_progress": TaskStatusEnum.IN_PROGRESS.value,
    "inprogress": TaskStatusEnum.IN_PROGRESS.value,
    "started": TaskStatusEnum.IN_PROGRESS.value,
    "completed": TaskStatusEnum.COMPLETED.value,
    "complete": TaskStatusEnum.COMPLETED.value,
    "done": TaskStatusEnum.COMPLETED.value,
    "finished": TaskStatusEnum.COMPLETED.value,
}


def normalize_task_status(value: str) -> str:
    """Map a status spelling onto Pending / In Progress / Completed."""
    status = _STATUS_ALIASES.get(value.strip().lower())
    if status is None:
        raise InvalidFilterError(
            f'"{value}" is not a valid task status. Use Pending, In Progress or Completed.'
        )
    return status


def resolve_team(teams: List[TeamDB], team_name: str) -> TeamDB:
    """Find one of the caller's teams by name, case-insensitively."""
    wanted = team_name.strip().lower()
    for team in teams:
        if team.team_name.strip().lower() == wanted:
            return team
    raise TeamNotFoundError(team_name)


def find_member(team: TeamDB, name: str) -> Optional[str]:
    """Return the team's own spelling of a member name, or None if absent."""
    wanted = name.strip().lower()
    for member in team.members or []:
        if member.strip().lower() == wanted:
            return member
    return None


@dataclass
class TaskQuery:
    """A security-scoped task filter."""

    team_ids: List[int] = field(default_factory=list)
    assigned_to: Optional[str] = None
    title_contains: Optional[str] = None
    status: Optional[str] = None
    due_from: Optional[datetime] = None
    due_to: Optional[datetime] = None
    due_exact: Optional[datetime] = None

    def conditions(self) -> List[Any]:
        """Build WHERE conditions; the team-id scope is always first."""
        conditions: List[Any] = [TaskDB.team_id.in_(self.team_ids)]
        if self.assigned_to:
            conditions.append(func.lower(TaskDB.assigned_to) == self.assigned_to.lower())
        if self.title_contains:
            conditions.append(TaskDB.title.icontains(self.title_contains, autoescape=True))
        if self.status:
            conditions.append(TaskDB.status == self.status)
        if self.due_exact is not None:
            conditions.append(TaskDB.due_date == self.due_exact)
        else:
            if self.due_from is not None:
                conditions.append(TaskDB.due_date >= self.due_from)
            if self.due_to is not None:
                conditions.append(TaskDB.due_date <= self.due_to)
        return conditions


def build_task_query(find: TaskFind, teams: List[TeamDB]) -> TaskQuery:
    """
    Build a TaskQuery from a find object.

    - teamName: narrows the scope to that one team (TeamNotFoundError if
      it is not one of the caller's teams)
    - assignedTo: case-insensitive exact member name
    - title: case-insensitive substring
    - status: normalized to Pending / In Progress / Completed
    - dueDate: a bare YYYY-MM-DD matches the whole UTC day
      [00:00:00.000, 23:59:59.999]; any fuller ISO string matches that
      exact instant
    """
    if find.team_name:
        query = TaskQuery(team_ids=[resolve_team(teams, find.team_name).id])
    else:
        query = TaskQuery(team_ids=[team.id for team in teams])

    query.assigned_to = find.assigned_to
    query.title_contains = find.title

    if find.status:
        query.status = normalize_task_status(find.status)

    if find.due_date:
        try:
            if is_date_only(find.due_date):
                query.due_from, query.due_to = utc_day_range(parse_day(find.due_date))
            else:
                query.due_exact = parse_instant(find.due_date)
        except ValueError:
            raise InvalidFilterError(f'I couldn\'t understand the due date "{find.due_date}".')

    logger.debug(f"Built task query: {query}")
    return query
