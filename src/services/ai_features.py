"""
One-shot AI features outside the chat pipeline.

Handles:
- Email drafts grounded in the aggregated account context
- Narrative team reports over a date range
- Effort estimates, using the team's completed work as reference
- Subtask breakdowns
"""

import asyncio
import logging
from datetime import datetime, date
from typing import Dict, Any, Optional, List

from ..ai.deepseek import DeepSeekClient, get_deepseek_client
from ..database.exceptions import EntityNotFoundError
from ..database.models import UserDB, TaskStatusEnum, AiActionType
from ..database.repositories import (
    TeamRepository,
    TaskRepository,
    MeetingRepository,
    get_team_repository,
    get_task_repository,
    get_meeting_repository,
)
from ..utils.audit_logger import log_ai_action
from ..utils.datetime_utils import ensure_utc, utc_day_range, format_date
from .context import ContextAggregator, get_context_aggregator, leader_scope
from .exceptions import InvalidAIResponseError, TeamNotFoundError
from .filters import resolve_team

logger = logging.getLogger(__name__)

_CONFIDENCE_LEVELS = ("low", "medium", "high")


def _in_range(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    return value is not None and start <= ensure_utc(value) <= end


class AssistantFeatures:
    """Email, report, estimate and subtask generation."""

    def __init__(
        self,
        client: Optional[DeepSeekClient] = None,
        aggregator: Optional[ContextAggregator] = None,
        teams: Optional[TeamRepository] = None,
        tasks: Optional[TaskRepository] = None,
        meetings: Optional[MeetingRepository] = None,
    ):
        self.client = client or get_deepseek_client()
        self.aggregator = aggregator or get_context_aggregator()
        self.teams = teams or get_team_repository()
        self.tasks = tasks or get_task_repository()
        self.meetings = meetings or get_meeting_repository()

    async def draft_email(
        self,
        user: UserDB,
        user_prompt: str,
        member_names: Optional[List[str]],
        timezone_name: Optional[str],
        now: datetime,
    ) -> Dict[str, str]:
        """Draft an email; returns {subject, body}."""
        context = await self.aggregator.gather(user, timezone_name or "UTC", now)
        draft = await self.client.generate_email_draft(
            user_prompt=user_prompt,
            context_text=context.text,
            leader_name=user.username,
            member_names=member_names,
        )

        subject = draft.get("subject") if draft else None
        body = draft.get("body") if draft else None
        if not isinstance(subject, str) or not isinstance(body, str) or not body.strip():
            raise InvalidAIResponseError("email draft is missing subject or body")

        log_ai_action(user.id, AiActionType.DRAFT_EMAIL)
        return {"subject": subject.strip(), "body": body.strip()}

    async def team_report(
        self,
        user: UserDB,
        team_id: int,
        start_day: date,
        end_day: date,
        now: datetime,
    ) -> str:
        """
        Write a narrative report for one of the caller's teams.

        Raises:
            EntityNotFoundError: the team is missing or belongs to someone else
        """
        team = await self.teams.get_for_leaders(team_id, leader_scope(user))
        if team is None:
            raise EntityNotFoundError("Team", team_id)

        start, _ = utc_day_range(start_day)
        _, end = utc_day_range(end_day)
        now = ensure_utc(now)

        tasks, meetings = await asyncio.gather(
            self.tasks.list_by_teams([team.id]),
            self.meetings.list_by_teams([team.id]),
        )

        counts = {
            "tasks_completed": sum(
                1 for t in tasks
                if t.status == TaskStatusEnum.COMPLETED.value and _in_range(t.updated_at, start, end)
            ),
            "tasks_created": sum(1 for t in tasks if _in_range(t.created_at, start, end)),
            "tasks_overdue": sum(
                1 for t in tasks
                if t.status != TaskStatusEnum.COMPLETED.value
                and _in_range(t.due_date, start, end)
                and ensure_utc(t.due_date) < now
            ),
            "meetings_held": sum(
                1 for m in meetings
                if _in_range(m.meeting_time, start, end) and ensure_utc(m.meeting_time) < now
            ),
        }
        logger.info(f"Report counts for team {team.id}: {counts}")

        report = await self.client.generate_team_report(
            leader_name=user.username,
            team_name=team.team_name,
            start_date=format_date(start_day),
            end_date=format_date(end_day),
            counts=counts,
        )
        if not report or not report.strip():
            raise InvalidAIResponseError("empty report")

        log_ai_action(user.id, AiActionType.TEAM_REPORT)
        return report.strip()

    async def estimate_task(
        self,
        user: UserDB,
        title: str,
        description: Optional[str],
        team_name: Optional[str],
    ) -> Dict[str, Any]:
        """Estimate effort; returns {estimatedHours, confidence, reasoning}."""
        reference_titles: List[str] = []
        if team_name:
            teams = await self.teams.list_for_leaders(leader_scope(user))
            try:
                team = resolve_team(teams, team_name)
                reference_titles = await self.tasks.list_completed_titles(team.id)
            except TeamNotFoundError:
                logger.info(f"Estimate requested for unknown team '{team_name}', estimating without reference")

        result = await self.client.estimate_task(title, description or "", reference_titles)

        hours = result.get("estimatedHours") if result else None
        if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours < 0:
            raise InvalidAIResponseError("estimate is missing estimatedHours")

        confidence = str(result.get("confidence") or "medium").strip().lower()
        if confidence not in _CONFIDENCE_LEVELS:
            confidence = "medium"

        log_ai_action(user.id, AiActionType.TASK_ESTIMATE)
        return {
            "estimatedHours": hours,
            "confidence": confidence,
            "reasoning": str(result.get("reasoning") or "").strip(),
        }

    async def generate_subtasks(
        self,
        user: UserDB,
        title: str,
        description: Optional[str],
    ) -> List[Dict[str, str]]:
        """Break a task into subtasks; malformed output yields an empty list."""
        result = await self.client.breakdown_task(title, description or "")

        items = result.get("subtasks")
        if not isinstance(items, list):
            items = []

        subtasks = []
        for item in items:
            if not isinstance(item, dict):
                continue
            sub_title = item.get("title")
            if not isinstance(sub_title, str) or not sub_title.strip():
                continue
            sub_description = item.get("description")
            subtasks.append({
                "title": sub_title.strip(),
                "description": sub_description.strip() if isinstance(sub_description, str) else "",
            })

        log_ai_action(user.id, AiActionType.GENERATE_SUBTASKS)
        return subtasks


# Singleton
_assistant_features: Optional[AssistantFeatures] = None


def get_assistant_features() -> AssistantFeatures:
    """Get the assistant features singleton."""
    global _assistant_features
    if _assistant_features is None:
        _assistant_features = AssistantFeatures()
    return _assistant_features
