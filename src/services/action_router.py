"""
Action router for the chat assistant.

Dispatches one classified action to its handler. Each write handler:
- Reloads the caller's teams (never reuses the aggregated snapshot)
- Resolves team names case-insensitively against those teams only
- Validates member names against the resolved team's roster
- Performs the write and returns a conversational confirmation

Validation failures are raised as ActionRejected inside handlers and
turned into a normal chat reply here; they never escape the router.
Infrastructure errors (database, LLM transport) propagate to the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, List, Callable, Awaitable

from ..ai.deepseek import DeepSeekClient, get_deepseek_client
from ..ai.intent import (
    ChatAction,
    ActionPayload,
    UnparsableAction,
    IntentResult,
    CreateTaskPayload,
    ScheduleMeetingPayload,
    AddNotePayload,
    UpdateTasksPayload,
    DeleteTasksPayload,
    UpdateNotePayload,
    DeleteNotePayload,
    UpdateMeetingPayload,
    DeleteMeetingPayload,
    SetAttendancePayload,
    TaskFind,
    TaskUpdates,
    NoteUpdates,
    MeetingUpdates,
)
from ..ai.prompts import PromptTemplates
from ..database.models import UserDB, TeamDB, MeetingDB, AttendanceStatusEnum, AiActionType
from ..database.repositories import (
    TeamRepository,
    TaskRepository,
    MeetingRepository,
    NoteRepository,
    AttendanceRepository,
    get_team_repository,
    get_task_repository,
    get_meeting_repository,
    get_note_repository,
    get_attendance_repository,
)
from ..integrations.meet import GoogleMeetIntegration, get_meet_integration
from ..utils.audit_logger import log_ai_action
from ..utils.datetime_utils import (
    parse_instant,
    resolve_timezone,
    utc_day,
    format_date,
    format_local,
)
from config import settings
from .context import AggregatedContext, leader_scope
from .exceptions import ActionRejected, InvalidAIResponseError
from .filters import (
    build_task_query,
    find_member,
    normalize_task_status,
    resolve_team,
)

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    SUCCESS = "success"
    REJECTED = "rejected"
    NO_OP = "no_op"


@dataclass
class ChatReply:
    """What the assistant says back, and how the action ended."""
    response: str
    action: ChatAction
    outcome: Outcome = Outcome.SUCCESS


@dataclass
class ActionRequest:
    """Everything a handler may need about the current chat turn."""
    user: UserDB
    question: str
    context: AggregatedContext
    now: datetime
    timezone_name: Optional[str] = None
    history: List[Dict[str, str]] = field(default_factory=list)


ACTION_LOG_TYPES: Dict[ChatAction, AiActionType] = {
    ChatAction.GET_ANSWER: AiActionType.GET_ANSWER,
    ChatAction.CREATE_TASK: AiActionType.CREATE_TASK,
    ChatAction.SCHEDULE_MEETING: AiActionType.SCHEDULE_MEETING,
    ChatAction.ADD_NOTE: AiActionType.ADD_NOTE,
    ChatAction.UPDATE_TASKS: AiActionType.UPDATE_TASKS,
    ChatAction.DELETE_TASKS: AiActionType.DELETE_TASKS,
    ChatAction.UPDATE_NOTE: AiActionType.UPDATE_NOTE,
    ChatAction.DELETE_NOTE: AiActionType.DELETE_NOTE,
    ChatAction.UPDATE_MEETING: AiActionType.UPDATE_MEETING,
    ChatAction.DELETE_MEETING: AiActionType.DELETE_MEETING,
    ChatAction.SET_ATTENDANCE: AiActionType.SET_ATTENDANCE,
}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _join_names(names: List[str]) -> str:
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def _parse_time(value: str, label: str) -> datetime:
    try:
        return parse_instant(value)
    except ValueError:
        raise ActionRejected(f'I couldn\'t understand the {label} "{value}". Could you give me a specific date and time?')


def _require(fields: List[tuple], action_label: str) -> None:
    """Reject when any (label, value) pair is missing."""
    missing = [label for label, value in fields if not value]
    if missing:
        raise ActionRejected(f"To {action_label} I need the {_join_names(missing)}. Could you tell me?")


def _quoted(name: str) -> str:
    return f'"{name}"'


def _canonical_members(team: TeamDB, names: List[str]) -> List[str]:
    """Map names onto the team's roster spelling, rejecting unknown ones."""
    resolved, invalid = [], []
    for name in names:
        member = find_member(team, name)
        if member is None:
            invalid.append(name)
        elif member not in resolved:
            resolved.append(member)
    if invalid:
        raise ActionRejected(
            f"{_join_names([_quoted(n) for n in invalid])} "
            f"{'is' if len(invalid) == 1 else 'are'} not a member of the {team.team_name} team."
        )
    return resolved


def _ambiguity_note(count: int, kind: str, title: str, verb: str = "changed") -> str:
    if count <= 1:
        return ""
    return f' ({count} {kind}s matched "{title}"; I {verb} the oldest one.)'


class ActionRouter:
    """Pure dispatch table: one classified action, one handler, one reply."""

    def __init__(
        self,
        client: Optional[DeepSeekClient] = None,
        teams: Optional[TeamRepository] = None,
        tasks: Optional[TaskRepository] = None,
        meetings: Optional[MeetingRepository] = None,
        notes: Optional[NoteRepository] = None,
        attendance: Optional[AttendanceRepository] = None,
        meet: Optional[GoogleMeetIntegration] = None,
    ):
        self.client = client or get_deepseek_client()
        self.teams = teams or get_team_repository()
        self.tasks = tasks or get_task_repository()
        self.meetings = meetings or get_meeting_repository()
        self.notes = notes or get_note_repository()
        self.attendance = attendance or get_attendance_repository()
        self.meet = meet or get_meet_integration()

        self._handlers: Dict[ChatAction, Callable[[Any, ActionRequest], Awaitable[ChatReply]]] = {
            ChatAction.GET_ANSWER: self._get_answer,
            ChatAction.CREATE_TASK: self._create_task,
            ChatAction.SCHEDULE_MEETING: self._schedule_meeting,
            ChatAction.ADD_NOTE: self._add_note,
            ChatAction.UPDATE_TASKS: self._update_tasks,
            ChatAction.DELETE_TASKS: self._delete_tasks,
            ChatAction.UPDATE_NOTE: self._update_note,
            ChatAction.DELETE_NOTE: self._delete_note,
            ChatAction.UPDATE_MEETING: self._update_meeting,
            ChatAction.DELETE_MEETING: self._delete_meeting,
            ChatAction.SET_ATTENDANCE: self._set_attendance,
        }

    async def execute(self, result: IntentResult, request: ActionRequest) -> ChatReply:
        """
        Run one classified action.

        Raises:
            InvalidAIResponseError: the classifier output was unusable
        """
        if isinstance(result, UnparsableAction):
            raise InvalidAIResponseError(result.reason)

        handler = self._handlers[result.action]
        try:
            reply = await handler(result.payload, request)
        except ActionRejected as e:
            logger.info(f"{result.action.value} rejected for user {request.user.id}: {e.message}")
            return ChatReply(response=e.message, action=result.action, outcome=Outcome.REJECTED)

        log_ai_action(request.user.id, ACTION_LOG_TYPES[result.action])
        return reply

    async def _load_teams(self, user: UserDB) -> List[TeamDB]:
        """Fresh roster read for write branches."""
        return await self.teams.list_for_leaders(leader_scope(user))

    # ==================== READ ====================

    async def _get_answer(self, payload: ActionPayload, request: ActionRequest) -> ChatReply:
        answer = await self.client.answer_question(
            question=request.question,
            history=request.history,
            context_text=request.context.text,
        )
        return ChatReply(
            response=(answer or "").strip() or PromptTemplates.NO_INFORMATION,
            action=ChatAction.GET_ANSWER,
        )

    # ==================== TASKS ====================

    async def _create_task(self, payload: CreateTaskPayload, request: ActionRequest) -> ChatReply:
        _require(
            [("team name", payload.team_name), ("assignee", payload.assigned_to), ("task title", payload.title)],
            "create a task",
        )

        teams = await self._load_teams(request.user)
        team = resolve_team(teams, payload.team_name)
        member = find_member(team, payload.assigned_to)
        if member is None:
            raise ActionRejected(f'"{payload.assigned_to}" is not a member of the {team.team_name} team.')

        due_date = _parse_time(payload.due_date, "due date") if payload.due_date else None

        task = await self.tasks.create({
            "team_id": team.id,
            "title": payload.title,
            "description": payload.description,
            "assigned_to": member,
            "due_date": due_date,
            "created_by": request.user.id,
        })

        due_text = f", due {format_date(due_date)}" if due_date else ""
        return ChatReply(
            response=f'Done! I created the task "{task.title}" for {member} in {team.team_name}{due_text}.',
            action=ChatAction.CREATE_TASK,
        )

    def _task_values(self, updates: TaskUpdates, find: TaskFind, teams: List[TeamDB]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if updates.assigned_to:
            if not find.team_name:
                raise ActionRejected(
                    "To reassign tasks, please tell me which team they belong to so I can check the new assignee."
                )
            team = resolve_team(teams, find.team_name)
            member = find_member(team, updates.assigned_to)
            if member is None:
                raise ActionRejected(f'"{updates.assigned_to}" is not a member of the {team.team_name} team.')
            values["assigned_to"] = member
        if updates.title:
            values["title"] = updates.title
        if updates.description:
            values["description"] = updates.description
        if updates.status:
            values["status"] = normalize_task_status(updates.status)
        if updates.due_date:
            values["due_date"] = _parse_time(updates.due_date, "due date")
        return values

    async def _update_tasks(self, payload: UpdateTasksPayload, request: ActionRequest) -> ChatReply:
        find = payload.find or TaskFind()
        updates = payload.updates or TaskUpdates()
        if find.is_empty():
            raise ActionRejected(
                "Which tasks should I update? Tell me a team, assignee, title, status or due date to look for."
            )
        if updates.is_empty():
            raise ActionRejected("What should I change on those tasks?")

        teams = await self._load_teams(request.user)
        values = self._task_values(updates, find, teams)
        query = build_task_query(find, teams)

        count = await self.tasks.update_matching(query.conditions(), values)
        if count == 0:
            return ChatReply(
                response="No tasks matched that description, so 0 tasks were updated.",
                action=ChatAction.UPDATE_TASKS,
                outcome=Outcome.NO_OP,
            )
        return ChatReply(response=f"Updated {_plural(count, 'task')}.", action=ChatAction.UPDATE_TASKS)

    async def _delete_tasks(self, payload: DeleteTasksPayload, request: ActionRequest) -> ChatReply:
        find = payload.find or TaskFind()
        if find.is_empty():
            raise ActionRejected(
                "Which tasks should I delete? Tell me a team, assignee, title, status or due date to look for."
            )

        teams = await self._load_teams(request.user)
        query = build_task_query(find, teams)

        count = await self.tasks.delete_matching(query.conditions())
        if count == 0:
            return ChatReply(
                response="No tasks matched that description, so 0 tasks were deleted.",
                action=ChatAction.DELETE_TASKS,
                outcome=Outcome.NO_OP,
            )
        return ChatReply(response=f"Deleted {_plural(count, 'task')}.", action=ChatAction.DELETE_TASKS)

    # ==================== MEETINGS ====================

    async def _schedule_meeting(self, payload: ScheduleMeetingPayload, request: ActionRequest) -> ChatReply:
        _require(
            [("team name", payload.team_name), ("meeting title", payload.title), ("meeting time", payload.meeting_time)],
            "schedule a meeting",
        )

        teams = await self._load_teams(request.user)
        team = resolve_team(teams, payload.team_name)
        if payload.participants:
            participants = _canonical_members(team, payload.participants)
        else:
            participants = list(team.members or [])
        meeting_time = _parse_time(payload.meeting_time, "meeting time")

        meeting_link = settings.meeting_link_placeholder
        event_id = None
        try:
            event = await self.meet.schedule_meeting(
                title=payload.title,
                start_time=meeting_time,
                description=payload.agenda,
            )
            if event:
                event_id = event.get("event_id")
                if event.get("meet_link"):
                    meeting_link = event["meet_link"]
        except Exception as e:
            logger.warning(f"Meeting link generation failed, using placeholder: {e}")

        meeting = await self.meetings.create({
            "team_id": team.id,
            "title": payload.title,
            "agenda": payload.agenda,
            "meeting_time": meeting_time,
            "meeting_link": meeting_link,
            "participants": participants,
            "calendar_event_id": event_id,
            "created_by": request.user.id,
        })

        tz = resolve_timezone(request.timezone_name)
        return ChatReply(
            response=(
                f'Scheduled "{meeting.title}" for {team.team_name} on {format_local(meeting_time, tz)} '
                f"with {_plural(len(participants), 'participant')}. Link: {meeting_link}"
            ),
            action=ChatAction.SCHEDULE_MEETING,
        )

    async def _find_meeting(self, find, teams: List[TeamDB], action_label: str) -> tuple[MeetingDB, int]:
        if find is None or not find.title:
            raise ActionRejected(f"Which meeting should I {action_label}? Tell me its title.")

        team_ids = [team.id for team in teams]
        if find.team_name:
            team_ids = [resolve_team(teams, find.team_name).id]
        meeting_time = _parse_time(find.meeting_time, "meeting time") if find.meeting_time else None

        matches = await self.meetings.find_by_title(team_ids, find.title, meeting_time)
        if not matches:
            raise ActionRejected(f'I couldn\'t find a meeting matching "{find.title}".')
        return matches[0], len(matches)

    async def _update_meeting(self, payload: UpdateMeetingPayload, request: ActionRequest) -> ChatReply:
        updates = payload.updates or MeetingUpdates()
        if payload.find is None or not payload.find.title:
            raise ActionRejected("Which meeting should I update? Tell me its title.")
        if updates.is_empty():
            raise ActionRejected("What should I change about that meeting?")

        teams = await self._load_teams(request.user)
        meeting, match_count = await self._find_meeting(payload.find, teams, "update")

        values: Dict[str, Any] = {}
        if updates.title:
            values["title"] = updates.title
        if updates.agenda:
            values["agenda"] = updates.agenda
        if updates.meeting_time:
            values["meeting_time"] = _parse_time(updates.meeting_time, "meeting time")
        if updates.participants is not None:
            team = next((t for t in teams if t.id == meeting.team_id), None)
            if team is None:
                raise ActionRejected(f'I couldn\'t find the team for the meeting "{meeting.title}".')
            values["participants"] = _canonical_members(team, updates.participants)

        updated = await self.meetings.update(meeting.id, values)

        if meeting.calendar_event_id:
            try:
                await self.meet.update_meeting(
                    event_id=meeting.calendar_event_id,
                    title=values.get("title"),
                    start_time=values.get("meeting_time"),
                    description=values.get("agenda"),
                )
            except Exception as e:
                logger.warning(f"Calendar update failed for meeting {meeting.id}: {e}")

        tz = resolve_timezone(request.timezone_name)
        return ChatReply(
            response=(
                f'Updated the meeting "{updated.title}" ({format_local(updated.meeting_time, tz)}).'
                + _ambiguity_note(match_count, "meeting", payload.find.title)
            ),
            action=ChatAction.UPDATE_MEETING,
        )

    async def _delete_meeting(self, payload: DeleteMeetingPayload, request: ActionRequest) -> ChatReply:
        teams = await self._load_teams(request.user)
        meeting, match_count = await self._find_meeting(payload.find, teams, "cancel")

        await self.meetings.delete(meeting.id)

        if meeting.calendar_event_id:
            try:
                await self.meet.delete_meeting(meeting.calendar_event_id)
            except Exception as e:
                logger.warning(f"Calendar delete failed for meeting {meeting.id}: {e}")

        note = _ambiguity_note(match_count, "meeting", payload.find.title, "deleted")
        return ChatReply(
            response=f'Deleted the meeting "{meeting.title}".{note}',
            action=ChatAction.DELETE_MEETING,
        )

    # ==================== NOTES ====================

    async def _add_note(self, payload: AddNotePayload, request: ActionRequest) -> ChatReply:
        _require([("note title", payload.title)], "add a note")

        note = await self.notes.create({
            "user_id": request.user.id,
            "title": payload.title,
            "content": payload.content,
            "category": payload.category,
            "plan_period": payload.plan_period,
        })
        return ChatReply(response=f'Saved your note "{note.title}".', action=ChatAction.ADD_NOTE)

    async def _find_note(self, find, user: UserDB, action_label: str):
        if find is None or not find.title:
            raise ActionRejected(f"Which note should I {action_label}? Tell me its title.")
        matches = await self.notes.find_by_title(user.id, find.title)
        if not matches:
            raise ActionRejected(f'I couldn\'t find a note matching "{find.title}".')
        return matches[0], len(matches)

    async def _update_note(self, payload: UpdateNotePayload, request: ActionRequest) -> ChatReply:
        updates = payload.updates or NoteUpdates()
        if payload.find is None or not payload.find.title:
            raise ActionRejected("Which note should I update? Tell me its title.")
        if updates.is_empty():
            raise ActionRejected("What should I change in that note?")

        note, match_count = await self._find_note(payload.find, request.user, "update")

        values: Dict[str, Any] = {}
        if updates.title:
            values["title"] = updates.title
        if updates.content:
            values["content"] = updates.content
        if updates.category:
            values["category"] = updates.category
        if updates.plan_period:
            values["plan_period"] = updates.plan_period

        await self.notes.update(note.id, values)
        return ChatReply(
            response=f'Updated your note "{note.title}".' + _ambiguity_note(match_count, "note", payload.find.title),
            action=ChatAction.UPDATE_NOTE,
        )

    async def _delete_note(self, payload: DeleteNotePayload, request: ActionRequest) -> ChatReply:
        note, match_count = await self._find_note(payload.find, request.user, "delete")

        await self.notes.delete(note.id)
        note_text = _ambiguity_note(match_count, "note", payload.find.title, "deleted")
        return ChatReply(
            response=f'Deleted your note "{note.title}".{note_text}',
            action=ChatAction.DELETE_NOTE,
        )

    # ==================== ATTENDANCE ====================

    async def _set_attendance(self, payload: SetAttendancePayload, request: ActionRequest) -> ChatReply:
        status = self._attendance_status(payload.status)

        teams = await self._load_teams(request.user)
        if payload.team_name:
            team = resolve_team(teams, payload.team_name)
            members = list(dict.fromkeys(team.members or []))
            if not members:
                raise ActionRejected(f"The {team.team_name} team has no members to mark.")
        elif payload.members:
            members = self._members_across_teams(teams, payload.members)
        else:
            raise ActionRejected("Whose attendance should I mark? Give me a team name or member names.")

        day = utc_day(request.now)
        count = await self.attendance.upsert_many(request.user.id, members, day, status)

        return ChatReply(
            response=(
                f"Marked {_plural(count, 'member')} as {status} for {format_date(day)}: {_join_names(members)}."
            ),
            action=ChatAction.SET_ATTENDANCE,
        )

    @staticmethod
    def _attendance_status(value: Optional[str]) -> str:
        if not value:
            raise ActionRejected("Which status should I mark: Present, Absent, Leave or Holiday?")
        for status in AttendanceStatusEnum:
            if status.value.lower() == value.strip().lower():
                return status.value
        raise ActionRejected(f'"{value}" is not an attendance status. Use Present, Absent, Leave or Holiday.')

    @staticmethod
    def _members_across_teams(teams: List[TeamDB], names: List[str]) -> List[str]:
        resolved, invalid = [], []
        for name in names:
            member = next((m for m in (find_member(t, name) for t in teams) if m), None)
            if member is None:
                invalid.append(name)
            elif member not in resolved:
                resolved.append(member)
        if invalid:
            raise ActionRejected(
                f"{_join_names([_quoted(n) for n in invalid])} "
                f"{'is' if len(invalid) == 1 else 'are'} not a member of any of your teams."
            )
        return resolved


# Singleton
_action_router: Optional[ActionRouter] = None


def get_action_router() -> ActionRouter:
    """Get the action router singleton."""
    global _action_router
    if _action_router is None:
        _action_router = ActionRouter()
    return _action_router
