"""
Intent classification for the chat assistant.

Maps a free-text request (plus chat history and the aggregated account
context) to exactly one action from a fixed set. The model's output is
never trusted: it is parsed into a typed ClassifiedAction, or into an
UnparsableAction when it is not usable.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, List, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .deepseek import DeepSeekClient, get_deepseek_client, parse_json_response
from ..utils.datetime_utils import resolve_timezone, ensure_utc, to_iso_z

logger = logging.getLogger(__name__)


class ChatAction(str, Enum):
    """Actions the classifier may choose."""

    GET_ANSWER = "GET_ANSWER"              # "how many tasks are overdue?"
    CREATE_TASK = "CREATE_TASK"            # "give Asha the landing page, due Friday"
    SCHEDULE_MEETING = "SCHEDULE_MEETING"  # "set up a sync with Fixspire tomorrow 3pm"
    ADD_NOTE = "ADD_NOTE"                  # "note: hire a designer next quarter"
    UPDATE_TASKS = "UPDATE_TASKS"          # "mark Ravi's tasks as completed"
    DELETE_TASKS = "DELETE_TASKS"          # "delete all completed tasks in Fixspire"
    UPDATE_NOTE = "UPDATE_NOTE"            # "rename my Old Ideas note"
    DELETE_NOTE = "DELETE_NOTE"            # "delete the note titled Old Ideas"
    UPDATE_MEETING = "UPDATE_MEETING"      # "move the standup to 10am"
    DELETE_MEETING = "DELETE_MEETING"      # "cancel the retro"
    SET_ATTENDANCE = "SET_ATTENDANCE"      # "mark the whole Fixspire team present"


# ==================== PAYLOADS ====================

class ActionPayload(BaseModel):
    """Base for classifier payloads: camelCase aliases, blank strings become None."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


def _clean_names(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    names = [name.strip() for name in value if name and name.strip()]
    return names


class AnswerPayload(ActionPayload):
    pass


class TaskFind(ActionPayload):
    team_name: Optional[str] = Field(default=None, alias="teamName")
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")
    title: Optional[str] = None
    status: Optional[str] = None
    due_date: Optional[str] = Field(default=None, alias="dueDate")

    def is_empty(self) -> bool:
        return not any((self.team_name, self.assigned_to, self.title, self.status, self.due_date))


class TaskUpdates(ActionPayload):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")
    due_date: Optional[str] = Field(default=None, alias="dueDate")

    def is_empty(self) -> bool:
        return not any((self.title, self.description, self.status, self.assigned_to, self.due_date))


class CreateTaskPayload(ActionPayload):
    team_name: Optional[str] = Field(default=None, alias="teamName")
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = Field(default=None, alias="dueDate")


class ScheduleMeetingPayload(ActionPayload):
    team_name: Optional[str] = Field(default=None, alias="teamName")
    title: Optional[str] = None
    meeting_time: Optional[str] = Field(default=None, alias="meetingTime")
    agenda: Optional[str] = None
    participants: Optional[List[str]] = None

    @field_validator("participants")
    @classmethod
    def _clean_participants(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_names(value)


class AddNotePayload(ActionPayload):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    plan_period: Optional[str] = Field(default=None, alias="planPeriod")


class UpdateTasksPayload(ActionPayload):
    find: Optional[TaskFind] = None
    updates: Optional[TaskUpdates] = None


class DeleteTasksPayload(ActionPayload):
    find: Optional[TaskFind] = None


class NoteFind(ActionPayload):
    title: Optional[str] = None


class NoteUpdates(ActionPayload):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    plan_period: Optional[str] = Field(default=None, alias="planPeriod")

    def is_empty(self) -> bool:
        return not any((self.title, self.content, self.category, self.plan_period))


class UpdateNotePayload(ActionPayload):
    find: Optional[NoteFind] = None
    updates: Optional[NoteUpdates] = None


class DeleteNotePayload(ActionPayload):
    find: Optional[NoteFind] = None


class MeetingFind(ActionPayload):
    title: Optional[str] = None
    team_name: Optional[str] = Field(default=None, alias="teamName")
    meeting_time: Optional[str] = Field(default=None, alias="meetingTime")


class MeetingUpdates(ActionPayload):
    title: Optional[str] = None
    agenda: Optional[str] = None
    meeting_time: Optional[str] = Field(default=None, alias="meetingTime")
    participants: Optional[List[str]] = None

    @field_validator("participants")
    @classmethod
    def _clean_participants(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_names(value)

    def is_empty(self) -> bool:
        return not any((self.title, self.agenda, self.meeting_time)) and self.participants is None


class UpdateMeetingPayload(ActionPayload):
    find: Optional[MeetingFind] = None
    updates: Optional[MeetingUpdates] = None


class DeleteMeetingPayload(ActionPayload):
    find: Optional[MeetingFind] = None


class SetAttendancePayload(ActionPayload):
    status: Optional[str] = None
    team_name: Optional[str] = Field(default=None, alias="teamName")
    members: Optional[List[str]] = None

    @field_validator("members")
    @classmethod
    def _clean_members(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_names(value)


PAYLOAD_MODELS: Dict[ChatAction, Type[ActionPayload]] = {
    ChatAction.GET_ANSWER: AnswerPayload,
    ChatAction.CREATE_TASK: CreateTaskPayload,
    ChatAction.SCHEDULE_MEETING: ScheduleMeetingPayload,
    ChatAction.ADD_NOTE: AddNotePayload,
    ChatAction.UPDATE_TASKS: UpdateTasksPayload,
    ChatAction.DELETE_TASKS: DeleteTasksPayload,
    ChatAction.UPDATE_NOTE: UpdateNotePayload,
    ChatAction.DELETE_NOTE: DeleteNotePayload,
    ChatAction.UPDATE_MEETING: UpdateMeetingPayload,
    ChatAction.DELETE_MEETING: DeleteMeetingPayload,
    ChatAction.SET_ATTENDANCE: SetAttendancePayload,
}


# ==================== RESULTS ====================

@dataclass
class ClassifiedAction:
    """A usable classification: one action and its typed payload."""
    action: ChatAction
    payload: ActionPayload


@dataclass
class UnparsableAction:
    """The model's output could not be turned into an action."""
    raw: str
    reason: str


IntentResult = Union[ClassifiedAction, UnparsableAction]


def _normalize_action_name(value: Any) -> Optional[ChatAction]:
    if not isinstance(value, str):
        return None
    name = value.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return ChatAction(name)
    except ValueError:
        return None


def parse_action(raw: str) -> IntentResult:
    """
    Turn a raw completion into an IntentResult.

    - Not a JSON object: UnparsableAction
    - Unknown or missing action name: GET_ANSWER (no write)
    - Known action with a payload of the wrong shape: UnparsableAction
    """
    data = parse_json_response(raw)
    if not isinstance(data, dict):
        return UnparsableAction(raw=raw or "", reason="response is not a JSON object")

    action = _normalize_action_name(data.get("action"))
    if action is None:
        logger.info(f"Unrecognised action {data.get('action')!r}, answering instead")
        return ClassifiedAction(action=ChatAction.GET_ANSWER, payload=AnswerPayload())

    payload = data.get("payload")
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return UnparsableAction(raw=raw, reason=f"payload for {action.value} is not an object")

    try:
        parsed = PAYLOAD_MODELS[action].model_validate(payload)
    except ValidationError as e:
        return UnparsableAction(raw=raw, reason=f"invalid payload for {action.value}: {e.error_count()} errors")

    return ClassifiedAction(action=action, payload=parsed)


class IntentClassifier:
    """Single, non-interactive LLM call that picks one action."""

    def __init__(self, client: Optional[DeepSeekClient] = None):
        self.client = client or get_deepseek_client()

    async def classify(
        self,
        question: str,
        history: List[Dict[str, str]],
        context_text: str,
        timezone_name: Optional[str],
        now: datetime,
    ) -> IntentResult:
        """
        Classify a chat request.

        Transport errors from the LLM propagate; malformed output is
        returned as UnparsableAction.
        """
        tz = resolve_timezone(timezone_name)
        local_now = ensure_utc(now).astimezone(tz)

        raw = await self.client.classify_intent(
            question=question,
            history=history,
            context_text=context_text,
            timezone_name=tz.zone,
            today_local=local_now.strftime("%A, %Y-%m-%d %H:%M"),
            now_utc_iso=to_iso_z(now),
        )

        result = parse_action(raw)
        if isinstance(result, UnparsableAction):
            logger.warning(f"Classifier returned unusable output ({result.reason}): {result.raw[:200]}")
        else:
            logger.info(f"Classified request as {result.action.value}")
        return result
