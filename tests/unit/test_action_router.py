"""
Unit tests for ActionRouter.

Every write path is driven with mocked repositories:
- Team/member validation against a fresh team read
- Security scoping of bulk task filters
- Rejections coming back as chat replies, not exceptions
- Meeting link fallback and attendance upserts
"""

import json
import pytest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from src.ai.intent import ChatAction, UnparsableAction, parse_action
from src.ai.prompts import PromptTemplates
from src.database.models import AiActionType, MeetingDB, NoteDB, TaskDB
from src.services.action_router import ActionRouter, ActionRequest, Outcome
from src.services.context import AggregatedContext
from src.services.exceptions import InvalidAIResponseError


@pytest.fixture
def repos(sample_teams):
    """Mocked repositories and integrations for the router."""
    teams = MagicMock()
    teams.list_for_leaders = AsyncMock(return_value=sample_teams)

    tasks = MagicMock()
    tasks.create = AsyncMock(side_effect=lambda data: TaskDB(id=99, **data))
    tasks.update_matching = AsyncMock(return_value=2)
    tasks.delete_matching = AsyncMock(return_value=3)

    meetings = MagicMock()
    meetings.create = AsyncMock(side_effect=lambda data: MeetingDB(id=7, **data))
    meetings.find_by_title = AsyncMock(return_value=[])
    meetings.update = AsyncMock()
    meetings.delete = AsyncMock(return_value=True)

    notes = MagicMock()
    notes.create = AsyncMock(side_effect=lambda data: NoteDB(id=5, **data))
    notes.find_by_title = AsyncMock(return_value=[])
    notes.update = AsyncMock()
    notes.delete = AsyncMock(return_value=True)

    attendance = MagicMock()
    attendance.upsert_many = AsyncMock(side_effect=lambda leader_id, members, day, status: len(members))

    meet = MagicMock()
    meet.schedule_meeting = AsyncMock(return_value=None)
    meet.update_meeting = AsyncMock(return_value=True)
    meet.delete_meeting = AsyncMock(return_value=True)

    client = MagicMock()
    client.answer_question = AsyncMock(return_value="You have 3 overdue tasks.")

    return {
        "client": client,
        "teams": teams,
        "tasks": tasks,
        "meetings": meetings,
        "notes": notes,
        "attendance": attendance,
        "meet": meet,
    }


@pytest.fixture
def router(repos):
    return ActionRouter(**repos)


@pytest.fixture
def mock_log_ai_action():
    with patch("src.services.action_router.log_ai_action") as mock_log:
        yield mock_log


@pytest.fixture
def request_for(leader, sample_teams, fixed_now):
    def _build(question: str = "do it", user=None, timezone_name: str = "UTC") -> ActionRequest:
        return ActionRequest(
            user=user or leader,
            question=question,
            context=AggregatedContext(text="CONTEXT", teams=sample_teams),
            now=fixed_now,
            timezone_name=timezone_name,
        )
    return _build


def _classified(action: str, payload: dict):
    return parse_action(json.dumps({"action": action, "payload": payload}))


# ==================== DISPATCH ====================

class TestDispatch:

    @pytest.mark.asyncio
    async def test_unparsable_raises(self, router, request_for):
        with pytest.raises(InvalidAIResponseError):
            await router.execute(UnparsableAction(raw="??", reason="bad"), request_for())

    @pytest.mark.asyncio
    async def test_get_answer(self, router, repos, request_for, mock_log_ai_action):
        reply = await router.execute(_classified("GET_ANSWER", {}), request_for("How many overdue?"))

        assert reply.response == "You have 3 overdue tasks."
        assert reply.action == ChatAction.GET_ANSWER
        repos["client"].answer_question.assert_awaited_once()
        assert repos["client"].answer_question.call_args.kwargs["context_text"] == "CONTEXT"
        mock_log_ai_action.assert_called_once_with(1, AiActionType.GET_ANSWER)

    @pytest.mark.asyncio
    async def test_empty_answer_falls_back(self, router, repos, request_for, mock_log_ai_action):
        repos["client"].answer_question.return_value = "   "

        reply = await router.execute(_classified("GET_ANSWER", {}), request_for())

        assert reply.response == PromptTemplates.NO_INFORMATION

    @pytest.mark.asyncio
    async def test_rejection_is_not_logged(self, router, request_for, mock_log_ai_action):
        reply = await router.execute(_classified("CREATE_TASK", {"title": "x"}), request_for())

        assert reply.outcome == Outcome.REJECTED
        mock_log_ai_action.assert_not_called()


# ==================== TASKS ====================

class TestCreateTask:

    @pytest.mark.asyncio
    async def test_creates_with_roster_spelling(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("CREATE_TASK", {
            "teamName": "fixspire", "assignedTo": "ravi kumar", "title": "Landing page", "dueDate": "2025-11-21",
        })

        reply = await router.execute(result, request_for())

        data = repos["tasks"].create.call_args.args[0]
        assert data["team_id"] == 10
        assert data["assigned_to"] == "Ravi Kumar"
        assert data["due_date"] == datetime(2025, 11, 21, tzinfo=timezone.utc)
        assert data["created_by"] == 1
        assert reply.outcome == Outcome.SUCCESS
        assert "Landing page" in reply.response and "2025-11-21" in reply.response
        mock_log_ai_action.assert_called_once_with(1, AiActionType.CREATE_TASK)

    @pytest.mark.asyncio
    async def test_missing_fields_rejected_before_db(self, router, repos, request_for, mock_log_ai_action):
        reply = await router.execute(_classified("CREATE_TASK", {"title": "Landing page"}), request_for())

        assert reply.outcome == Outcome.REJECTED
        assert "team name" in reply.response and "assignee" in reply.response
        repos["teams"].list_for_leaders.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_team(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("CREATE_TASK", {"teamName": "Nebula", "assignedTo": "Asha", "title": "x"})

        reply = await router.execute(result, request_for())

        assert reply.response == 'I couldn\'t find a team named "Nebula" in your teams.'
        repos["tasks"].create.assert_not_called()

    @pytest.mark.asyncio
    async def test_assignee_not_on_team(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("CREATE_TASK", {"teamName": "Fixspire", "assignedTo": "Mina", "title": "x"})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        assert '"Mina" is not a member of the Fixspire team.' == reply.response
        repos["tasks"].create.assert_not_called()

    @pytest.mark.asyncio
    async def test_manager_sees_owner_teams(self, router, repos, request_for, manager, mock_log_ai_action):
        result = _classified("CREATE_TASK", {"teamName": "Orbit", "assignedTo": "Tom", "title": "x"})

        await router.execute(result, request_for(user=manager))

        repos["teams"].list_for_leaders.assert_awaited_once_with([2, 1])
        assert repos["tasks"].create.call_args.args[0]["created_by"] == 2


class TestBulkTasks:

    @pytest.mark.asyncio
    async def test_update_by_status_scoped_to_caller_teams(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("UPDATE_TASKS", {"find": {"status": "pending"}, "updates": {"status": "done"}})

        reply = await router.execute(result, request_for())

        conditions, values = repos["tasks"].update_matching.call_args.args
        assert "team_id" in str(conditions[0])
        assert values == {"status": "Completed"}
        assert reply.response == "Updated 2 tasks."

    @pytest.mark.asyncio
    async def test_empty_find_rejected(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("UPDATE_TASKS", {"find": {}, "updates": {"status": "Completed"}})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        repos["teams"].list_for_leaders.assert_not_called()
        repos["tasks"].update_matching.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_updates_rejected(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("UPDATE_TASKS", {"find": {"assignedTo": "Asha"}})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        repos["tasks"].update_matching.assert_not_called()

    @pytest.mark.asyncio
    async def test_reassign_requires_team(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("UPDATE_TASKS", {"find": {"assignedTo": "Asha"}, "updates": {"assignedTo": "Lee"}})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        repos["tasks"].update_matching.assert_not_called()

    @pytest.mark.asyncio
    async def test_reassign_validates_new_assignee(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("UPDATE_TASKS", {
            "find": {"teamName": "Fixspire", "assignedTo": "Asha"},
            "updates": {"assignedTo": "Tom"},
        })

        reply = await router.execute(result, request_for())

        assert reply.response == '"Tom" is not a member of the Fixspire team.'

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("UPDATE_TASKS", {"find": {"assignedTo": "Asha"}, "updates": {"status": "archived"}})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        assert "archived" in reply.response

    @pytest.mark.asyncio
    async def test_zero_matches_is_no_op(self, router, repos, request_for, mock_log_ai_action):
        repos["tasks"].update_matching.return_value = 0
        result = _classified("UPDATE_TASKS", {"find": {"title": "nothing"}, "updates": {"status": "Completed"}})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.NO_OP
        assert "0 tasks were updated" in reply.response

    @pytest.mark.asyncio
    async def test_delete_completed_in_team(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("DELETE_TASKS", {"find": {"teamName": "Orbit", "status": "Completed"}})

        reply = await router.execute(result, request_for())

        repos["tasks"].delete_matching.assert_awaited_once()
        assert reply.response == "Deleted 3 tasks."
        mock_log_ai_action.assert_called_once_with(1, AiActionType.DELETE_TASKS)

    @pytest.mark.asyncio
    async def test_delete_without_find_rejected(self, router, repos, request_for, mock_log_ai_action):
        reply = await router.execute(_classified("DELETE_TASKS", {}), request_for())

        assert reply.outcome == Outcome.REJECTED
        repos["tasks"].delete_matching.assert_not_called()


# ==================== MEETINGS ====================

class TestMeetings:

    @pytest.mark.asyncio
    async def test_schedule_defaults_participants_and_uses_placeholder(
        self, router, repos, request_for, mock_log_ai_action
    ):
        result = _classified("SCHEDULE_MEETING", {
            "teamName": "Orbit", "title": "Sync", "meetingTime": "2025-11-16T08:00:00Z",
        })

        reply = await router.execute(result, request_for(timezone_name="Asia/Bangkok"))

        data = repos["meetings"].create.call_args.args[0]
        assert data["participants"] == ["Mina", "Tom"]
        assert data["meeting_link"] == "Link will be shared soon"
        assert data["calendar_event_id"] is None
        assert "2025-11-16 15:00 (Asia/Bangkok)" in reply.response

    @pytest.mark.asyncio
    async def test_schedule_with_meet_link(self, router, repos, request_for, mock_log_ai_action):
        repos["meet"].schedule_meeting.return_value = {
            "meet_link": "https://meet.google.com/abc-defg-hij", "event_id": "evt1", "event_link": "x",
        }
        result = _classified("SCHEDULE_MEETING", {
            "teamName": "Fixspire", "title": "Retro", "meetingTime": "2025-11-16T08:00:00Z",
            "participants": ["asha", "Lee"],
        })

        await router.execute(result, request_for())

        data = repos["meetings"].create.call_args.args[0]
        assert data["meeting_link"] == "https://meet.google.com/abc-defg-hij"
        assert data["calendar_event_id"] == "evt1"
        assert data["participants"] == ["Asha", "Lee"]

    @pytest.mark.asyncio
    async def test_schedule_link_failure_still_creates(self, router, repos, request_for, mock_log_ai_action):
        repos["meet"].schedule_meeting.side_effect = RuntimeError("calendar down")
        result = _classified("SCHEDULE_MEETING", {
            "teamName": "Orbit", "title": "Sync", "meetingTime": "2025-11-16T08:00:00Z",
        })

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.SUCCESS
        assert repos["meetings"].create.call_args.args[0]["meeting_link"] == "Link will be shared soon"

    @pytest.mark.asyncio
    async def test_schedule_invalid_participant(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("SCHEDULE_MEETING", {
            "teamName": "Orbit", "title": "Sync", "meetingTime": "2025-11-16T08:00:00Z",
            "participants": ["Mina", "Zed", "Quinn"],
        })

        reply = await router.execute(result, request_for())

        assert reply.response == '"Zed" and "Quinn" are not a member of the Orbit team.'
        repos["meetings"].create.assert_not_called()

    @pytest.mark.asyncio
    async def test_schedule_unparsable_time(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("SCHEDULE_MEETING", {"teamName": "Orbit", "title": "Sync", "meetingTime": "soon"})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        repos["meet"].schedule_meeting.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_meeting_moves_time_and_calendar(self, router, repos, request_for, mock_log_ai_action):
        existing = MeetingDB(
            id=7, team_id=10, title="Standup", meeting_time=datetime(2025, 11, 17, 9, tzinfo=timezone.utc),
            calendar_event_id="evt1", participants=["Asha"],
        )
        repos["meetings"].find_by_title.return_value = [existing]
        repos["meetings"].update.return_value = MeetingDB(
            id=7, team_id=10, title="Standup", meeting_time=datetime(2025, 11, 17, 10, tzinfo=timezone.utc),
        )
        result = _classified("UPDATE_MEETING", {
            "find": {"title": "standup"}, "updates": {"meetingTime": "2025-11-17T10:00:00Z"},
        })

        reply = await router.execute(result, request_for())

        repos["meetings"].find_by_title.assert_awaited_once_with([10, 11], "standup", None)
        meeting_id, values = repos["meetings"].update.call_args.args
        assert meeting_id == 7
        assert values == {"meeting_time": datetime(2025, 11, 17, 10, tzinfo=timezone.utc)}
        repos["meet"].update_meeting.assert_awaited_once()
        assert reply.outcome == Outcome.SUCCESS

    @pytest.mark.asyncio
    async def test_update_meeting_not_found(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("UPDATE_MEETING", {"find": {"title": "Retro"}, "updates": {"title": "Retro 2"}})

        reply = await router.execute(result, request_for())

        assert reply.response == 'I couldn\'t find a meeting matching "Retro".'
        repos["meetings"].update.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_meeting_reports_ambiguity(self, router, repos, request_for, mock_log_ai_action):
        repos["meetings"].find_by_title.return_value = [
            MeetingDB(id=7, team_id=10, title="Sync"),
            MeetingDB(id=8, team_id=11, title="Sync"),
        ]

        reply = await router.execute(_classified("DELETE_MEETING", {"find": {"title": "Sync"}}), request_for())

        repos["meetings"].delete.assert_awaited_once_with(7)
        repos["meet"].delete_meeting.assert_not_called()
        assert "2 meetings matched" in reply.response

    @pytest.mark.asyncio
    async def test_schedule_keeps_event_id_without_link(self, router, repos, request_for, mock_log_ai_action):
        repos["meet"].schedule_meeting.return_value = {"meet_link": None, "event_id": "evt9"}
        result = _classified("SCHEDULE_MEETING", {
            "teamName": "Orbit", "title": "Sync", "meetingTime": "2025-11-16T08:00:00Z",
        })

        await router.execute(result, request_for())

        data = repos["meetings"].create.call_args.args[0]
        assert data["meeting_link"] == "Link will be shared soon"
        assert data["calendar_event_id"] == "evt9"

    @pytest.mark.asyncio
    async def test_update_meeting_participants_use_meeting_team(self, router, repos, request_for, mock_log_ai_action):
        existing = MeetingDB(id=7, team_id=11, title="Sync", participants=["Mina"])
        repos["meetings"].find_by_title.return_value = [existing]
        repos["meetings"].update.return_value = MeetingDB(
            id=7, team_id=11, title="Sync", meeting_time=datetime(2025, 11, 17, 9, tzinfo=timezone.utc),
        )
        result = _classified("UPDATE_MEETING", {
            "find": {"title": "sync"}, "updates": {"participants": ["mina", "TOM"]},
        })

        reply = await router.execute(result, request_for())

        meeting_id, values = repos["meetings"].update.call_args.args
        assert meeting_id == 7
        assert values == {"participants": ["Mina", "Tom"]}
        assert reply.outcome == Outcome.SUCCESS

    @pytest.mark.asyncio
    async def test_update_meeting_rejects_member_of_other_team(self, router, repos, request_for, mock_log_ai_action):
        # Asha is on Fixspire, the meeting belongs to Orbit
        repos["meetings"].find_by_title.return_value = [MeetingDB(id=7, team_id=11, title="Sync")]
        result = _classified("UPDATE_MEETING", {
            "find": {"title": "sync"}, "updates": {"participants": ["Mina", "Asha"]},
        })

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        assert reply.response == '"Asha" is not a member of the Orbit team.'
        repos["meetings"].update.assert_not_called()
        repos["meet"].update_meeting.assert_not_called()
        mock_log_ai_action.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_meeting_narrowed_by_team(self, router, repos, request_for, mock_log_ai_action):
        repos["meetings"].find_by_title.return_value = [MeetingDB(id=8, team_id=11, title="Sync")]
        result = _classified("DELETE_MEETING", {"find": {"title": "Sync", "teamName": "orbit"}})

        reply = await router.execute(result, request_for())

        repos["meetings"].find_by_title.assert_awaited_once_with([11], "Sync", None)
        repos["meetings"].delete.assert_awaited_once_with(8)
        assert reply.response == 'Deleted the meeting "Sync".'

    @pytest.mark.asyncio
    async def test_delete_meeting_narrowed_by_team_and_time(self, router, repos, request_for, mock_log_ai_action):
        repos["meetings"].find_by_title.return_value = [
            MeetingDB(id=8, team_id=10, title="Sync", calendar_event_id="evt8"),
        ]
        result = _classified("DELETE_MEETING", {
            "find": {"title": "Sync", "teamName": "Fixspire", "meetingTime": "2025-11-17T16:00:00+07:00"},
        })

        await router.execute(result, request_for())

        repos["meetings"].find_by_title.assert_awaited_once_with(
            [10], "Sync", datetime(2025, 11, 17, 9, tzinfo=timezone.utc)
        )
        repos["meet"].delete_meeting.assert_awaited_once_with("evt8")

    @pytest.mark.asyncio
    async def test_delete_meeting_unknown_team(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("DELETE_MEETING", {"find": {"title": "Sync", "teamName": "Nebula"}})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        repos["meetings"].find_by_title.assert_not_called()
        repos["meetings"].delete.assert_not_called()


# ==================== NOTES ====================

class TestNotes:

    @pytest.mark.asyncio
    async def test_add_note(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("ADD_NOTE", {"title": "Hiring", "content": "Designer in Q1"})

        reply = await router.execute(result, request_for())

        data = repos["notes"].create.call_args.args[0]
        assert data["user_id"] == 1
        assert reply.response == 'Saved your note "Hiring".'

    @pytest.mark.asyncio
    async def test_delete_note_not_found(self, router, repos, request_for, mock_log_ai_action):
        reply = await router.execute(_classified("DELETE_NOTE", {"find": {"title": "Old Ideas"}}), request_for())

        assert reply.response == 'I couldn\'t find a note matching "Old Ideas".'
        repos["notes"].delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_note(self, router, repos, request_for, mock_log_ai_action):
        repos["notes"].find_by_title.return_value = [NoteDB(id=5, user_id=1, title="Old Ideas")]
        result = _classified("UPDATE_NOTE", {"find": {"title": "old ideas"}, "updates": {"title": "Archive"}})

        await router.execute(result, request_for())

        repos["notes"].find_by_title.assert_awaited_once_with(1, "old ideas")
        repos["notes"].update.assert_awaited_once_with(5, {"title": "Archive"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["UPDATE_NOTE", "DELETE_NOTE"])
    async def test_missing_title_rejected(self, router, repos, request_for, mock_log_ai_action, action):
        payload = {"find": {}, "updates": {"title": "Archive"}} if action == "UPDATE_NOTE" else {}

        reply = await router.execute(_classified(action, payload), request_for())

        assert reply.outcome == Outcome.REJECTED
        assert "Tell me its title" in reply.response
        repos["notes"].find_by_title.assert_not_called()
        repos["notes"].update.assert_not_called()
        repos["notes"].delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_note_empty_updates_rejected(self, router, repos, request_for, mock_log_ai_action):
        repos["notes"].find_by_title.return_value = [NoteDB(id=5, user_id=1, title="Old Ideas")]
        result = _classified("UPDATE_NOTE", {"find": {"title": "old ideas"}, "updates": {}})

        reply = await router.execute(result, request_for())

        assert reply.response == "What should I change in that note?"
        repos["notes"].update.assert_not_called()
        mock_log_ai_action.assert_not_called()


# ==================== ATTENDANCE ====================

class TestSetAttendance:

    @pytest.mark.asyncio
    async def test_whole_team(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("SET_ATTENDANCE", {"status": "present", "teamName": "Fixspire"})

        reply = await router.execute(result, request_for())

        repos["attendance"].upsert_many.assert_awaited_once_with(
            1, ["Asha", "Ravi Kumar", "Lee"], date(2025, 11, 15), "Present"
        )
        assert reply.response == "Marked 3 members as Present for 2025-11-15: Asha, Ravi Kumar and Lee."

    @pytest.mark.asyncio
    async def test_named_members_across_teams(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("SET_ATTENDANCE", {"status": "Leave", "members": ["tom", "Asha", "Tom"]})

        await router.execute(result, request_for())

        _, members, _, status = repos["attendance"].upsert_many.call_args.args
        assert members == ["Tom", "Asha"]
        assert status == "Leave"

    @pytest.mark.asyncio
    async def test_unknown_member(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("SET_ATTENDANCE", {"status": "Absent", "members": ["Ghost"]})

        reply = await router.execute(result, request_for())

        assert reply.response == '"Ghost" is not a member of any of your teams.'
        repos["attendance"].upsert_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_status(self, router, repos, request_for, mock_log_ai_action):
        result = _classified("SET_ATTENDANCE", {"status": "Sick", "teamName": "Orbit"})

        reply = await router.execute(result, request_for())

        assert reply.outcome == Outcome.REJECTED
        repos["teams"].list_for_leaders.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_target(self, router, repos, request_for, mock_log_ai_action):
        reply = await router.execute(_classified("SET_ATTENDANCE", {"status": "Present"}), request_for())

        assert reply.outcome == Outcome.REJECTED
        repos["attendance"].upsert_many.assert_not_called()
