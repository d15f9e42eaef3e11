"""
Unit tests for fire-and-forget audit logging.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.utils.audit_logger import log_ai_action, log_system_error, AiActionType, LogLevelEnum
from src.utils.background_tasks import drain_background_tasks


@pytest.fixture
def audit_repo():
    repo = MagicMock()
    repo.log_ai_action = AsyncMock()
    repo.log_system_error = AsyncMock()
    with patch("src.database.repositories.get_audit_repository", return_value=repo):
        yield repo


class TestLogAiAction:

    @pytest.mark.asyncio
    async def test_writes_action_type(self, audit_repo):
        task = log_ai_action(7, AiActionType.SET_ATTENDANCE)
        await task

        audit_repo.log_ai_action.assert_awaited_once_with(7, "AI_SET_ATTENDANCE")

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, audit_repo):
        audit_repo.log_ai_action.side_effect = RuntimeError("db down")

        task = log_ai_action(7, AiActionType.CREATE_TASK)

        # Completes without raising
        assert await task is None

    def test_no_event_loop(self):
        assert log_ai_action(7, AiActionType.CREATE_TASK) is None


class TestLogSystemError:

    @pytest.mark.asyncio
    async def test_writes_message_route_and_stack(self, audit_repo):
        try:
            raise ValueError("bad payload")
        except ValueError as e:
            error = e

        await log_system_error(3, error, "/api/chat/ask", LogLevelEnum.WARN)

        kwargs = audit_repo.log_system_error.call_args.kwargs
        assert kwargs["message"] == "bad payload"
        assert kwargs["user_id"] == 3
        assert kwargs["route"] == "/api/chat/ask"
        assert kwargs["level"] == "WARN"
        assert "ValueError" in kwargs["stack"]

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending_writes(self, audit_repo):
        async def slow_write(*args, **kwargs):
            await asyncio.sleep(0.01)

        audit_repo.log_system_error.side_effect = slow_write

        log_system_error(None, RuntimeError(), "N/A")
        await drain_background_tasks()

        kwargs = audit_repo.log_system_error.call_args.kwargs
        assert kwargs["message"] == "RuntimeError"
        assert kwargs["user_id"] is None
