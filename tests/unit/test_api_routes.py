"""
Tests for the /api routes and app-level endpoints.

Services are swapped out through FastAPI dependency overrides so no
database or LLM is touched.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient

from src.main import app
from src.ai.intent import ChatAction
from src.database.exceptions import EntityNotFoundError
from src.database.models import InsightDB, LogLevelEnum
from src.database.repositories import get_user_repository
from src.services.action_router import ChatReply, Outcome
from src.services.ai_features import get_assistant_features
from src.services.chat import get_chat_service
from src.services.exceptions import InvalidAIResponseError
from src.services.insights import get_insight_service
from src.web.dependencies import get_current_user, get_now


@pytest.fixture
def chat_service():
    service = MagicMock()
    service.ask = AsyncMock(return_value=ChatReply(
        response="Updated 2 tasks.", action=ChatAction.UPDATE_TASKS, outcome=Outcome.SUCCESS,
    ))
    return service


@pytest.fixture
def insight_service():
    service = MagicMock()
    service.get_insights = AsyncMock(return_value=[])
    service.mark_read = AsyncMock(return_value=None)
    return service


@pytest.fixture
def features():
    service = MagicMock()
    service.draft_email = AsyncMock(return_value={"subject": "Hi", "body": "Body"})
    service.team_report = AsyncMock(return_value="Report text")
    service.estimate_task = AsyncMock(return_value={"estimatedHours": 3, "confidence": "medium", "reasoning": "r"})
    service.generate_subtasks = AsyncMock(return_value=[{"title": "A", "description": ""}])
    return service


@pytest.fixture
def mock_system_log():
    with patch("src.web.routes.log_system_error") as mock_log:
        yield mock_log


@pytest.fixture
def client(leader, fixed_now, chat_service, insight_service, features):
    """Test client with every service dependency overridden."""
    app.dependency_overrides[get_current_user] = lambda: leader
    app.dependency_overrides[get_now] = lambda: fixed_now
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_insight_service] = lambda: insight_service
    app.dependency_overrides[get_assistant_features] = lambda: features
    yield TestClient(app)
    app.dependency_overrides.clear()


# ==================== AUTH ====================

class TestAuth:

    def test_missing_header(self):
        response = TestClient(app).post("/api/chat/ask", json={"question": "hi"})

        assert response.status_code == 401

    def test_unknown_user(self):
        users = MagicMock()
        users.get_by_id = AsyncMock(return_value=None)
        app.dependency_overrides[get_user_repository] = lambda: users
        try:
            response = TestClient(app).post(
                "/api/chat/ask", json={"question": "hi"}, headers={"X-User-Id": "404"},
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401
        users.get_by_id.assert_awaited_once_with(404)


# ==================== CHAT ====================

class TestChat:

    def test_ask(self, client, chat_service, leader, fixed_now):
        response = client.post("/api/chat/ask", json={
            "question": "  mark Ravi's tasks done ",
            "history": [{"role": "user", "content": "hello"}],
            "timezone": "Asia/Bangkok",
        })

        assert response.status_code == 200
        assert response.json() == {"response": "Updated 2 tasks."}
        kwargs = chat_service.ask.call_args.kwargs
        assert kwargs["user"] is leader
        assert kwargs["question"] == "mark Ravi's tasks done"
        assert kwargs["history"] == [{"role": "user", "content": "hello"}]
        assert kwargs["timezone_name"] == "Asia/Bangkok"
        assert kwargs["now"] == fixed_now

    def test_blank_question(self, client):
        response = client.post("/api/chat/ask", json={"question": "   "})
        assert response.status_code == 422

    def test_invalid_ai_response(self, client, chat_service, mock_system_log):
        chat_service.ask.side_effect = InvalidAIResponseError("not json")

        response = client.post("/api/chat/ask", json={"question": "hi"})

        assert response.status_code == 500
        assert response.json() == {"message": "AI returned an invalid response. Please try again."}
        assert mock_system_log.call_args.args[3] == LogLevelEnum.WARN

    def test_infrastructure_error(self, client, chat_service, mock_system_log):
        chat_service.ask.side_effect = RuntimeError("db down")

        response = client.post("/api/chat/ask", json={"question": "hi"})

        assert response.status_code == 500
        assert response.json() == {"message": "Error processing your request"}
        user_id, error, route = mock_system_log.call_args.args
        assert user_id == 1
        assert route == "/api/chat/ask"


# ==================== INSIGHTS ====================

class TestInsights:

    def test_list(self, client, insight_service):
        insight_service.get_insights.return_value = [
            InsightDB(
                id=3, user_id=1, type="Warning", title="Overdue", message="3 overdue", is_read=False,
                created_at=datetime(2025, 11, 15, 9, tzinfo=timezone.utc),
            ),
        ]

        response = client.get("/api/insights")

        assert response.status_code == 200
        body = response.json()
        assert body[0]["isRead"] is False
        assert body[0]["createdAt"].startswith("2025-11-15T09:00:00")
        assert body[0]["type"] == "Warning"

    def test_list_failure_is_not_system_logged(self, client, insight_service, mock_system_log):
        insight_service.get_insights.side_effect = RuntimeError("db down")

        response = client.get("/api/insights")

        assert response.status_code == 500
        mock_system_log.assert_not_called()

    def test_mark_read_not_found(self, client):
        response = client.put("/api/insights/42/read")

        assert response.status_code == 404
        assert response.json() == {"message": "Insight not found"}

    def test_mark_read(self, client, insight_service, leader):
        insight_service.mark_read.return_value = InsightDB(
            id=42, user_id=1, type="Insight", title="T", message="M", is_read=True, created_at=None,
        )

        response = client.put("/api/insights/42/read")

        assert response.status_code == 200
        assert response.json()["isRead"] is True
        insight_service.mark_read.assert_awaited_once_with(42, leader)


# ==================== OTHER AI FEATURES ====================

class TestFeatures:

    def test_email_draft(self, client, features):
        response = client.post("/api/emails/draft", json={"userPrompt": "Remind about Friday", "memberNames": ["Asha"]})

        assert response.status_code == 200
        assert response.json() == {"subject": "Hi", "body": "Body"}
        assert features.draft_email.call_args.kwargs["member_names"] == ["Asha"]

    def test_team_report(self, client, features):
        response = client.post("/api/teams/10/report", json={"startDate": "2025-11-01", "endDate": "2025-11-30"})

        assert response.status_code == 200
        assert response.json() == {"report": "Report text"}

    def test_team_report_bad_range(self, client):
        response = client.post("/api/teams/10/report", json={"startDate": "2025-11-30", "endDate": "2025-11-01"})
        assert response.status_code == 422

    def test_team_report_not_found(self, client, features):
        features.team_report.side_effect = EntityNotFoundError("Team", 10)

        response = client.post("/api/teams/10/report", json={"startDate": "2025-11-01", "endDate": "2025-11-30"})

        assert response.status_code == 404
        assert response.json() == {"message": "Team not found"}

    def test_estimate(self, client, features):
        response = client.post("/api/tasks/estimate", json={"title": "Checkout", "teamName": "Fixspire"})

        assert response.status_code == 200
        assert response.json()["estimatedHours"] == 3
        features.estimate_task.assert_awaited_once()

    def test_subtasks(self, client):
        response = client.post("/api/tasks/subtasks", json={"title": "Launch"})

        assert response.status_code == 200
        assert response.json() == {"subtasks": [{"title": "A", "description": ""}]}


# ==================== APP ====================

class TestHealthAndInfo:

    def test_root_endpoint(self):
        response = TestClient(app).get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_endpoint(self):
        with patch("src.main.get_database") as mock_db:
            mock_db.return_value.health_check = AsyncMock(return_value={"status": "healthy"})

            response = TestClient(app).get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == {"status": "healthy"}
        assert set(body["integrations"]) == {"deepseek", "google_meet"}

    def test_health_endpoint_degraded_when_database_down(self):
        with patch("src.main.get_database") as mock_db:
            mock_db.return_value.health_check = AsyncMock(
                return_value={"status": "unhealthy", "error": "refused"}
            )

            response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
