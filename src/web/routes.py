"""
API routes for the AI assistant.

Endpoints:
- POST /api/chat/ask              chat with the assistant (may write data)
- GET  /api/insights              unread insights, regenerated when stale
- PUT  /api/insights/{id}/read    mark one insight read
- POST /api/emails/draft          AI email draft
- POST /api/teams/{id}/report     AI team report
- POST /api/tasks/estimate        AI effort estimate
- POST /api/tasks/subtasks        AI subtask breakdown

Validation rejections from the chat pipeline come back as a normal 200
reply. Only infrastructure failures become a 500, each paired with a
fire-and-forget system log entry.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..database.exceptions import EntityNotFoundError
from ..database.models import UserDB, LogLevelEnum
from ..models.api_validation import (
    ChatRequest,
    EmailDraftRequest,
    TeamReportRequest,
    TaskEstimateRequest,
    SubtaskRequest,
    InsightResponse,
)
from ..services.ai_features import AssistantFeatures, get_assistant_features
from ..services.chat import ChatService, get_chat_service
from ..services.exceptions import InvalidAIResponseError
from ..services.insights import InsightService, get_insight_service
from ..utils.audit_logger import log_system_error
from .dependencies import get_current_user, get_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

GENERIC_ERROR_MESSAGE = "Error processing your request"
INVALID_AI_MESSAGE = "AI returned an invalid response. Please try again."


def _server_error(user: UserDB, request: Request, error: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed for user {user.id}: {error}", exc_info=True)
    log_system_error(user.id, error, request.url.path)
    return JSONResponse(status_code=500, content={"message": GENERIC_ERROR_MESSAGE})


def _invalid_ai_response(user: UserDB, request: Request, error: InvalidAIResponseError) -> JSONResponse:
    logger.warning(f"{request.url.path}: invalid AI response for user {user.id}: {error.reason}")
    log_system_error(user.id, error, request.url.path, LogLevelEnum.WARN)
    return JSONResponse(status_code=500, content={"message": INVALID_AI_MESSAGE})


def _serialize_insight(insight) -> dict:
    return InsightResponse.model_validate(insight).model_dump(by_alias=True)


# ============================================================================
# Chat
# ============================================================================

@router.post("/chat/ask")
async def ask_ai_chatbot(
    body: ChatRequest,
    request: Request,
    user: UserDB = Depends(get_current_user),
    now: datetime = Depends(get_now),
    chat: ChatService = Depends(get_chat_service),
):
    """Ask the assistant a question or tell it to change something."""
    try:
        reply = await chat.ask(
            user=user,
            question=body.question,
            history=[turn.model_dump() for turn in body.history],
            timezone_name=body.timezone,
            now=now,
        )
        return {"response": reply.response}

    except InvalidAIResponseError as e:
        return _invalid_ai_response(user, request, e)
    except Exception as e:
        return _server_error(user, request, e)


# ============================================================================
# Insights
# ============================================================================

@router.get("/insights")
async def get_insights(
    user: UserDB = Depends(get_current_user),
    now: datetime = Depends(get_now),
    insights: InsightService = Depends(get_insight_service),
):
    """Get all unread insights, generating new ones if stale."""
    try:
        unread = await insights.get_insights(user, now)
        return [_serialize_insight(i) for i in unread]
    except Exception as e:
        # Not written to the system log: that write could fail the same way
        logger.error(f"Get insights failed for user {user.id}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"message": GENERIC_ERROR_MESSAGE})


@router.put("/insights/{insight_id}/read")
async def mark_insight_read(
    insight_id: int,
    request: Request,
    user: UserDB = Depends(get_current_user),
    insights: InsightService = Depends(get_insight_service),
):
    """Mark a single insight as read."""
    try:
        insight = await insights.mark_read(insight_id, user)
    except Exception as e:
        return _server_error(user, request, e)

    if insight is None:
        return JSONResponse(status_code=404, content={"message": "Insight not found"})
    return _serialize_insight(insight)


# ============================================================================
# Other AI features
# ============================================================================

@router.post("/emails/draft")
async def draft_email(
    body: EmailDraftRequest,
    request: Request,
    user: UserDB = Depends(get_current_user),
    now: datetime = Depends(get_now),
    features: AssistantFeatures = Depends(get_assistant_features),
):
    """Draft an email with AI; returns {subject, body}."""
    try:
        return await features.draft_email(
            user=user,
            user_prompt=body.user_prompt,
            member_names=body.member_names,
            timezone_name=body.timezone,
            now=now,
        )
    except InvalidAIResponseError as e:
        return _invalid_ai_response(user, request, e)
    except Exception as e:
        return _server_error(user, request, e)


@router.post("/teams/{team_id}/report")
async def generate_team_report(
    team_id: int,
    body: TeamReportRequest,
    request: Request,
    user: UserDB = Depends(get_current_user),
    now: datetime = Depends(get_now),
    features: AssistantFeatures = Depends(get_assistant_features),
):
    """Generate a narrative report for one of the caller's teams."""
    try:
        report = await features.team_report(user, team_id, body.start_date, body.end_date, now)
        return {"report": report}
    except EntityNotFoundError:
        return JSONResponse(status_code=404, content={"message": "Team not found"})
    except InvalidAIResponseError as e:
        return _invalid_ai_response(user, request, e)
    except Exception as e:
        return _server_error(user, request, e)


@router.post("/tasks/estimate")
async def estimate_task(
    body: TaskEstimateRequest,
    request: Request,
    user: UserDB = Depends(get_current_user),
    features: AssistantFeatures = Depends(get_assistant_features),
):
    """Estimate effort for a task description."""
    try:
        return await features.estimate_task(user, body.title, body.description, body.team_name)
    except InvalidAIResponseError as e:
        return _invalid_ai_response(user, request, e)
    except Exception as e:
        return _server_error(user, request, e)


@router.post("/tasks/subtasks")
async def generate_subtasks(
    body: SubtaskRequest,
    request: Request,
    user: UserDB = Depends(get_current_user),
    features: AssistantFeatures = Depends(get_assistant_features),
):
    """Break a task into subtasks."""
    try:
        subtasks = await features.generate_subtasks(user, body.title, body.description)
        return {"subtasks": subtasks}
    except Exception as e:
        return _server_error(user, request, e)
