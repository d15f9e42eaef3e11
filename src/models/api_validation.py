"""
Pydantic models for API endpoint input validation.

Guards the AI endpoints against:
- Empty or whitespace-only prompts
- Oversized inputs (history, prompts) that would blow up LLM cost
- Malformed date ranges
"""

from datetime import date
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.datetime_utils import parse_day


class CamelModel(BaseModel):
    """Accept both camelCase (frontend) and snake_case field names."""
    model_config = ConfigDict(populate_by_name=True)


def _strip_required(v: str, field_name: str) -> str:
    stripped = v.strip()
    if not stripped:
        raise ValueError(f"{field_name} cannot be empty after stripping whitespace")
    return stripped


# ============================================
# CHAT
# ============================================

class HistoryTurn(BaseModel):
    """One prior chat turn supplied by the client."""
    role: str = Field(..., min_length=1, max_length=20)
    content: str = Field(default="", max_length=8000)


class ChatRequest(CamelModel):
    """Input validation for POST /api/chat/ask."""
    history: List[HistoryTurn] = Field(default_factory=list, max_length=50)
    question: str = Field(..., min_length=1, max_length=4000)
    timezone: Optional[str] = Field(None, max_length=64)

    @field_validator("question")
    @classmethod
    def validate_question(cls, v):
        return _strip_required(v, "question")


# ============================================
# EMAIL
# ============================================

class EmailDraftRequest(CamelModel):
    """Input validation for POST /api/emails/draft."""
    user_prompt: str = Field(..., alias="userPrompt", min_length=1, max_length=4000)
    member_names: Optional[List[str]] = Field(None, alias="memberNames", max_length=200)
    timezone: Optional[str] = Field(None, max_length=64)

    @field_validator("user_prompt")
    @classmethod
    def validate_prompt(cls, v):
        return _strip_required(v, "userPrompt")


class EmailDraftResponse(BaseModel):
    subject: str
    body: str


# ============================================
# REPORTS & TASK HELPERS
# ============================================

class TeamReportRequest(CamelModel):
    """Input validation for POST /api/teams/{team_id}/report."""
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        if isinstance(v, str):
            try:
                return parse_day(v)
            except ValueError:
                raise ValueError("must be YYYY-MM-DD or an ISO-8601 timestamp")
        return v

    @model_validator(mode="after")
    def validate_range(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class TaskEstimateRequest(CamelModel):
    """Input validation for POST /api/tasks/estimate."""
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    team_name: Optional[str] = Field(None, alias="teamName", max_length=255)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _strip_required(v, "title")


class SubtaskRequest(CamelModel):
    """Input validation for POST /api/tasks/subtasks."""
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _strip_required(v, "title")


# ============================================
# RESPONSES
# ============================================

class InsightResponse(BaseModel):
    """Serialized insight."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    type: str
    title: str
    message: str
    is_read: bool = Field(..., serialization_alias="isRead")
    created_at: Optional[str] = Field(None, serialization_alias="createdAt")

    @field_validator("created_at", mode="before")
    @classmethod
    def render_created_at(cls, v):
        if v is None or isinstance(v, str):
            return v
        return v.isoformat()
