from .api_validation import (
    ChatRequest,
    HistoryTurn,
    EmailDraftRequest,
    EmailDraftResponse,
    TeamReportRequest,
    TaskEstimateRequest,
    SubtaskRequest,
    InsightResponse,
)

__all__ = [
    "ChatRequest",
    "HistoryTurn",
    "EmailDraftRequest",
    "EmailDraftResponse",
    "TeamReportRequest",
    "TaskEstimateRequest",
    "SubtaskRequest",
    "InsightResponse",
]
