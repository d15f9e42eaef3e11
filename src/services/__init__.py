"""
Services for the AI assistant.

- context: account snapshot for LLM calls
- filters: security-scoped task queries
- action_router: executes one classified chat action
- chat: aggregate, classify, route
- insights: proactive insights with a staleness window
- ai_features: email drafts, reports, estimates, subtasks
"""

from .exceptions import ActionRejected, TeamNotFoundError, InvalidFilterError, InvalidAIResponseError
from .context import ContextAggregator, AggregatedContext, leader_scope, get_context_aggregator
from .action_router import ActionRouter, ActionRequest, ChatReply, Outcome, get_action_router
from .chat import ChatService, get_chat_service
from .insights import InsightService, get_insight_service
from .ai_features import AssistantFeatures, get_assistant_features

__all__ = [
    "ActionRejected",
    "TeamNotFoundError",
    "InvalidFilterError",
    "InvalidAIResponseError",
    "ContextAggregator",
    "AggregatedContext",
    "leader_scope",
    "get_context_aggregator",
    "ActionRouter",
    "ActionRequest",
    "ChatReply",
    "Outcome",
    "get_action_router",
    "ChatService",
    "get_chat_service",
    "InsightService",
    "get_insight_service",
    "AssistantFeatures",
    "get_assistant_features",
]
