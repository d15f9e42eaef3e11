"""
Chat assistant pipeline: aggregate context, classify, route.

The two LLM calls of a chat turn (classify, then answer for read-only
requests) are strictly sequential.
"""

import logging
from datetime import datetime
from typing import Dict, Optional, List

from ..ai.intent import IntentClassifier
from ..database.models import UserDB
from .action_router import ActionRouter, ActionRequest, ChatReply, get_action_router
from .context import ContextAggregator, get_context_aggregator

logger = logging.getLogger(__name__)


class ChatService:
    """Answers one chat turn."""

    def __init__(
        self,
        aggregator: Optional[ContextAggregator] = None,
        classifier: Optional[IntentClassifier] = None,
        router: Optional[ActionRouter] = None,
    ):
        self.aggregator = aggregator or get_context_aggregator()
        self.classifier = classifier or IntentClassifier()
        self.router = router or get_action_router()

    async def ask(
        self,
        user: UserDB,
        question: str,
        history: List[Dict[str, str]],
        timezone_name: Optional[str],
        now: datetime,
    ) -> ChatReply:
        """
        Run the full pipeline for a question.

        Raises:
            InvalidAIResponseError: the classifier output was unusable
            Exception: database or LLM transport failures propagate as-is
        """
        context = await self.aggregator.gather(user, timezone_name, now)

        result = await self.classifier.classify(
            question=question,
            history=history,
            context_text=context.text,
            timezone_name=timezone_name,
            now=now,
        )

        reply = await self.router.execute(
            result,
            ActionRequest(
                user=user,
                question=question,
                history=history,
                context=context,
                now=now,
                timezone_name=timezone_name,
            ),
        )
        logger.info(f"Chat turn for user {user.id}: {reply.action.value} -> {reply.outcome.value}")
        return reply


# Singleton
_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Get the chat service singleton."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service
