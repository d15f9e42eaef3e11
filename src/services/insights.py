"""
Proactive insight generation.

Insights are regenerated inline by the read endpoint when the newest one
is older than the staleness window. Regeneration replaces every unread
insight and keeps read ones as history. Any failure while regenerating
degrades to "no new insights" and never fails the read.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional, List, Dict

from config import settings
from ..ai.deepseek import DeepSeekClient, get_deepseek_client
from ..database.models import UserDB, InsightDB, InsightTypeEnum, AiActionType
from ..database.repositories import InsightRepository, get_insight_repository
from ..utils.audit_logger import log_ai_action
from ..utils.datetime_utils import ensure_utc
from .context import ContextAggregator, get_context_aggregator

logger = logging.getLogger(__name__)

_INSIGHT_TYPES = {t.value.lower(): t.value for t in InsightTypeEnum}


def coerce_insights(raw: Any, limit: int) -> List[Dict[str, str]]:
    """
    Turn model output into at most `limit` clean insight dicts.

    Accepts {"insights": [...]} or a bare list. Unknown types become
    "Insight"; items without a title or message are dropped.
    """
    if isinstance(raw, dict):
        raw = raw.get("insights")
    if not isinstance(raw, list):
        return []

    insights = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        message = item.get("message")
        if not isinstance(title, str) or not isinstance(message, str):
            continue
        title, message = title.strip(), message.strip()
        if not title or not message:
            continue
        kind = item.get("type")
        insight_type = _INSIGHT_TYPES.get(kind.strip().lower(), InsightTypeEnum.INSIGHT.value) \
            if isinstance(kind, str) else InsightTypeEnum.INSIGHT.value
        insights.append({"type": insight_type, "title": title[:255], "message": message})
        if len(insights) >= limit:
            break
    return insights


class InsightService:
    """Reads insights, regenerating them when stale."""

    def __init__(
        self,
        repository: Optional[InsightRepository] = None,
        aggregator: Optional[ContextAggregator] = None,
        client: Optional[DeepSeekClient] = None,
    ):
        self.repository = repository or get_insight_repository()
        self.aggregator = aggregator or get_context_aggregator()
        self.client = client or get_deepseek_client()

    @staticmethod
    def is_stale(latest: Optional[InsightDB], now: datetime) -> bool:
        """No insight yet, or the newest is older than the staleness window."""
        if latest is None or latest.created_at is None:
            return True
        window = timedelta(minutes=settings.insight_staleness_minutes)
        return ensure_utc(latest.created_at) < ensure_utc(now) - window

    async def get_insights(self, user: UserDB, now: datetime) -> List[InsightDB]:
        """Return the user's unread insights, regenerating first if stale."""
        latest = await self.repository.get_latest(user.id)
        if self.is_stale(latest, now):
            await self.regenerate(user, now)
        return await self.repository.list_unread(user.id)

    async def regenerate(self, user: UserDB, now: datetime) -> int:
        """
        Replace the user's unread insights with a fresh set.

        Returns the number of insights stored. Errors are logged only:
        writing them to the system log could loop back into this path.
        """
        try:
            context = await self.aggregator.gather(user, "UTC", now)
            raw = await self.client.generate_insights(context.text, settings.max_insights)
            items = coerce_insights(raw, settings.max_insights)

            await self.repository.replace_unread(user.id, items)
            if items:
                log_ai_action(user.id, AiActionType.PROACTIVE_INSIGHT)

            logger.info(f"Generated {len(items)} new insights for user {user.id}")
            return len(items)

        except Exception as e:
            logger.error(f"Failed to generate insights for user {user.id}: {e}", exc_info=True)
            return 0

    async def mark_read(self, insight_id: int, user: UserDB) -> Optional[InsightDB]:
        """Mark one of the user's insights read; None when not found or not theirs."""
        return await self.repository.mark_read(insight_id, user.id)


# Singleton
_insight_service: Optional[InsightService] = None


def get_insight_service() -> InsightService:
    """Get the insight service singleton."""
    global _insight_service
    if _insight_service is None:
        _insight_service = InsightService()
    return _insight_service
