"""DeepSeek AI client for intent routing, answers and assistant features."""

import json
import logging
from typing import Dict, Any, Optional, List
from openai import AsyncOpenAI

from config import settings
from .prompts import PromptTemplates

logger = logging.getLogger(__name__)


def parse_json_response(response: Optional[str]) -> Optional[Any]:
    """
    Parse a JSON-shaped completion.

    Tolerates surrounding whitespace and a ```json fence. Returns None when
    the text is not valid JSON.
    """
    if not response:
        return None
    text = response.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def history_to_messages(history: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """Convert client chat turns into chat-completion messages."""
    messages = []
    for turn in history:
        content = (turn.get("content") or "").strip()
        if not content:
            continue
        role = "user" if turn.get("role") == "user" else "assistant"
        messages.append({"role": role, "content": content})
    return messages


class DeepSeekClient:
    """
    Client for interacting with DeepSeek API.

    Every call is a single attempt: the SDK's own retries are disabled and
    no retry wrapper is applied.
    """

    def __init__(self):
        self.client = AsyncOpenAI(
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        self.model = settings.deepseek_model
        self.prompts = PromptTemplates()

    async def _call_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 2000,
        response_format: Optional[Dict] = None
    ) -> str:
        """Make an API call to DeepSeek."""
        try:
            kwargs = {
                "model": self.model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }

            # DeepSeek supports JSON mode
            if response_format:
                kwargs["response_format"] = response_format

            response = await self.client.chat.completions.create(**kwargs)
            return response.choices[0].message.content or ""

        except Exception as e:
            logger.error(f"DeepSeek API error: {e}")
            raise

    async def classify_intent(
        self,
        question: str,
        history: List[Dict[str, str]],
        context_text: str,
        timezone_name: str,
        today_local: str,
        now_utc_iso: str,
    ) -> str:
        """
        Ask the model to pick one action for the latest message.

        Returns the raw completion; the caller is responsible for parsing.
        """
        system = self.prompts.classify_intent_prompt(
            context_text=context_text,
            timezone_name=timezone_name,
            today_local=today_local,
            now_utc_iso=now_utc_iso,
        )
        messages = [{"role": "system", "content": system}]
        messages.extend(history_to_messages(history))
        messages.append({"role": "user", "content": question})

        return await self._call_api(
            messages=messages,
            temperature=0.1,  # Deterministic routing
            max_tokens=1000,
            response_format={"type": "json_object"}
        )

    async def answer_question(
        self,
        question: str,
        history: List[Dict[str, str]],
        context_text: str,
    ) -> str:
        """Answer a read-only question grounded in the account data."""
        messages = [{"role": "system", "content": self.prompts.answer_prompt(context_text)}]
        messages.extend(history_to_messages(history))
        messages.append({"role": "user", "content": question})

        return await self._call_api(
            messages=messages,
            temperature=0.3,
            max_tokens=1500,
        )

    async def generate_insights(self, context_text: str, max_insights: int) -> Optional[Any]:
        """Generate proactive insights. Returns parsed JSON, or None if unparsable."""
        messages = [
            {"role": "system", "content": self.prompts.SYSTEM_PROMPT},
            {"role": "user", "content": self.prompts.insights_prompt(context_text, max_insights)}
        ]

        response = await self._call_api(
            messages=messages,
            temperature=0.5,
            response_format={"type": "json_object"}
        )

        result = parse_json_response(response)
        if result is None:
            logger.error(f"Failed to parse insights response: {response}")
        return result

    async def generate_email_draft(
        self,
        user_prompt: str,
        context_text: str,
        leader_name: str,
        member_names: Optional[List[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Draft an email. Returns {subject, body}, or None if unparsable."""
        prompt = self.prompts.email_draft_prompt(
            user_prompt=user_prompt,
            context_text=context_text,
            leader_name=leader_name,
            member_names=member_names,
        )
        messages = [
            {"role": "system", "content": "You write clear, professional workplace emails. Respond only with JSON."},
            {"role": "user", "content": prompt}
        ]

        response = await self._call_api(
            messages=messages,
            temperature=0.7,
            response_format={"type": "json_object"}
        )

        result = parse_json_response(response)
        if not isinstance(result, dict):
            logger.error(f"Failed to parse email draft response: {response}")
            return None
        return result

    async def generate_team_report(
        self,
        leader_name: str,
        team_name: str,
        start_date: str,
        end_date: str,
        counts: Dict[str, int],
    ) -> str:
        """Write a three-paragraph narrative report."""
        prompt = self.prompts.team_report_prompt(
            leader_name=leader_name,
            team_name=team_name,
            start_date=start_date,
            end_date=end_date,
            counts=counts,
        )
        messages = [
            {"role": "system", "content": "You are an expert project manager who writes clear status reports."},
            {"role": "user", "content": prompt}
        ]

        return await self._call_api(messages=messages, temperature=0.6)

    async def estimate_task(
        self,
        title: str,
        description: str,
        reference_titles: Optional[List[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Estimate effort. Returns {estimatedHours, confidence, reasoning}, or None."""
        messages = [
            {"role": "system", "content": "You estimate software and business task effort realistically. Respond only with JSON."},
            {"role": "user", "content": self.prompts.estimate_task_prompt(title, description, reference_titles)}
        ]

        response = await self._call_api(
            messages=messages,
            temperature=0.3,
            max_tokens=500,
            response_format={"type": "json_object"}
        )

        result = parse_json_response(response)
        if not isinstance(result, dict):
            logger.error(f"Failed to parse estimate response: {response}")
            return None
        return result

    async def breakdown_task(self, title: str, description: str) -> Dict[str, Any]:
        """
        Break down a task into smaller subtasks using AI.

        Returns a dictionary with a "subtasks" list; the list is empty when
        the response could not be parsed.
        """
        messages = [
            {"role": "system", "content": """You are a project management expert who breaks down complex tasks into smaller, actionable subtasks.
Your breakdowns are practical, realistic, and help teams work more efficiently."""},
            {"role": "user", "content": self.prompts.breakdown_task_prompt(title, description)}
        ]

        response = await self._call_api(
            messages=messages,
            temperature=0.5,
            max_tokens=2000,
            response_format={"type": "json_object"}
        )

        result = parse_json_response(response)
        if not isinstance(result, dict) or not isinstance(result.get("subtasks"), list):
            logger.error(f"Failed to parse breakdown response: {response}")
            return {"subtasks": []}

        logger.info(f"Generated {len(result['subtasks'])} subtasks for task breakdown")
        return result


# Singleton instance
_deepseek_client: Optional[DeepSeekClient] = None


def get_deepseek_client() -> DeepSeekClient:
    """Get the DeepSeek client instance."""
    global _deepseek_client
    if _deepseek_client is None:
        _deepseek_client = DeepSeekClient()
    return _deepseek_client
