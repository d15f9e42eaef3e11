from .deepseek import DeepSeekClient, get_deepseek_client, parse_json_response
from .prompts import PromptTemplates
from .intent import (
    ChatAction,
    ClassifiedAction,
    UnparsableAction,
    IntentClassifier,
    parse_action,
)

__all__ = [
    "DeepSeekClient",
    "get_deepseek_client",
    "parse_json_response",
    "PromptTemplates",
    "ChatAction",
    "ClassifiedAction",
    "UnparsableAction",
    "IntentClassifier",
    "parse_action",
]
