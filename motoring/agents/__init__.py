"""AI assistant package."""

from motoring.agents.assistant import (
    AssistantContextBuilder,
    AssistantError,
    ChatAssistant,
    ConversationMessage,
    build_system_prompt,
)

__all__ = [
    "AssistantContextBuilder",
    "AssistantError",
    "ChatAssistant",
    "ConversationMessage",
    "build_system_prompt",
]
