"""LLM provider layer used to drive the assistant's chat session.

A small set of provider-neutral data structures plus concrete providers for
Anthropic and OpenAI (or any OpenAI-compatible endpoint), selected by name
through :class:`LLMRouter`.
"""

from node_wallet_ai.llm.base import (
    BaseLLMProvider,
    LLMMessage,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)
from node_wallet_ai.llm.router import LLMRouter

__all__ = [
    "BaseLLMProvider",
    "LLMMessage",
    "LLMResponse",
    "LLMRouter",
    "ToolCall",
    "ToolDefinition",
]
