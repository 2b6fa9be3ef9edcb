"""Typed events exchanged with the AI session channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass
class FunctionCall:
    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class SetupComplete:
    pass


@dataclass
class ToolCallEvent:
    function_calls: list[FunctionCall] = field(default_factory=list)


@dataclass
class TurnComplete:
    text: str = ""


@dataclass
class SessionClosed:
    reason: str = ""


SessionEvent = Union[SetupComplete, ToolCallEvent, TurnComplete, SessionClosed]


@dataclass
class FunctionResponse:
    id: str
    name: str
    response: dict[str, Any]


@dataclass
class ToolResponse:
    function_responses: list[FunctionResponse] = field(default_factory=list)


def text_envelope(text: str) -> dict[str, Any]:
    """The uniform tool result shape: ``{"content": [{"type": "text", "text": ...}]}``."""
    return {"content": [{"type": "text", "text": text}]}


def envelope_text(envelope: dict[str, Any]) -> str:
    """Concatenate the text parts of an envelope."""
    return "\n".join(
        part.get("text", "") for part in envelope.get("content", []) if part.get("type") == "text"
    )
