"""AI session layer: typed events, channels and the dispatch loop."""

from node_wallet_ai.session.channel import SessionChannel, SessionSetup
from node_wallet_ai.session.events import (
    FunctionCall,
    FunctionResponse,
    SessionClosed,
    SetupComplete,
    ToolCallEvent,
    ToolResponse,
    TurnComplete,
)
from node_wallet_ai.session.llm_channel import LLMSessionChannel
from node_wallet_ai.session.session import AISession

__all__ = [
    "AISession",
    "FunctionCall",
    "FunctionResponse",
    "LLMSessionChannel",
    "SessionChannel",
    "SessionClosed",
    "SessionSetup",
    "SetupComplete",
    "ToolCallEvent",
    "ToolResponse",
    "TurnComplete",
]
