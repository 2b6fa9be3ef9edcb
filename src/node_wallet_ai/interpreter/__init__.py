"""Command interpreter: free text to structured intents."""

from node_wallet_ai.interpreter.commands import (
    AICommand,
    CommandType,
    CreateNode,
    EditNode,
    GetBalance,
    SendTransaction,
    Unknown,
    ViewNode,
)
from node_wallet_ai.interpreter.parser import (
    format_response,
    generate_suggestions,
    is_actionable,
    parse,
)

__all__ = [
    "AICommand",
    "CommandType",
    "CreateNode",
    "EditNode",
    "GetBalance",
    "SendTransaction",
    "Unknown",
    "ViewNode",
    "format_response",
    "generate_suggestions",
    "is_actionable",
    "parse",
]
