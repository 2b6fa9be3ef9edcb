"""Pattern-based command parser.

``parse`` runs an ordered battery of matchers over the user's text. Each
matcher either declines (``None``) or proposes a command with a confidence;
the first proposal that clears its matcher's threshold wins. Patterns are
matched case-insensitively against the trimmed input so captured names keep
the user's casing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from node_wallet_ai.interpreter.commands import (
    AICommand,
    CreateNode,
    EditNode,
    GetBalance,
    SendTransaction,
    Unknown,
    ViewNode,
)
from node_wallet_ai.nodes.store import resolve_by_name
from node_wallet_ai.storage.models import AnyNode, NodeKind

MAX_SUGGESTIONS = 8

_VERB = r"\b(?:create|add|new|make)\b"

_CREATION_PATTERNS: list[tuple[NodeKind, re.Pattern]] = [
    (NodeKind.PERSON, re.compile(rf"{_VERB}.*(?:person|contact).*named?\s+(.+)", re.I)),
    (NodeKind.EVENT, re.compile(rf"{_VERB}.*event.*(?:called?|named?)\s+(.+)", re.I)),
    (NodeKind.COMMUNITY, re.compile(rf"{_VERB}.*community.*(?:called?|named?)\s+(.+)", re.I)),
]

# Keyword fallbacks score below the creation threshold, so on their own
# they never produce a command.
_CREATION_KEYWORDS: list[tuple[NodeKind, tuple[str, ...]]] = [
    (NodeKind.PERSON, ("person", "contact", "friend")),
    (NodeKind.EVENT, ("event", "meeting", "appointment")),
    (NodeKind.COMMUNITY, ("community", "group", "dao")),
]

_EDIT_PATTERN = re.compile(
    r"(?:edit|update|modify|change).*(person|event|community).*named?\s+(.+)", re.I
)

_SEND_PATTERN = re.compile(r"(?:send|transfer)\s+(\d+(?:\.\d+)?)\s+sol\s+to\s+(.+)", re.I)
_PAY_PATTERN = re.compile(r"pay\s+(.+)\s+(\d+(?:\.\d+)?)\s+sol", re.I)

_BALANCE_PATTERNS = [
    re.compile(r"(?:check|show|get|what.?s)\s+(?:my\s+)?balance", re.I),
    re.compile(r"how\s+much\s+(?:sol|money)\s+do\s+i\s+have", re.I),
    re.compile(r"balance", re.I),
]

_VIEW_PATTERNS = [
    re.compile(r"(?:show|view|tell\s+me\s+about)\s+(.+)", re.I),
    re.compile(r"(?:what|who)\s+is\s+(.+)", re.I),
    re.compile(r"(?:details|info|information)\s+(?:about\s+)?(.+)", re.I),
]


def _clean(value: str | None) -> str:
    return (value or "").strip().rstrip(".!?").strip()


# ------------------------------------------------------------------
# Matchers
# ------------------------------------------------------------------

def match_creation(text: str, nodes: Sequence[AnyNode]) -> AICommand | None:
    for kind, pattern in _CREATION_PATTERNS:
        m = pattern.search(text)
        if m and _clean(m.group(1)):
            return CreateNode(node_kind=kind, name=_clean(m.group(1)), confidence=0.9)

    lowered = text.lower()
    if any(verb in lowered for verb in ("create", "add", "new")):
        for kind, keywords in _CREATION_KEYWORDS:
            if any(k in lowered for k in keywords):
                return CreateNode(node_kind=kind, confidence=0.6)
    return None


def match_edit(text: str, nodes: Sequence[AnyNode]) -> AICommand | None:
    m = _EDIT_PATTERN.search(text)
    if not m:
        return None
    name = _clean(m.group(2))
    if not name:
        return None
    node = resolve_by_name(name, nodes, NodeKind(m.group(1).lower()))
    if node is None:
        return None
    return EditNode(node=node, confidence=0.9)


def match_transaction(text: str, nodes: Sequence[AnyNode]) -> AICommand | None:
    m = _SEND_PATTERN.search(text)
    if m:
        amount, recipient = m.group(1), _clean(m.group(2))
    else:
        m = _PAY_PATTERN.search(text)
        if not m:
            return None
        recipient, amount = _clean(m.group(1)), m.group(2)
    if not recipient:
        return None
    return SendTransaction(
        amount=float(amount),
        recipient=recipient,
        recipient_node=resolve_by_name(recipient, nodes, NodeKind.PERSON),
        confidence=0.9,
    )


def match_balance(text: str, nodes: Sequence[AnyNode]) -> AICommand | None:
    if any(p.search(text) for p in _BALANCE_PATTERNS):
        return GetBalance(confidence=0.9)
    return None


def match_view(text: str, nodes: Sequence[AnyNode]) -> AICommand | None:
    for pattern in _VIEW_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        query = _clean(m.group(1))
        if not query:
            continue
        node = resolve_by_name(query, nodes)
        if node is not None:
            return ViewNode(node=node, confidence=0.8)
    return None


@dataclass(frozen=True)
class Matcher:
    name: str
    threshold: float
    func: Callable[[str, Sequence[AnyNode]], AICommand | None]


# Order matters: the first matcher whose proposal clears its threshold wins.
MATCHERS: tuple[Matcher, ...] = (
    Matcher("creation", 0.7, match_creation),
    Matcher("edit", 0.7, match_edit),
    Matcher("transaction", 0.7, match_transaction),
    Matcher("balance", 0.8, match_balance),
    Matcher("view", 0.6, match_view),
)


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

def parse(text: str, known_nodes: Iterable[AnyNode] = ()) -> AICommand:
    """Turn free text into an :data:`AICommand`.

    Deterministic: the same text and the same node list always give the
    same command. Returns :class:`Unknown` with zero confidence when no
    matcher is confident enough.
    """
    stripped = text.strip()
    nodes = list(known_nodes)
    if not stripped:
        return Unknown(text=text)
    for matcher in MATCHERS:
        command = matcher.func(stripped, nodes)
        if command is not None and command.confidence > matcher.threshold:
            return command
    return Unknown(text=stripped)


def is_actionable(command: AICommand) -> bool:
    return command.confidence > 0.7 and not isinstance(command, Unknown)


def format_response(command: AICommand) -> str:
    """Human-readable acknowledgement for local echo. Never used for execution."""
    if isinstance(command, CreateNode):
        if command.name:
            return f'I\'ll help you create a new {command.node_kind.value} named "{command.name}"'
        return f"I'll help you create a new {command.node_kind.value}"
    if isinstance(command, EditNode):
        return f"I'll help you edit {command.node.name}"
    if isinstance(command, ViewNode):
        return f"Here's information about {command.node.name}"
    if isinstance(command, GetBalance):
        return "I'll check your wallet balance"
    if isinstance(command, SendTransaction):
        target = command.recipient_node.name if command.recipient_node else command.recipient
        return f"I'll send {command.amount:g} SOL to {target}"
    return f"I understand you want to: {command.text}"


def generate_suggestions(nodes: Sequence[AnyNode]) -> list[str]:
    """Example commands for the user, personalised with known node names."""
    suggestions = [
        "Create a new person named John",
        "Add an event called Team Meeting",
        "Make a community called Dev Group",
        "Check my balance",
        "Send 0.1 SOL to Alice",
    ]
    suggestions += [f"Tell me about {node.name}" for node in nodes[:3]]
    persons = [n for n in nodes if n.kind == NodeKind.PERSON]
    suggestions += [f"Send 0.1 SOL to {node.name}" for node in persons[:2]]
    return suggestions[:MAX_SUGGESTIONS]
