"""Structured intents produced by the command parser.

``AICommand`` is a closed union of frozen dataclasses, one per intent.
Each variant carries its own confidence and only the fields that make sense
for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from node_wallet_ai.storage.models import AnyNode, NodeKind


class CommandType(str, Enum):
    CREATE_NODE = "create_node"
    EDIT_NODE = "edit_node"
    VIEW_NODE = "view_node"
    SEND_TRANSACTION = "send_transaction"
    GET_BALANCE = "get_balance"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CreateNode:
    node_kind: NodeKind
    name: Optional[str] = None
    confidence: float = 0.9
    type: ClassVar[CommandType] = CommandType.CREATE_NODE

    @property
    def parameters(self) -> dict[str, Any]:
        return {"name": self.name} if self.name else {}


@dataclass(frozen=True)
class EditNode:
    node: AnyNode
    confidence: float = 0.9
    type: ClassVar[CommandType] = CommandType.EDIT_NODE


@dataclass(frozen=True)
class ViewNode:
    node: AnyNode
    confidence: float = 0.8
    type: ClassVar[CommandType] = CommandType.VIEW_NODE


@dataclass(frozen=True)
class SendTransaction:
    amount: float
    recipient: str
    recipient_node: Optional[AnyNode] = None
    confidence: float = 0.9
    type: ClassVar[CommandType] = CommandType.SEND_TRANSACTION

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "recipient": self.recipient,
            "recipient_node": self.recipient_node,
        }


@dataclass(frozen=True)
class GetBalance:
    confidence: float = 0.9
    type: ClassVar[CommandType] = CommandType.GET_BALANCE


@dataclass(frozen=True)
class Unknown:
    text: str = ""
    confidence: float = 0.0
    type: ClassVar[CommandType] = CommandType.UNKNOWN


AICommand = Union[CreateNode, EditNode, ViewNode, SendTransaction, GetBalance, Unknown]
