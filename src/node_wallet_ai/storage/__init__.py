"""Node Wallet AI storage layer -- async key-value store and Pydantic node models."""

from node_wallet_ai.storage.kv import (
    KeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    get_store,
)
from node_wallet_ai.storage.models import (
    AnyNode,
    CommunityNode,
    CommunityType,
    EventNode,
    EventType,
    Node,
    NodeKind,
    PersonNode,
    Relationship,
)

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    "get_store",
    "AnyNode",
    "CommunityNode",
    "CommunityType",
    "EventNode",
    "EventType",
    "Node",
    "NodeKind",
    "PersonNode",
    "Relationship",
]
