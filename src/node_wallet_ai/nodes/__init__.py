"""Node graph: store, filters and persistence."""

from node_wallet_ai.nodes.persistence import (
    ACCESSIBLE_KEY,
    NODES_KEY,
    GraphSnapshot,
    NodePersistence,
    PersistenceStatus,
)
from node_wallet_ai.nodes.store import (
    GraphChange,
    NodeFilters,
    NodeGraphStore,
    resolve_by_name,
)

__all__ = [
    "ACCESSIBLE_KEY",
    "NODES_KEY",
    "GraphChange",
    "GraphSnapshot",
    "NodeFilters",
    "NodeGraphStore",
    "NodePersistence",
    "PersistenceStatus",
    "resolve_by_name",
]
