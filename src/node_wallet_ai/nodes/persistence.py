"""Persist the node graph and the LLM-accessible set to a key-value store.

Two keys are used: one for the serialized node records and one for the list
of node ids the AI is allowed to see. Both are read once at startup and
rewritten after every mutation. A missing or unreadable value is treated as
empty, and write failures are recorded on :class:`PersistenceStatus` rather
than raised.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import ValidationError

from node_wallet_ai.storage.kv import KeyValueStore
from node_wallet_ai.storage.models import AnyNode, node_from_record, utcnow

logger = logging.getLogger("node_wallet_ai.nodes.persistence")

NODES_KEY = "solana_nodes_data"
ACCESSIBLE_KEY = "llm_accessible_nodes"


@dataclass
class GraphSnapshot:
    """Point-in-time copy of everything that gets persisted."""

    nodes: list[AnyNode] = field(default_factory=list)
    accessible_ids: list[str] = field(default_factory=list)


@dataclass
class PersistenceStatus:
    loaded: bool = False
    saving: bool = False
    last_saved_at: datetime | None = None
    error: str | None = None


def serialize_nodes(nodes: list[AnyNode]) -> str:
    """Encode nodes as a JSON array with ISO-8601 date strings."""
    return json.dumps([n.model_dump(mode="json") for n in nodes])


def deserialize_nodes(raw: str | None) -> list[AnyNode]:
    """Decode a JSON array of node records.

    Returns an empty list when *raw* is missing or not a JSON array. Single
    records that fail validation are skipped.
    """
    if not raw:
        return []
    try:
        records = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.warning(f"Stored node data is corrupt, starting empty: {exc}")
        return []
    if not isinstance(records, list):
        logger.warning("Stored node data is not a list, starting empty")
        return []

    nodes: list[AnyNode] = []
    seen: set[str] = set()
    for record in records:
        if not isinstance(record, dict):
            continue
        try:
            node = node_from_record(record)
        except (ValidationError, ValueError) as exc:
            logger.warning(f"Skipping unreadable node record {record.get('id')!r}: {exc}")
            continue
        if node.id in seen:
            logger.warning(f"Skipping duplicate node id {node.id}")
            continue
        seen.add(node.id)
        nodes.append(node)
    return nodes


def deserialize_ids(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        ids = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.warning(f"Stored accessible-node list is corrupt, starting empty: {exc}")
        return []
    if not isinstance(ids, list):
        return []
    return [i for i in ids if isinstance(i, str)]


class NodePersistence:
    """Reads and writes :class:`GraphSnapshot` objects through a :class:`KeyValueStore`."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv
        self.status = PersistenceStatus()
        self._lock = asyncio.Lock()

    async def load(self) -> GraphSnapshot:
        """Read both keys. Never raises; failures yield an empty snapshot."""
        try:
            raw_nodes = await self.kv.get_item(NODES_KEY)
            raw_ids = await self.kv.get_item(ACCESSIBLE_KEY)
        except Exception as exc:
            logger.error(f"Failed to read node graph from storage: {exc}")
            self.status.error = f"Failed to load nodes: {exc}"
            return GraphSnapshot()

        nodes = deserialize_nodes(raw_nodes)
        known = {n.id for n in nodes}
        accessible = [i for i in deserialize_ids(raw_ids) if i in known]
        self.status.loaded = True
        logger.info(f"Loaded {len(nodes)} nodes ({len(accessible)} accessible to the AI)")
        return GraphSnapshot(nodes=nodes, accessible_ids=accessible)

    async def save(self, snapshot: GraphSnapshot) -> bool:
        """Write both keys. Returns ``False`` (and records the error) on failure."""
        async with self._lock:
            self.status.saving = True
            try:
                await self.kv.set_item(NODES_KEY, serialize_nodes(snapshot.nodes))
                await self.kv.set_item(ACCESSIBLE_KEY, json.dumps(snapshot.accessible_ids))
            except Exception as exc:
                logger.error(f"Failed to save node graph: {exc}")
                self.status.error = f"Failed to save nodes: {exc}"
                return False
            finally:
                self.status.saving = False

        self.status.error = None
        self.status.last_saved_at = utcnow()
        return True
