"""In-memory node graph with active/selected context and AI visibility flags.

All mutations apply to the in-memory graph synchronously. Saving to the
backing key-value store is scheduled as a background task when an event loop
is running, so callers never wait on storage. Without a running loop the
store is only marked dirty and :meth:`NodeGraphStore.flush` writes it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable

from node_wallet_ai.nodes.persistence import GraphSnapshot, NodePersistence
from node_wallet_ai.storage.models import (
    IMMUTABLE_FIELDS,
    NODE_CLASSES,
    AnyNode,
    CommunityNode,
    EventNode,
    NodeKind,
    PersonNode,
    parse_kind,
    utcnow,
)

logger = logging.getLogger("node_wallet_ai.nodes.store")


@dataclass
class NodeFilters:
    """Query constraints. ``None`` means "no constraint"; all set filters are ANDed."""

    kind: NodeKind | None = None
    is_active: bool | None = None
    tags: list[str] | None = None
    search_term: str | None = None


@dataclass
class GraphChange:
    action: str  # created, updated, deleted, access, context, loaded
    node_id: str | None = None
    timestamp: datetime = field(default_factory=utcnow)


Listener = Callable[[GraphChange], None]


def names_overlap(candidate: str, name: str) -> bool:
    """Bidirectional case-insensitive substring test used for name lookups."""
    a = candidate.strip().lower()
    b = name.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def resolve_by_name(
    candidate: str,
    nodes: Iterable[AnyNode],
    kind: NodeKind | None = None,
) -> AnyNode | None:
    """Return the first node (in the given order) whose name overlaps *candidate*.

    Short candidates can match several nodes; the first one wins.
    """
    for node in nodes:
        if kind is not None and node.kind != kind:
            continue
        if names_overlap(candidate, node.name):
            return node
    return None


class NodeGraphStore:
    """Owns every node plus the active list, selection and LLM-accessible set."""

    def __init__(self, persistence: NodePersistence | None = None) -> None:
        self._persistence = persistence
        self._nodes: dict[str, AnyNode] = {}
        self._active_ids: list[str] = []
        self._selected_id: str | None = None
        self._accessible: dict[str, None] = {}  # ordered set
        self._listeners: list[Listener] = []
        self._pending: set[asyncio.Task] = set()
        self._dirty = False

    # ------------------------------------------------------------------
    # Loading / persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Replace the in-memory graph with whatever the backing store holds."""
        if self._persistence is None:
            return
        snapshot = await self._persistence.load()
        self._nodes = {n.id: n for n in snapshot.nodes}
        self._accessible = {i: None for i in snapshot.accessible_ids if i in self._nodes}
        self._active_ids = []
        self._selected_id = None
        self._dirty = False
        self._notify(GraphChange("loaded"))

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=list(self._nodes.values()),
            accessible_ids=list(self._accessible),
        )

    @property
    def persistence(self) -> NodePersistence | None:
        return self._persistence

    async def flush(self) -> None:
        """Wait for scheduled saves and write any change made outside an event loop."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self._dirty and self._persistence is not None:
            self._dirty = False
            await self._persistence.save(self.snapshot())

    def _schedule_save(self) -> None:
        if self._persistence is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._dirty = True
            return
        task = loop.create_task(self._persistence.save(self.snapshot()))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # ------------------------------------------------------------------
    # Change listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, change: GraphChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"Graph listener error on '{change.action}': {e}")

    def _changed(self, action: str, node_id: str | None, persist: bool = True) -> None:
        if persist:
            self._schedule_save()
        self._notify(GraphChange(action, node_id))

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> list[AnyNode]:
        """All nodes in store (creation) order."""
        return list(self._nodes.values())

    def get(self, node_id: str) -> AnyNode | None:
        return self._nodes.get(node_id)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def active_nodes(self) -> list[AnyNode]:
        return [self._nodes[i] for i in self._active_ids if i in self._nodes]

    @property
    def selected_node(self) -> AnyNode | None:
        if self._selected_id is None:
            return None
        return self._nodes.get(self._selected_id)

    def find_by_name(self, name: str, kind: NodeKind | None = None) -> AnyNode | None:
        return resolve_by_name(name, self._nodes.values(), kind)

    def find_by_wallet(self, address: str, nodes: Iterable[AnyNode] | None = None) -> PersonNode | None:
        address = address.strip()
        for node in nodes if nodes is not None else self._nodes.values():
            if isinstance(node, PersonNode) and node.wallet_address and node.wallet_address == address:
                return node
        return None

    def query(self, filters: NodeFilters | None = None, nodes: Iterable[AnyNode] | None = None) -> list[AnyNode]:
        """Filter *nodes* (default: the whole graph) by kind, activity, tags and text."""
        filters = filters or NodeFilters()
        source = nodes if nodes is not None else self._nodes.values()
        wanted_tags = {t.lower() for t in filters.tags} if filters.tags else None
        term = filters.search_term.strip().lower() if filters.search_term else ""

        results: list[AnyNode] = []
        for node in source:
            if filters.kind is not None and node.kind != filters.kind:
                continue
            if filters.is_active is not None and node.is_active != filters.is_active:
                continue
            if wanted_tags is not None and not wanted_tags & {t.lower() for t in node.tags}:
                continue
            if term:
                haystack = f"{node.name}\n{node.description or ''}".lower()
                if term not in haystack:
                    continue
            results.append(node)
        return results

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------

    def create(self, kind: NodeKind | str, data: dict[str, Any]) -> AnyNode:
        """Create a node of *kind* from *data* and return it.

        Parameters
        ----------
        kind:
            ``person``, ``event`` or ``community``.
        data:
            Field values. ``id``, timestamps, activity and the kind-specific
            counters are always assigned here, whatever *data* says.

        Raises
        ------
        ValueError
            If *kind* is unknown or *data* fails validation.
        """
        kind = parse_kind(kind)
        now = utcnow()
        fields = {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}
        fields.update(kind=kind, created_at=now, updated_at=now, is_active=True)
        if kind == NodeKind.PERSON:
            fields["total_transactions"] = 0
        elif kind == NodeKind.EVENT:
            fields["attendees"] = []
            fields["current_attendees"] = 0
        elif kind == NodeKind.COMMUNITY:
            fields["members"] = []
            fields["member_count"] = 0

        node = NODE_CLASSES[kind].model_validate(fields)
        self._nodes[node.id] = node
        logger.info(f"Created {kind.value} node '{node.name}' (id={node.id})")
        self._changed("created", node.id)
        return node

    def update(self, node_id: str, kind: NodeKind | str, partial: dict[str, Any]) -> bool:
        """Merge *partial* into the node. No-op (returns ``False``) on id or kind mismatch."""
        kind = parse_kind(kind)
        node = self._nodes.get(node_id)
        if node is None or node.kind != kind:
            logger.debug(f"Ignoring update for {kind.value} {node_id}: not found")
            return False

        changes = {k: v for k, v in partial.items() if k not in IMMUTABLE_FIELDS}
        self._replace(node, changes)
        self._changed("updated", node_id)
        return True

    def delete(self, node_id: str) -> bool:
        """Remove a node and every reference to it from the active list, selection and accessible set."""
        node = self._nodes.pop(node_id, None)
        if node is None:
            return False
        self._accessible.pop(node_id, None)
        if node_id in self._active_ids:
            self._active_ids.remove(node_id)
        if self._selected_id == node_id:
            self._selected_id = None
        logger.info(f"Deleted {node.kind.value} node '{node.name}' (id={node_id})")
        self._changed("deleted", node_id)
        return True

    def _replace(self, node: AnyNode, changes: dict[str, Any]) -> AnyNode:
        data = node.model_dump()
        data.update(changes)
        data["updated_at"] = self._next_timestamp(node)
        updated = type(node).model_validate(data)
        self._nodes[node.id] = updated
        return updated

    @staticmethod
    def _next_timestamp(node: AnyNode) -> datetime:
        # updated_at never goes backwards, even if the wall clock does
        now = utcnow()
        if now > node.updated_at:
            return now
        return node.updated_at + timedelta(microseconds=1)

    # ------------------------------------------------------------------
    # Relationship helpers
    # ------------------------------------------------------------------

    def add_attendee(self, event_id: str, person_id: str) -> bool:
        """Add a person to an event. Returns ``False`` if already attending."""
        event = self._require(event_id, EventNode)
        self._require(person_id, PersonNode)
        if person_id in event.attendees:
            return False
        attendees = [*event.attendees, person_id]
        self._replace(event, {"attendees": attendees, "current_attendees": len(attendees)})
        self._changed("updated", event_id)
        return True

    def add_member(self, community_id: str, person_id: str) -> bool:
        """Add a person to a community. Returns ``False`` if already a member."""
        community = self._require(community_id, CommunityNode)
        self._require(person_id, PersonNode)
        if person_id in community.members:
            return False
        members = [*community.members, person_id]
        self._replace(community, {"members": members, "member_count": community.member_count + 1})
        self._changed("updated", community_id)
        return True

    def record_transaction(self, person_id: str) -> None:
        person = self._require(person_id, PersonNode)
        self._replace(person, {
            "total_transactions": person.total_transactions + 1,
            "last_transaction_date": utcnow(),
        })
        self._changed("updated", person_id)

    def _require(self, node_id: str, cls: type) -> Any:
        node = self._nodes.get(node_id)
        if node is None or not isinstance(node, cls):
            label = cls.__name__.replace("Node", "").lower()
            raise KeyError(f"No {label} with ID {node_id}")
        return node

    # ------------------------------------------------------------------
    # Active / selected context
    # ------------------------------------------------------------------

    def set_active(self, node_id: str, is_active: bool) -> bool:
        """Toggle a node's activity flag. Deactivating drops it from the active context."""
        node = self._nodes.get(node_id)
        if node is None:
            return False
        self._replace(node, {"is_active": is_active})
        if not is_active:
            if node_id in self._active_ids:
                self._active_ids.remove(node_id)
            if self._selected_id == node_id:
                self._selected_id = None
        self._changed("updated", node_id)
        return True

    def select(self, node: AnyNode | None) -> None:
        """Select *node* (adding it to the active list) or clear the selection."""
        if node is None:
            self._selected_id = None
            self._changed("context", None, persist=False)
            return
        if node.id not in self._nodes:
            raise KeyError(f"No node with ID {node.id}")
        if node.id not in self._active_ids:
            self._active_ids.append(node.id)
        self._selected_id = node.id
        self._changed("context", node.id, persist=False)

    def add_to_active(self, node: AnyNode) -> None:
        if node.id not in self._nodes:
            raise KeyError(f"No node with ID {node.id}")
        if node.id in self._active_ids:
            return
        self._active_ids.append(node.id)
        self._changed("context", node.id, persist=False)

    def remove_from_active(self, node_id: str) -> None:
        if node_id in self._active_ids:
            self._active_ids.remove(node_id)
        if self._selected_id == node_id:
            self._selected_id = None
        self._changed("context", node_id, persist=False)

    def clear_active(self) -> None:
        self._active_ids = []
        self._selected_id = None
        self._changed("context", None, persist=False)

    # ------------------------------------------------------------------
    # LLM-accessible set
    # ------------------------------------------------------------------

    def set_llm_accessible(self, node_id: str, accessible: bool) -> None:
        """Grant or revoke AI visibility for a node.

        Raises
        ------
        KeyError
            If granting access to a node that does not exist.
        """
        if accessible:
            if node_id not in self._nodes:
                raise KeyError(f"No node with ID {node_id}")
            self._accessible[node_id] = None
        else:
            self._accessible.pop(node_id, None)
        self._changed("access", node_id)

    def is_llm_accessible(self, node_id: str) -> bool:
        return node_id in self._accessible

    def get_llm_accessible_nodes(self) -> list[AnyNode]:
        """Accessible nodes, in store order."""
        return [n for n in self._nodes.values() if n.id in self._accessible]
