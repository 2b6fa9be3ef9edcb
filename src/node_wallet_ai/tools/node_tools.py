"""AI-facing node graph tools.

Every read tool sees only the LLM-accessible set: a node that exists but was
never shared with the AI is indistinguishable from one that does not exist.
Results are JSON objects with ``success`` and ``message`` keys.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from node_wallet_ai.nodes.store import NodeFilters, NodeGraphStore
from node_wallet_ai.storage.models import (
    AnyNode,
    CommunityNode,
    EventNode,
    NodeKind,
    PersonNode,
    parse_kind,
)
from node_wallet_ai.tools.registry import ToolRegistry

logger = logging.getLogger("node_wallet_ai.tools.nodes")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def node_summary(node: AnyNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "type": node.kind.value,
        "createdAt": _iso(node.created_at),
    }


def node_details(node: AnyNode, full: bool = False) -> dict[str, Any]:
    """Per-kind detail dict. *full* adds tags and the attendee id list."""
    details = {**node_summary(node), "description": node.description or None}
    if isinstance(node, PersonNode):
        details.update(
            walletAddress=node.wallet_address or None,
            relationship=_enum_value(node.relationship),
            email=node.email or None,
            phone=node.phone or None,
            notes=node.notes or None,
        )
        if full:
            details["totalTransactions"] = node.total_transactions
            details["lastTransactionDate"] = _iso(node.last_transaction_date)
    elif isinstance(node, EventNode):
        details.update(
            date=_iso(node.date),
            location=node.location or None,
            eventType=_enum_value(node.event_type),
            attendees=list(node.attendees) if full else len(node.attendees),
        )
        if full:
            details["endDate"] = _iso(node.end_date)
            details["organizer"] = node.organizer or None
    elif isinstance(node, CommunityNode):
        details.update(
            communityType=_enum_value(node.community_type),
            isPublic=node.is_public,
            memberCount=node.member_count,
        )
    if full:
        details["tags"] = list(node.tags)
    return details


def _failure(exc: Exception, message: str) -> dict[str, Any]:
    logger.error(f"{message}: {exc}")
    return {"success": False, "error": str(exc), "message": message}


def _lower(value: str | None) -> str | None:
    return value.strip().lower() if isinstance(value, str) and value.strip() else None


def _clean(fields: dict[str, Any]) -> dict[str, Any]:
    """Drop arguments the caller did not supply."""
    return {k: v for k, v in fields.items() if v is not None}


def register_node_tools(registry: ToolRegistry, store: NodeGraphStore) -> None:
    """Register the node tool family into *registry*."""

    def _accessible(kind: NodeKind | None = None) -> list[AnyNode]:
        nodes = store.get_llm_accessible_nodes()
        if kind is None:
            return nodes
        return [n for n in nodes if n.kind == kind]

    def _accessible_node(node_id: str, kind: NodeKind | None = None) -> AnyNode | None:
        node = store.get(node_id)
        if node is None or not store.is_llm_accessible(node_id):
            return None
        if kind is not None and node.kind != kind:
            return None
        return node

    def _create(kind: NodeKind, fields: dict[str, Any]) -> dict[str, Any]:
        node = store.create(kind, _clean(fields))
        # The AI can always see what it created.
        store.set_llm_accessible(node.id, True)
        return {
            "success": True,
            "node": node_details(node),
            "message": f"Successfully created {kind.value} node: {node.name}",
        }

    def _edit(kind: NodeKind, node_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        label = kind.value.capitalize()
        if _accessible_node(node_id, kind) is None:
            return {"success": False, "node": None, "message": f'{label} with ID "{node_id}" not found'}
        changes = _clean(fields)
        if not changes:
            return {"success": False, "node": None, "message": "No fields to update were provided"}
        store.update(node_id, kind, changes)
        updated = store.get(node_id)
        return {
            "success": True,
            "node": node_details(updated, full=True),
            "updated": sorted(changes),
            "message": f"Updated {kind.value} node: {updated.name}",
        }

    # ------------------------------------------------------------------
    # Listing and lookup
    # ------------------------------------------------------------------

    @registry.tool(
        "list_accessible_nodes",
        "List the nodes (people, events, communities) the user has shared with you.",
        {
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": [k.value for k in NodeKind],
                    "description": "Filter by node type (person, event, community). Optional.",
                }
            },
            "required": [],
        },
    )
    def list_accessible_nodes(type: str | None = None) -> dict[str, Any]:
        try:
            kind = parse_kind(type) if type else None
            nodes = _accessible(kind)
        except Exception as e:
            return _failure(e, "Failed to list accessible nodes")
        if not nodes:
            prefix = f"{kind.value} " if kind else ""
            return {
                "success": True,
                "nodes": [],
                "count": 0,
                "message": (
                    f"No {prefix}nodes accessible to you. Ask the user to grant access "
                    f"to nodes with 'node-wallet-ai nodes grant'."
                ),
            }
        return {
            "success": True,
            "nodes": [node_details(n) for n in nodes],
            "count": len(nodes),
            "message": f"Retrieved {len(nodes)} accessible nodes",
        }

    @registry.tool(
        "get_all_nodes",
        "Get a short summary of every node shared with you.",
        {"type": "object", "properties": {}, "required": []},
    )
    def get_all_nodes() -> dict[str, Any]:
        nodes = _accessible()
        return {
            "success": True,
            "nodes": [node_summary(n) for n in nodes],
            "count": len(nodes),
            "message": f"Retrieved {len(nodes)} total nodes",
        }

    @registry.tool(
        "search_nodes",
        "Search shared nodes by name or description, optionally filtered by type.",
        {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Text to look for in names and descriptions"},
                "type": {
                    "type": "string",
                    "enum": [k.value for k in NodeKind],
                    "description": "Node type filter",
                },
            },
            "required": [],
        },
    )
    def search_nodes(query: str = "", type: str | None = None) -> dict[str, Any]:
        try:
            filters = NodeFilters(kind=parse_kind(type) if type else None, search_term=query or None)
            results = store.query(filters, nodes=_accessible())
        except Exception as e:
            return _failure(e, "Failed to search nodes")
        return {
            "success": True,
            "nodes": [node_summary(n) for n in results],
            "count": len(results),
            "query": query or "",
            "message": f"Found {len(results)} matching nodes",
        }

    @registry.tool(
        "get_node_details",
        "Get every stored detail of one shared node.",
        {
            "type": "object",
            "properties": {"id": {"type": "string", "description": "Node ID"}},
            "required": ["id"],
        },
    )
    def get_node_details(id: str) -> dict[str, Any]:
        node = _accessible_node(id)
        if node is None:
            return {"success": False, "node": None, "message": f"Node not found with ID: {id}"}
        return {
            "success": True,
            "node": node_details(node, full=True),
            "message": f"Retrieved details for: {node.name}",
        }

    @registry.tool(
        "get_nodes_with_wallets",
        "List shared contacts that have a wallet address (possible transfer recipients).",
        {"type": "object", "properties": {}, "required": []},
    )
    def get_nodes_with_wallets() -> dict[str, Any]:
        people = [n for n in _accessible(NodeKind.PERSON) if n.wallet_address]
        return {
            "success": True,
            "nodes": [{**node_summary(p), "walletAddress": p.wallet_address} for p in people],
            "count": len(people),
            "message": f"Found {len(people)} contacts with wallet addresses",
        }

    @registry.tool(
        "get_node_by_wallet",
        "Find the shared contact that owns a wallet address.",
        {
            "type": "object",
            "properties": {"address": {"type": "string", "description": "Wallet address to search for"}},
            "required": ["address"],
        },
    )
    def get_node_by_wallet(address: str) -> dict[str, Any]:
        person = store.find_by_wallet(address, _accessible(NodeKind.PERSON))
        if person is None:
            return {"success": False, "node": None, "message": f"No contact found with wallet address: {address}"}
        return {
            "success": True,
            "node": {
                **node_summary(person),
                "walletAddress": person.wallet_address,
                "relationship": _enum_value(person.relationship),
                "notes": person.notes or None,
            },
            "message": f"Found contact: {person.name}",
        }

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    _tags = {"type": "array", "items": {"type": "string"}, "description": "Tags to categorize the node"}

    @registry.tool(
        "create_person_node",
        "Create a new person (contact) node.",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Person's name"},
                "walletAddress": {"type": "string", "description": "Solana wallet address (base58)"},
                "relationship": {
                    "type": "string",
                    "enum": ["friend", "family", "colleague", "business", "other"],
                },
                "email": {"type": "string"},
                "phone": {"type": "string"},
                "notes": {"type": "string", "description": "Additional notes about the person"},
                "description": {"type": "string"},
                "tags": _tags,
            },
            "required": ["name"],
        },
    )
    def create_person_node(
        name: str,
        walletAddress: str | None = None,
        relationship: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        notes: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        try:
            return _create(NodeKind.PERSON, {
                "name": name,
                "wallet_address": walletAddress or None,
                "relationship": _lower(relationship),
                "email": email,
                "phone": phone,
                "notes": notes,
                "description": description,
                "tags": tags,
            })
        except Exception as e:
            return _failure(e, "Failed to create person node")

    @registry.tool(
        "create_event_node",
        "Create a new event node.",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Event name"},
                "date": {"type": "string", "description": "Start date/time, ISO 8601"},
                "endDate": {"type": "string", "description": "End date/time, ISO 8601"},
                "location": {"type": "string"},
                "eventType": {
                    "type": "string",
                    "enum": ["conference", "meetup", "party", "business", "social", "other"],
                },
                "organizer": {"type": "string", "description": "Organizer name or person node ID"},
                "description": {"type": "string"},
                "tags": _tags,
            },
            "required": ["name", "date"],
        },
    )
    def create_event_node(
        name: str,
        date: str,
        endDate: str | None = None,
        location: str | None = None,
        eventType: str | None = None,
        organizer: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        try:
            return _create(NodeKind.EVENT, {
                "name": name,
                "date": date,
                "end_date": endDate or None,
                "location": location,
                "event_type": _lower(eventType),
                "organizer": organizer,
                "description": description,
                "tags": tags,
            })
        except Exception as e:
            return _failure(e, "Failed to create event node")

    @registry.tool(
        "create_community_node",
        "Create a new community node (DAO, NFT project, club...).",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Community name"},
                "communityType": {
                    "type": "string",
                    "enum": ["dao", "nft", "social", "gaming", "defi", "business", "other"],
                },
                "isPublic": {"type": "boolean", "default": True},
                "website": {"type": "string"},
                "description": {"type": "string"},
                "tags": _tags,
            },
            "required": ["name"],
        },
    )
    def create_community_node(
        name: str,
        communityType: str | None = None,
        isPublic: bool = True,
        website: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        try:
            return _create(NodeKind.COMMUNITY, {
                "name": name,
                "community_type": _lower(communityType),
                "is_public": isPublic,
                "website": website,
                "description": description,
                "tags": tags,
            })
        except Exception as e:
            return _failure(e, "Failed to create community node")

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    @registry.tool(
        "edit_person_node",
        "Update fields of a shared person node. Only the fields given are changed.",
        {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "ID of the person to update"},
                "name": {"type": "string"},
                "walletAddress": {"type": "string"},
                "relationship": {
                    "type": "string",
                    "enum": ["friend", "family", "colleague", "business", "other"],
                },
                "email": {"type": "string"},
                "phone": {"type": "string"},
                "notes": {"type": "string"},
                "description": {"type": "string"},
                "tags": _tags,
            },
            "required": ["id"],
        },
    )
    def edit_person_node(
        id: str,
        name: str | None = None,
        walletAddress: str | None = None,
        relationship: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        notes: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        try:
            return _edit(NodeKind.PERSON, id, {
                "name": name,
                "wallet_address": walletAddress,
                "relationship": _lower(relationship),
                "email": email,
                "phone": phone,
                "notes": notes,
                "description": description,
                "tags": tags,
            })
        except Exception as e:
            return _failure(e, "Failed to update person node")

    @registry.tool(
        "edit_event_node",
        "Update fields of a shared event node. Only the fields given are changed.",
        {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "ID of the event to update"},
                "name": {"type": "string"},
                "date": {"type": "string", "description": "ISO 8601"},
                "endDate": {"type": "string", "description": "ISO 8601"},
                "location": {"type": "string"},
                "eventType": {
                    "type": "string",
                    "enum": ["conference", "meetup", "party", "business", "social", "other"],
                },
                "organizer": {"type": "string"},
                "description": {"type": "string"},
                "tags": _tags,
            },
            "required": ["id"],
        },
    )
    def edit_event_node(
        id: str,
        name: str | None = None,
        date: str | None = None,
        endDate: str | None = None,
        location: str | None = None,
        eventType: str | None = None,
        organizer: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        try:
            return _edit(NodeKind.EVENT, id, {
                "name": name,
                "date": date,
                "end_date": endDate,
                "location": location,
                "event_type": _lower(eventType),
                "organizer": organizer,
                "description": description,
                "tags": tags,
            })
        except Exception as e:
            return _failure(e, "Failed to update event node")

    @registry.tool(
        "edit_community_node",
        "Update fields of a shared community node. Only the fields given are changed.",
        {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "ID of the community to update"},
                "name": {"type": "string"},
                "communityType": {
                    "type": "string",
                    "enum": ["dao", "nft", "social", "gaming", "defi", "business", "other"],
                },
                "isPublic": {"type": "boolean"},
                "website": {"type": "string"},
                "description": {"type": "string"},
                "tags": _tags,
            },
            "required": ["id"],
        },
    )
    def edit_community_node(
        id: str,
        name: str | None = None,
        communityType: str | None = None,
        isPublic: bool | None = None,
        website: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        try:
            return _edit(NodeKind.COMMUNITY, id, {
                "name": name,
                "community_type": _lower(communityType),
                "is_public": isPublic,
                "website": website,
                "description": description,
                "tags": tags,
            })
        except Exception as e:
            return _failure(e, "Failed to update community node")
