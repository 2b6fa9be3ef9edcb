"""Pydantic models for the node graph (Person, Event, Community)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class NodeKind(str, Enum):
    PERSON = "person"
    EVENT = "event"
    COMMUNITY = "community"


class Relationship(str, Enum):
    FRIEND = "friend"
    FAMILY = "family"
    COLLEAGUE = "colleague"
    BUSINESS = "business"
    OTHER = "other"


class EventType(str, Enum):
    CONFERENCE = "conference"
    MEETUP = "meetup"
    PARTY = "party"
    BUSINESS = "business"
    SOCIAL = "social"
    OTHER = "other"


class CommunityType(str, Enum):
    DAO = "dao"
    NFT = "nft"
    SOCIAL = "social"
    GAMING = "gaming"
    DEFI = "defi"
    BUSINESS = "business"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _new_id() -> str:
    """Generate a short hex ID (12 characters)."""
    return uuid.uuid4().hex[:12]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


# ---------------------------------------------------------------------------
# Node records
# ---------------------------------------------------------------------------

class Node(BaseModel):
    """Fields shared by every node kind."""

    id: str = Field(default_factory=_new_id)
    kind: NodeKind
    name: str
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return _unique([t.strip() for t in value if t and t.strip()])

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class PersonNode(Node):
    """A contact, optionally carrying a Solana wallet address."""

    kind: NodeKind = NodeKind.PERSON
    wallet_address: Optional[str] = None
    relationship: Optional[Relationship] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    last_transaction_date: Optional[datetime] = None
    total_transactions: int = 0


class EventNode(Node):
    """A dated gathering; ``attendees`` holds person ids, each at most once."""

    kind: NodeKind = NodeKind.EVENT
    date: datetime
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    event_type: Optional[EventType] = None
    organizer: Optional[str] = None
    ticket_price: Optional[float] = None
    max_attendees: Optional[int] = None
    attendees: list[str] = Field(default_factory=list)
    current_attendees: int = 0
    requirements: list[str] = Field(default_factory=list)

    @field_validator("attendees")
    @classmethod
    def _dedupe_attendees(cls, value: list[str]) -> list[str]:
        return _unique(value)


class CommunityNode(Node):
    """A group such as a DAO, NFT project or social club."""

    kind: NodeKind = NodeKind.COMMUNITY
    community_type: CommunityType = CommunityType.OTHER
    is_public: bool = True
    members: list[str] = Field(default_factory=list)
    member_count: int = 0
    join_requirements: list[str] = Field(default_factory=list)
    governance_token: Optional[str] = None
    nft_collection: Optional[str] = None
    website: Optional[str] = None
    discord: Optional[str] = None
    twitter: Optional[str] = None
    admin: list[str] = Field(default_factory=list)

    @field_validator("members")
    @classmethod
    def _dedupe_members(cls, value: list[str]) -> list[str]:
        return _unique(value)


AnyNode = Union[PersonNode, EventNode, CommunityNode]

NODE_CLASSES: dict[NodeKind, type[Node]] = {
    NodeKind.PERSON: PersonNode,
    NodeKind.EVENT: EventNode,
    NodeKind.COMMUNITY: CommunityNode,
}

# Fields a partial update may never touch.
IMMUTABLE_FIELDS = frozenset({"id", "kind", "created_at", "updated_at"})


def parse_kind(value: str | NodeKind) -> NodeKind:
    """Coerce a user-supplied kind string (``"Person"``, ``"event"``) to :class:`NodeKind`."""
    if isinstance(value, NodeKind):
        return value
    try:
        return NodeKind(str(value).strip().lower())
    except ValueError:
        raise ValueError(
            f"Unknown node type '{value}'. Expected one of: "
            f"{', '.join(k.value for k in NodeKind)}"
        ) from None


def node_from_record(record: dict[str, Any]) -> AnyNode:
    """Rebuild a typed node from a serialized record (dates as ISO strings)."""
    kind = parse_kind(record.get("kind", ""))
    return NODE_CLASSES[kind].model_validate(record)
