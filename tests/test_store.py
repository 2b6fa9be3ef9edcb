"""Tests for node_wallet_ai.nodes.store module."""

from datetime import timedelta

import pytest

from node_wallet_ai.nodes.persistence import ACCESSIBLE_KEY, NODES_KEY, NodePersistence
from node_wallet_ai.nodes.store import NodeFilters, NodeGraphStore, names_overlap, resolve_by_name
from node_wallet_ai.storage.models import CommunityNode, EventNode, NodeKind, PersonNode


class TestCreate:
    """Tests for node creation."""

    def test_create_person_assigns_identity(self, store):
        """Test that id, timestamps and activity are assigned by the store."""
        node = store.create("person", {"name": "Alice", "id": "forced", "is_active": False})

        assert isinstance(node, PersonNode)
        assert node.id != "forced"
        assert len(node.id) == 12
        assert node.is_active is True
        assert node.total_transactions == 0
        assert node.created_at == node.updated_at
        assert store.get(node.id) is node

    def test_create_event_resets_attendance(self, store):
        """Test that attendee data supplied on create is ignored."""
        node = store.create("event", {
            "name": "Breakpoint",
            "date": "2026-11-01T09:00:00",
            "attendees": ["x", "y"],
            "current_attendees": 2,
        })

        assert isinstance(node, EventNode)
        assert node.attendees == []
        assert node.current_attendees == 0

    def test_create_community_defaults(self, store):
        """Test community defaults."""
        node = store.create(NodeKind.COMMUNITY, {"name": "Dev DAO", "community_type": "dao"})

        assert isinstance(node, CommunityNode)
        assert node.members == []
        assert node.member_count == 0
        assert node.is_public is True

    def test_create_rejects_blank_name(self, store):
        """Test that a blank name fails validation."""
        with pytest.raises(ValueError):
            store.create("person", {"name": "   "})
        assert len(store) == 0

    def test_create_unknown_kind(self, store):
        """Test that an unknown kind raises ValueError."""
        with pytest.raises(ValueError, match="Unknown node type"):
            store.create("planet", {"name": "Mars"})

    def test_tags_are_deduplicated(self, store):
        """Test that duplicate and blank tags are dropped."""
        node = store.create("person", {"name": "Bob", "tags": ["dev", "dev", " ", "solana"]})
        assert node.tags == ["dev", "solana"]


class TestUpdate:
    """Tests for partial updates."""

    def test_update_merges_fields(self, store):
        """Test that only the given fields change."""
        node = store.create("person", {"name": "Alice", "email": "a@example.com"})

        assert store.update(node.id, "person", {"notes": "met at Breakpoint"}) is True

        updated = store.get(node.id)
        assert updated.notes == "met at Breakpoint"
        assert updated.email == "a@example.com"
        assert updated.updated_at > node.updated_at
        assert updated.created_at == node.created_at

    def test_update_ignores_immutable_fields(self, store):
        """Test that id, kind and timestamps cannot be overwritten."""
        node = store.create("person", {"name": "Alice"})
        store.update(node.id, "person", {"id": "other", "kind": "event", "name": "Alicia"})

        updated = store.get(node.id)
        assert updated.id == node.id
        assert updated.kind == NodeKind.PERSON
        assert updated.name == "Alicia"

    def test_update_kind_mismatch_is_noop(self, store):
        """Test that updating with the wrong kind changes nothing."""
        node = store.create("person", {"name": "Alice"})

        assert store.update(node.id, "event", {"name": "Renamed"}) is False
        assert store.get(node.id).name == "Alice"

    def test_update_unknown_id(self, store):
        """Test that updating a missing node returns False."""
        assert store.update("missing", "person", {"name": "X"}) is False

    def test_updated_at_never_goes_backwards(self, store, monkeypatch):
        """Test that updated_at increases even if the clock is behind."""
        node = store.create("person", {"name": "Alice"})
        earlier = node.updated_at - timedelta(hours=1)
        monkeypatch.setattr("node_wallet_ai.nodes.store.utcnow", lambda: earlier)

        store.update(node.id, "person", {"notes": "x"})

        assert store.get(node.id).updated_at > node.updated_at


class TestDelete:
    """Tests for deletion and its cascade."""

    def test_delete_cascades(self, store):
        """Test that a deleted node leaves the active list, selection and accessible set."""
        node = store.create("person", {"name": "Alice"})
        store.set_llm_accessible(node.id, True)
        store.select(node)

        assert store.delete(node.id) is True

        assert store.get(node.id) is None
        assert store.active_nodes == []
        assert store.selected_node is None
        assert store.is_llm_accessible(node.id) is False
        assert store.get_llm_accessible_nodes() == []

    def test_delete_missing(self, store):
        """Test that deleting an unknown id returns False."""
        assert store.delete("nope") is False


class TestQuery:
    """Tests for filtering."""

    @pytest.fixture
    def populated(self, store):
        store.create("person", {"name": "Alice", "tags": ["Friend"], "description": "Rust developer"})
        store.create("person", {"name": "Bob", "tags": ["work"]})
        store.create("event", {"name": "Hacker House", "date": "2026-06-01T10:00:00", "tags": ["work"]})
        return store

    def test_filter_by_kind(self, populated):
        """Test kind filter."""
        results = populated.query(NodeFilters(kind=NodeKind.PERSON))
        assert [n.name for n in results] == ["Alice", "Bob"]

    def test_filter_by_tag_is_case_insensitive(self, populated):
        """Test that tags match case-insensitively and any tag suffices."""
        results = populated.query(NodeFilters(tags=["friend", "nothing"]))
        assert [n.name for n in results] == ["Alice"]

    def test_filter_by_search_term(self, populated):
        """Test search over names and descriptions."""
        assert [n.name for n in populated.query(NodeFilters(search_term="RUST"))] == ["Alice"]
        assert [n.name for n in populated.query(NodeFilters(search_term="house"))] == ["Hacker House"]

    def test_filters_are_anded(self, populated):
        """Test that all set filters must hold."""
        results = populated.query(NodeFilters(kind=NodeKind.EVENT, tags=["work"]))
        assert [n.name for n in results] == ["Hacker House"]

    def test_no_filters_returns_everything(self, populated):
        """Test that an empty filter returns all nodes in store order."""
        assert [n.name for n in populated.query()] == ["Alice", "Bob", "Hacker House"]


class TestRelationships:
    """Tests for attendee, member and transaction bookkeeping."""

    def test_add_attendee_once(self, store):
        """Test that a person attends an event at most once."""
        event = store.create("event", {"name": "Meetup", "date": "2026-05-01T18:00:00"})
        person = store.create("person", {"name": "Alice"})

        assert store.add_attendee(event.id, person.id) is True
        assert store.add_attendee(event.id, person.id) is False

        updated = store.get(event.id)
        assert updated.attendees == [person.id]
        assert updated.current_attendees == 1

    def test_add_attendee_requires_person(self, store):
        """Test that only persons can attend."""
        event = store.create("event", {"name": "Meetup", "date": "2026-05-01T18:00:00"})
        with pytest.raises(KeyError):
            store.add_attendee(event.id, event.id)

    def test_add_member(self, store):
        """Test that member_count tracks additions."""
        community = store.create("community", {"name": "Dev DAO"})
        person = store.create("person", {"name": "Alice"})

        assert store.add_member(community.id, person.id) is True
        assert store.add_member(community.id, person.id) is False
        assert store.get(community.id).member_count == 1

    def test_record_transaction(self, store):
        """Test that recording a transaction bumps the counter and date."""
        person = store.create("person", {"name": "Alice"})
        store.record_transaction(person.id)
        store.record_transaction(person.id)

        updated = store.get(person.id)
        assert updated.total_transactions == 2
        assert updated.last_transaction_date is not None


class TestContext:
    """Tests for active list, selection and activity flags."""

    def test_select_adds_to_active(self, store):
        """Test that selecting a node puts it in the active list once."""
        node = store.create("person", {"name": "Alice"})
        store.select(node)
        store.select(node)

        assert store.selected_node.id == node.id
        assert [n.id for n in store.active_nodes] == [node.id]

    def test_set_active_false_clears_context(self, store):
        """Test that deactivating removes the node from active list and selection."""
        node = store.create("person", {"name": "Alice"})
        store.select(node)

        assert store.set_active(node.id, False) is True

        assert store.get(node.id).is_active is False
        assert store.active_nodes == []
        assert store.selected_node is None

    def test_add_to_active_is_idempotent(self, store):
        """Test that adding the same node twice keeps one entry."""
        node = store.create("person", {"name": "Alice"})
        store.add_to_active(node)
        store.add_to_active(node)

        assert [n.id for n in store.active_nodes] == [node.id]

    def test_remove_from_active_clears_selection(self, store):
        """Test that removing the selected node also clears the selection."""
        a = store.create("person", {"name": "Alice"})
        b = store.create("person", {"name": "Bob"})
        store.add_to_active(a)
        store.select(b)

        store.remove_from_active(b.id)

        assert store.selected_node is None
        assert [n.id for n in store.active_nodes] == [a.id]

    def test_remove_unselected_keeps_selection(self, store):
        """Test that removing another node leaves the selection alone."""
        a = store.create("person", {"name": "Alice"})
        b = store.create("person", {"name": "Bob"})
        store.add_to_active(a)
        store.select(b)

        store.remove_from_active(a.id)

        assert store.selected_node.id == b.id

    def test_clear_active(self, store):
        """Test clearing the whole context."""
        a = store.create("person", {"name": "Alice"})
        b = store.create("person", {"name": "Bob"})
        store.add_to_active(a)
        store.select(b)

        store.clear_active()

        assert store.active_nodes == []
        assert store.selected_node is None

    def test_select_unknown_node(self, store):
        """Test that selecting a node not in the store raises KeyError."""
        stray = PersonNode(name="Ghost")
        with pytest.raises(KeyError):
            store.select(stray)


class TestAccessibility:
    """Tests for the LLM-accessible set."""

    def test_grant_and_revoke(self, store):
        """Test toggling AI visibility."""
        node = store.create("person", {"name": "Alice"})
        assert store.is_llm_accessible(node.id) is False

        store.set_llm_accessible(node.id, True)
        assert store.get_llm_accessible_nodes() == [store.get(node.id)]

        store.set_llm_accessible(node.id, False)
        assert store.get_llm_accessible_nodes() == []

    def test_grant_unknown_node(self, store):
        """Test that granting access to a missing node raises KeyError."""
        with pytest.raises(KeyError):
            store.set_llm_accessible("missing", True)

    def test_accessible_nodes_in_store_order(self, store):
        """Test that the accessible list follows store order, not grant order."""
        a = store.create("person", {"name": "Alice"})
        b = store.create("person", {"name": "Bob"})
        store.set_llm_accessible(b.id, True)
        store.set_llm_accessible(a.id, True)

        assert [n.name for n in store.get_llm_accessible_nodes()] == ["Alice", "Bob"]


class TestNameResolution:
    """Tests for name matching helpers."""

    def test_names_overlap_both_directions(self):
        """Test that either name may contain the other."""
        assert names_overlap("ali", "Alice") is True
        assert names_overlap("Alice Smith", "alice") is True
        assert names_overlap("", "Alice") is False
        assert names_overlap("Bob", "Alice") is False

    def test_first_match_wins(self, store):
        """Test that ambiguous names resolve to the first node in order."""
        first = store.create("person", {"name": "Alice"})
        store.create("person", {"name": "Alicia"})

        assert resolve_by_name("Ali", store.nodes).id == first.id

    def test_kind_filter(self, store):
        """Test that the kind filter skips other kinds."""
        store.create("event", {"name": "Alice's Party", "date": "2026-05-01T18:00:00"})
        person = store.create("person", {"name": "Alice"})

        assert store.find_by_name("alice", NodeKind.PERSON).id == person.id


class TestListeners:
    """Tests for change notification."""

    def test_listeners_receive_changes(self, store):
        """Test that mutations are reported."""
        seen = []
        store.subscribe(lambda change: seen.append(change.action))
        node = store.create("person", {"name": "Alice"})
        store.set_llm_accessible(node.id, True)
        store.delete(node.id)

        assert seen == ["created", "access", "deleted"]

    def test_failing_listener_does_not_break_store(self, store):
        """Test that a raising listener is isolated."""
        def broken(change):
            raise RuntimeError("boom")

        seen = []
        store.subscribe(broken)
        store.subscribe(lambda change: seen.append(change.action))

        store.create("person", {"name": "Alice"})
        assert seen == ["created"]


class TestPersistenceRoundTrip:
    """Tests for saving and reloading through the key-value store."""

    @pytest.mark.asyncio
    async def test_flush_and_reload(self, kv, store):
        """Test that nodes and the accessible set survive a reload."""
        alice = store.create("person", {"name": "Alice", "wallet_address": "abc"})
        store.create("event", {"name": "Meetup", "date": "2026-05-01T18:00:00"})
        store.set_llm_accessible(alice.id, True)
        await store.flush()

        assert NODES_KEY in kv.data
        assert ACCESSIBLE_KEY in kv.data

        reloaded = NodeGraphStore(NodePersistence(kv))
        await reloaded.load()

        assert [n.name for n in reloaded.nodes] == ["Alice", "Meetup"]
        assert reloaded.get(alice.id).wallet_address == "abc"
        assert reloaded.is_llm_accessible(alice.id) is True
        assert reloaded.active_nodes == []

    @pytest.mark.asyncio
    async def test_delete_is_persisted(self, kv, store):
        """Test that a deletion removes the node from storage too."""
        node = store.create("person", {"name": "Alice"})
        store.set_llm_accessible(node.id, True)
        store.delete(node.id)
        await store.flush()

        reloaded = NodeGraphStore(NodePersistence(kv))
        await reloaded.load()
        assert len(reloaded) == 0
        assert reloaded.get_llm_accessible_nodes() == []

