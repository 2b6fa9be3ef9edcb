"""Tests for node_wallet_ai.nodes.persistence module."""

import json
from unittest.mock import AsyncMock

import pytest

from node_wallet_ai.nodes.persistence import (
    ACCESSIBLE_KEY,
    NODES_KEY,
    GraphSnapshot,
    NodePersistence,
    deserialize_ids,
    deserialize_nodes,
    serialize_nodes,
)
from node_wallet_ai.storage.kv import MemoryKeyValueStore, SqliteKeyValueStore, get_store
from node_wallet_ai.storage.models import EventNode, PersonNode


class TestSerialization:
    """Tests for the JSON encoding of node records."""

    def test_dates_are_iso_strings(self):
        """Test that datetimes are written as ISO-8601 strings."""
        event = EventNode(name="Meetup", date="2026-05-01T18:00:00")
        records = json.loads(serialize_nodes([event]))

        assert records[0]["kind"] == "event"
        assert records[0]["date"].startswith("2026-05-01T18:00:00")
        assert isinstance(records[0]["created_at"], str)

    def test_roundtrip_keeps_kind(self):
        """Test that records come back as the right node class."""
        nodes = [PersonNode(name="Alice"), EventNode(name="Meetup", date="2026-05-01T18:00:00")]
        restored = deserialize_nodes(serialize_nodes(nodes))

        assert [type(n) for n in restored] == [PersonNode, EventNode]
        assert restored[0].id == nodes[0].id

    @pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}'])
    def test_unreadable_data_is_empty(self, raw):
        """Test that missing or corrupt data yields an empty list."""
        assert deserialize_nodes(raw) == []

    def test_bad_records_are_skipped(self):
        """Test that one bad record does not lose the others."""
        good = PersonNode(name="Alice").model_dump(mode="json")
        raw = json.dumps([good, {"kind": "planet", "name": "Mars"}, {"kind": "person"}, "junk", good])

        nodes = deserialize_nodes(raw)

        assert len(nodes) == 1
        assert nodes[0].name == "Alice"

    def test_deserialize_ids(self):
        """Test that only string ids are kept."""
        assert deserialize_ids('["a", 1, "b"]') == ["a", "b"]
        assert deserialize_ids("{") == []
        assert deserialize_ids(None) == []


class TestNodePersistence:
    """Tests for NodePersistence load/save."""

    @pytest.mark.asyncio
    async def test_load_empty_store(self):
        """Test loading from an empty key-value store."""
        persistence = NodePersistence(MemoryKeyValueStore())
        snapshot = await persistence.load()

        assert snapshot.nodes == []
        assert snapshot.accessible_ids == []
        assert persistence.status.loaded is True

    @pytest.mark.asyncio
    async def test_load_drops_dangling_accessible_ids(self):
        """Test that accessible ids without a node are discarded."""
        alice = PersonNode(name="Alice")
        kv = MemoryKeyValueStore({
            NODES_KEY: serialize_nodes([alice]),
            ACCESSIBLE_KEY: json.dumps([alice.id, "ghost"]),
        })

        snapshot = await NodePersistence(kv).load()
        assert snapshot.accessible_ids == [alice.id]

    @pytest.mark.asyncio
    async def test_save_writes_both_keys(self):
        """Test that save writes nodes and accessible ids."""
        kv = MemoryKeyValueStore()
        alice = PersonNode(name="Alice")
        persistence = NodePersistence(kv)

        assert await persistence.save(GraphSnapshot(nodes=[alice], accessible_ids=[alice.id])) is True

        assert json.loads(kv.data[ACCESSIBLE_KEY]) == [alice.id]
        assert json.loads(kv.data[NODES_KEY])[0]["name"] == "Alice"
        assert persistence.status.last_saved_at is not None
        assert persistence.status.error is None

    @pytest.mark.asyncio
    async def test_save_failure_is_recorded(self):
        """Test that a storage error is recorded instead of raised."""
        kv = MemoryKeyValueStore()
        kv.set_item = AsyncMock(side_effect=OSError("disk full"))
        persistence = NodePersistence(kv)

        assert await persistence.save(GraphSnapshot()) is False
        assert "disk full" in persistence.status.error
        assert persistence.status.saving is False

    @pytest.mark.asyncio
    async def test_load_failure_is_empty(self):
        """Test that a read error yields an empty snapshot."""
        kv = MemoryKeyValueStore()
        kv.get_item = AsyncMock(side_effect=OSError("locked"))
        persistence = NodePersistence(kv)

        snapshot = await persistence.load()
        assert snapshot.nodes == []
        assert "locked" in persistence.status.error


class TestSqliteStore:
    """Tests for the aiosqlite-backed key-value store."""

    @pytest.mark.asyncio
    async def test_set_get_remove(self, tmp_path):
        """Test basic key-value operations against a real database file."""
        kv = SqliteKeyValueStore(tmp_path / "nested" / "state.db")
        await kv.connect()
        try:
            assert await kv.get_item("k") is None
            await kv.set_item("k", "v1")
            await kv.set_item("k", "v2")
            assert await kv.get_item("k") == "v2"
            await kv.remove_item("k")
            assert await kv.get_item("k") is None
        finally:
            await kv.close()

    @pytest.mark.asyncio
    async def test_data_survives_reconnect(self, tmp_path):
        """Test that values persist across connections."""
        path = tmp_path / "state.db"
        kv = SqliteKeyValueStore(path)
        await kv.connect()
        await kv.set_item(NODES_KEY, "[]")
        await kv.close()

        kv = SqliteKeyValueStore(path)
        await kv.connect()
        assert await kv.get_item(NODES_KEY) == "[]"
        await kv.close()

    def test_get_store_factory(self, tmp_path):
        """Test backend selection."""
        assert isinstance(get_store(tmp_path, "memory"), MemoryKeyValueStore)
        assert isinstance(get_store(tmp_path, "sqlite"), SqliteKeyValueStore)
        with pytest.raises(ValueError):
            get_store(tmp_path, "redis")
