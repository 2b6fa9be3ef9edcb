"""Tests for node_wallet_ai.tools.registry module."""

import pytest

from node_wallet_ai.tools.registry import ToolRegistry

SCHEMA = {"type": "object", "properties": {"name": {"type": "string"}}, "required": ["name"]}


class TestToolDecorator:
    """Tests for registering tools with the decorator."""

    def test_schema_is_stored_as_given(self):
        """Test that the declared schema is published unchanged."""
        registry = ToolRegistry()

        @registry.tool("greet", "Say hello", SCHEMA)
        def greet(name: str) -> str:
            return f"hello {name}"

        entry = registry.get_tool("greet").to_catalogue_entry()
        assert entry == {"name": "greet", "description": "Say hello", "inputSchema": SCHEMA}
        assert len(registry) == 1

    def test_schema_is_required(self):
        """Test that a tool cannot be registered without a schema."""
        registry = ToolRegistry()
        with pytest.raises(TypeError):
            registry.tool("greet", "Say hello")

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self):
        """Test that both handler styles execute and dict results become JSON."""
        registry = ToolRegistry()

        @registry.tool("sync", "Sync", {"type": "object", "properties": {}})
        def sync_tool():
            return {"ok": True}

        @registry.tool("async", "Async", {"type": "object", "properties": {}})
        async def async_tool():
            return "done"

        assert registry.get_tool("async").is_async is True
        assert await registry.get_tool("sync").execute() == '{"ok": true}'
        assert await registry.get_tool("async").execute() == "done"
