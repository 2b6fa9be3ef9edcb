"""Tests for node_wallet_ai.assistant module."""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from solders.keypair import Keypair

from conftest import SOL
from node_wallet_ai.assistant import Assistant, resolve_rpc_url
from node_wallet_ai.config import AppConfig, StorageConfig, WalletConfig
from node_wallet_ai.interpreter import GetBalance, SendTransaction, ViewNode
from node_wallet_ai.session.events import TurnComplete
from node_wallet_ai.tools.wallet_tools import NOT_CONNECTED
from node_wallet_ai.wallet.keystore import save_keypair_file


@pytest.fixture
def config():
    return AppConfig(name="Test", storage=StorageConfig(backend="memory"))


@pytest_asyncio.fixture
async def assistant(tmp_path, config):
    assistant = await Assistant.load(tmp_path, config)
    yield assistant
    await assistant.shutdown()


class TestLoad:
    """Tests for loading and initialising."""

    @pytest.mark.asyncio
    async def test_init_writes_config(self, tmp_path):
        """Test that init creates a default config file."""
        assistant = await Assistant.init(tmp_path, name="Fresh")
        try:
            assert (tmp_path / ".node-wallet-ai" / "config.yaml").exists()
            assert assistant.config.name == "Fresh"
            assert assistant.cluster.name == "devnet"
        finally:
            await assistant.shutdown()

    @pytest.mark.asyncio
    async def test_graph_survives_restart(self, tmp_path):
        """Test that nodes persist in the sqlite store across loads."""
        first = await Assistant.init(tmp_path)
        node = first.store.create("person", {"name": "Alice"})
        first.store.set_llm_accessible(node.id, True)
        await first.shutdown()

        second = await Assistant.load(tmp_path)
        try:
            assert second.store.get(node.id).name == "Alice"
            assert second.store.is_llm_accessible(node.id)
        finally:
            await second.shutdown()

    def test_resolve_rpc_url(self, monkeypatch):
        """Test RPC URL precedence."""
        monkeypatch.setenv("SOLANA_RPC_URL", "https://env.example")
        assert resolve_rpc_url(WalletConfig(rpc_url="https://cfg.example")) == "https://cfg.example"
        assert resolve_rpc_url(WalletConfig(rpc_url="${UNSET_RPC_FOR_TEST}")) == "https://env.example"
        monkeypatch.delenv("SOLANA_RPC_URL")
        assert resolve_rpc_url(WalletConfig()) is None


class TestConnectWallet:
    """Tests for wallet connection sources."""

    @pytest.mark.asyncio
    async def test_keypair_file_fallback(self, assistant):
        """Test that the keypair file is used when no secret is configured."""
        kp = Keypair()
        save_keypair_file(kp, assistant.keypair_path)

        with patch.object(assistant.executor.provider, "get_balance", AsyncMock(return_value=SOL)):
            state = await assistant.connect_wallet()

        assert state.public_key == str(kp.pubkey())
        assert state.balance == SOL

    @pytest.mark.asyncio
    async def test_no_key_anywhere(self, assistant):
        """Test that connecting without any key source fails."""
        with pytest.raises(ValueError, match="No secret key configured"):
            await assistant.connect_wallet()


class TestHandleText:
    """Tests for routing user input."""

    @pytest.mark.asyncio
    async def test_balance_is_answered_locally(self, assistant):
        """Test that a balance request skips the AI session."""
        reply = await assistant.handle_text("check my balance")

        assert reply.handled_locally is True
        assert isinstance(reply.command, GetBalance)
        assert reply.text == NOT_CONNECTED
        assert assistant.session is None

    @pytest.mark.asyncio
    async def test_view_selects_node(self, assistant):
        """Test that viewing a node describes it and selects it."""
        node = assistant.store.create("person", {"name": "Alice", "tags": ["friend"]})

        reply = await assistant.handle_text("tell me about Alice")

        assert isinstance(reply.command, ViewNode)
        assert reply.text.startswith("Here's information about Alice")
        assert "Tags: friend" in reply.text
        assert assistant.store.selected_node.id == node.id

    @pytest.mark.asyncio
    async def test_transfers_go_to_the_session(self, assistant, scripted_channel):
        """Test that a transfer request is forwarded to the AI session."""
        channel = scripted_channel([TurnComplete(text="Here is the preview")])
        assert await assistant.start_session(channel) is True

        reply = await assistant.handle_text("send 0.5 sol to Alice")

        assert reply.handled_locally is False
        assert isinstance(reply.command, SendTransaction)
        assert reply.text == "Here is the preview"
        assert channel.sent == [["send 0.5 sol to Alice"]]
        assert "create_sol_transfer" in channel.setups[-1].system_instruction

    @pytest.mark.asyncio
    async def test_session_unavailable(self, assistant, scripted_channel):
        """Test the error when the AI session cannot connect."""
        with patch.object(assistant, "_default_channel", return_value=scripted_channel(fail_connect=True)):
            with pytest.raises(RuntimeError, match="AI session is unavailable"):
                await assistant.handle_text("hello there")
