"""Pytest configuration and fixtures for node-wallet-ai tests."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from solders.hash import Hash
from solders.keypair import Keypair

from node_wallet_ai.nodes.persistence import NodePersistence
from node_wallet_ai.nodes.store import NodeGraphStore
from node_wallet_ai.session.channel import SessionChannel
from node_wallet_ai.session.events import (
    SessionClosed,
    SetupComplete,
    TurnComplete,
    envelope_text,
)
from node_wallet_ai.storage.kv import MemoryKeyValueStore
from node_wallet_ai.tools.bridge import ToolBridge
from node_wallet_ai.wallet.backends import KeypairBackend
from node_wallet_ai.wallet.clusters import get_cluster
from node_wallet_ai.wallet.executor import WalletExecutor
from node_wallet_ai.wallet.provider import SolanaProvider

SOL = 1_000_000_000
TEST_SIGNATURE = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"


def result_json(envelope):
    """Decode the JSON payload of a tool result envelope."""
    return json.loads(envelope_text(envelope))


@pytest.fixture
def kv():
    """Empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv):
    """Node graph store persisting to the in-memory key-value store."""
    return NodeGraphStore(NodePersistence(kv))


@pytest.fixture
def keypair():
    """The wallet owner's keypair."""
    return Keypair()


@pytest.fixture
def recipient():
    """A second wallet used as a transfer destination."""
    return Keypair().pubkey()


@pytest.fixture
def cluster():
    return get_cluster("devnet")


@pytest.fixture
def mock_provider():
    """SolanaProvider with every RPC call mocked. Balance starts at 2 SOL."""
    provider = MagicMock(spec=SolanaProvider)
    provider.endpoint = "https://api.devnet.solana.com"
    provider.get_balance = AsyncMock(return_value=2 * SOL)
    provider.get_latest_blockhash = AsyncMock(return_value=Hash.default())
    provider.get_fee_for_message = AsyncMock(return_value=5000)
    provider.get_signatures = AsyncMock(return_value=[])
    provider.get_transaction_fee = AsyncMock(return_value=5000)
    provider.submit_and_confirm = AsyncMock(return_value=TEST_SIGNATURE)
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def executor(mock_provider):
    """Disconnected wallet executor over the mocked provider."""
    return WalletExecutor(mock_provider)


@pytest_asyncio.fixture
async def connected_executor(executor, keypair):
    """Wallet executor connected through an in-process keypair."""
    await executor.connect(KeypairBackend(keypair=keypair))
    return executor


@pytest.fixture
def bridge(store, executor, cluster):
    """Tool bridge over the store and a (possibly disconnected) executor."""
    return ToolBridge(store, executor, cluster)


@pytest.fixture
def alice(store, recipient):
    """A shared contact with a wallet."""
    node = store.create("person", {"name": "Alice", "wallet_address": str(recipient)})
    store.set_llm_accessible(node.id, True)
    return node


class ScriptedChannel(SessionChannel):
    """Session channel that replays a fixed list of events for every user turn."""

    def __init__(self, script=None, fail_connect=False):
        super().__init__()
        self.script = list(script or [])
        self.fail_connect = fail_connect
        self.sent = []
        self.tool_responses = []
        self.setups = []
        self.responded = asyncio.Event()

    async def connect(self, setup):
        if self.fail_connect:
            raise ConnectionError("runtime unreachable")
        self.setups.append(setup)
        self.emit(SetupComplete())

    def update_setup(self, setup):
        self.setups.append(setup)

    async def send(self, parts, turn_complete=True):
        self.sent.append(parts)
        for event in self.script:
            self.emit(event)

    async def send_tool_response(self, response):
        self.tool_responses.append(response)
        self.responded.set()

    async def disconnect(self):
        self.emit(SessionClosed(reason="client disconnect"))


@pytest.fixture
def scripted_channel():
    """Factory for a ScriptedChannel; defaults to answering every turn with 'ok'."""

    def _make(script=None, fail_connect=False):
        if script is None:
            script = [TurnComplete(text="ok")]
        return ScriptedChannel(script, fail_connect=fail_connect)

    return _make
