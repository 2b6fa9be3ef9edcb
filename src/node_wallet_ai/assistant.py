"""Assistant - wires the node graph, wallet, tool bridge and AI session together."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from node_wallet_ai.config import AppConfig, WalletConfig, get_app_dir, is_unresolved, load_config, save_config
from node_wallet_ai.interpreter import AICommand, GetBalance, ViewNode, format_response, is_actionable, parse
from node_wallet_ai.llm.router import LLMRouter
from node_wallet_ai.nodes.persistence import NodePersistence
from node_wallet_ai.nodes.store import NodeGraphStore
from node_wallet_ai.session.channel import SessionChannel, SessionSetup
from node_wallet_ai.session.events import envelope_text
from node_wallet_ai.session.llm_channel import LLMSessionChannel
from node_wallet_ai.session.prompts import build_system_instruction
from node_wallet_ai.session.session import AISession
from node_wallet_ai.storage.kv import KeyValueStore, get_store
from node_wallet_ai.storage.models import EventNode, PersonNode
from node_wallet_ai.tools.bridge import ToolBridge
from node_wallet_ai.wallet.backends import build_backend
from node_wallet_ai.wallet.clusters import Cluster, get_cluster
from node_wallet_ai.wallet.executor import WalletExecutor, WalletState
from node_wallet_ai.wallet.keystore import load_keypair_file
from node_wallet_ai.wallet.provider import SolanaProvider

logger = logging.getLogger("node_wallet_ai.assistant")


@dataclass
class Reply:
    text: str
    command: AICommand
    handled_locally: bool = False


def resolve_rpc_url(wallet: WalletConfig) -> str | None:
    """Configured RPC URL, else ``SOLANA_RPC_URL``, else ``None`` (cluster default)."""
    url = wallet.rpc_url
    if url and not is_unresolved(url):
        return url
    return os.environ.get("SOLANA_RPC_URL") or None


class Assistant:
    """One user's node graph, wallet and AI session."""

    def __init__(
        self,
        config: AppConfig,
        app_dir: Path,
        kv: KeyValueStore,
        store: NodeGraphStore,
        executor: WalletExecutor,
        bridge: ToolBridge,
        cluster: Cluster,
    ):
        self.config = config
        self.app_dir = app_dir
        self.kv = kv
        self.store = store
        self.executor = executor
        self.bridge = bridge
        self.cluster = cluster
        self.session: AISession | None = None
        self._router: LLMRouter | None = None

    @classmethod
    async def load(cls, base_path: Path | None = None, config: AppConfig | None = None) -> Assistant:
        """Open storage, load the graph and build the wallet and tool bridge."""
        app_dir = get_app_dir(base_path)
        if config is None:
            config = load_config(app_dir / "config.yaml")

        kv = get_store(app_dir, config.storage.backend, config.storage.path)
        await kv.connect()
        store = NodeGraphStore(NodePersistence(kv))
        await store.load()

        cluster = get_cluster(config.wallet.cluster)
        provider = SolanaProvider(
            cluster,
            rpc_url=resolve_rpc_url(config.wallet),
            timeout=config.wallet.request_timeout,
        )
        executor = WalletExecutor(provider)
        bridge = ToolBridge(store, executor, cluster, config.limits)
        logger.info(f"Loaded {len(store)} nodes from {app_dir}")
        return cls(config, app_dir, kv, store, executor, bridge, cluster)

    @classmethod
    async def init(cls, base_path: Path | None = None, name: str = "My Node Wallet") -> Assistant:
        """Write a default config (if none exists) and load."""
        app_dir = get_app_dir(base_path)
        config_path = app_dir / "config.yaml"
        if config_path.exists():
            config = load_config(config_path)
        else:
            config = AppConfig(name=name)
            save_config(config, config_path)
        return await cls.load(base_path, config)

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------

    @property
    def keypair_path(self) -> Path:
        return self.app_dir / self.config.wallet.keypair_file

    async def connect_wallet(self, secret: str | None = None) -> WalletState:
        """Connect the configured backend.

        For the keypair backend with no secret given or configured, the
        keypair file in the app directory is used if present.
        """
        wallet = self.config.wallet
        keypair = None
        has_secret = bool(secret) or bool(wallet.secret_key and not is_unresolved(wallet.secret_key))
        if wallet.backend == "keypair" and not has_secret and self.keypair_path.exists():
            keypair = load_keypair_file(self.keypair_path)
        backend = build_backend(wallet, secret, keypair=keypair)
        return await self.executor.connect(backend)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def session_setup(self) -> SessionSetup:
        tools = self.bridge.definitions()
        return SessionSetup(
            system_instruction=build_system_instruction(
                self.store, tools, self.config.session.system_instruction
            ),
            tools=tools,
        )

    def _default_channel(self) -> SessionChannel:
        if self._router is None:
            self._router = LLMRouter(self.config.llm)
        provider = self._router.get_provider(self.config.session.provider, self.config.session.model)
        return LLMSessionChannel(provider, max_tool_rounds=self.config.session.max_tool_rounds)

    async def start_session(self, channel: SessionChannel | None = None) -> bool:
        if self.session is not None and self.session.is_connected:
            return True
        self.session = AISession(channel or self._default_channel(), self.bridge)
        return await self.session.connect(self.session_setup())

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def _describe_locally(self, command: ViewNode) -> str:
        node = command.node
        self.store.select(node)
        lines = [format_response(command)]
        if node.description:
            lines.append(node.description)
        if isinstance(node, PersonNode):
            lines.append(f"Wallet: {node.wallet_address or 'None'}")
            lines.append(f"Transactions: {node.total_transactions}")
        elif isinstance(node, EventNode):
            lines.append(f"Date: {node.date.isoformat()}")
            if node.location:
                lines.append(f"Location: {node.location}")
        if node.tags:
            lines.append(f"Tags: {', '.join(node.tags)}")
        return "\n".join(lines)

    async def handle_text(self, text: str, timeout: float | None = 120.0) -> Reply:
        """Answer one line of user input.

        Actionable balance and view requests are answered locally. Everything
        else (including transfers, which must go through the preview step) is
        forwarded to the AI session.
        """
        command = parse(text, self.store.nodes)
        if is_actionable(command):
            if isinstance(command, GetBalance):
                envelope = await self.bridge.dispatch("get_wallet_balance", {})
                return Reply(envelope_text(envelope), command, handled_locally=True)
            if isinstance(command, ViewNode):
                return Reply(self._describe_locally(command), command, handled_locally=True)

        if not await self.start_session():
            raise RuntimeError("AI session is unavailable. Check the llm section of your config.")
        assert self.session is not None
        self.session.channel.update_setup(self.session_setup())
        answer = await self.session.ask(text, timeout=timeout)
        return Reply(answer, command)

    async def shutdown(self) -> None:
        """Clean shutdown."""
        if self.session is not None:
            await self.session.disconnect()
        self.bridge.close()
        await self.executor.close()
        if self._router is not None:
            await self._router.close()
        await self.store.flush()
        await self.kv.close()
