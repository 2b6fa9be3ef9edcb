"""Tool bridge between the AI session and the application state.

The bridge owns a :class:`ToolRegistry` filled with the wallet and node tool
families, publishes it as a versioned catalogue, and dispatches incoming
calls. Every dispatch returns the same content envelope; exceptions never
cross this boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from node_wallet_ai.config import LimitsConfig
from node_wallet_ai.llm.base import ToolDefinition
from node_wallet_ai.nodes.store import GraphChange, NodeGraphStore
from node_wallet_ai.session.events import FunctionResponse, ToolCallEvent, ToolResponse, text_envelope
from node_wallet_ai.tools.node_tools import register_node_tools
from node_wallet_ai.tools.rate_limiter import RateLimiter
from node_wallet_ai.tools.registry import ToolRegistry
from node_wallet_ai.tools.wallet_tools import TRANSFER_BUCKET, register_wallet_tools
from node_wallet_ai.wallet.clusters import Cluster
from node_wallet_ai.wallet.executor import WalletExecutor, WalletNotConnectedError

logger = logging.getLogger("node_wallet_ai.tools.bridge")

CATALOGUE_VERSION = "1.1.0"


class ToolBridge:
    """Publishes the tool catalogue and executes tool calls.

    Parameters
    ----------
    store:
        The node graph. Tools read it live on every call.
    executor:
        The wallet executor used by the wallet tools.
    cluster:
        Cluster the executor talks to, used for explorer links.
    limits:
        Transfer rate limit and history cap.
    """

    def __init__(
        self,
        store: NodeGraphStore,
        executor: WalletExecutor,
        cluster: Cluster,
        limits: LimitsConfig | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        limits = limits or LimitsConfig()
        self.store = store
        self.executor = executor
        self.registry = ToolRegistry()
        self.limiter = limiter or RateLimiter()
        self.limiter.configure(TRANSFER_BUCKET, max_count=limits.transfers_per_hour, window_seconds=3600)
        self._revision = 0

        register_wallet_tools(
            self.registry, executor, store, cluster, self.limiter, max_history=limits.max_history
        )
        register_node_tools(self.registry, store)
        store.subscribe(self._on_graph_change)
        logger.info(f"Tool bridge ready with {len(self.registry)} tools")

    # ------------------------------------------------------------------
    # Catalogue
    # ------------------------------------------------------------------

    @property
    def version(self) -> str:
        return CATALOGUE_VERSION

    @property
    def revision(self) -> int:
        """Bumped on every graph change so callers can tell the catalogue's view moved."""
        return self._revision

    def _on_graph_change(self, change: GraphChange) -> None:
        self._revision += 1

    def definitions(self) -> list[ToolDefinition]:
        return [t.to_definition() for t in self.registry.get_tools()]

    def catalogue(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "revision": self.revision,
            "tools": [t.to_catalogue_entry() for t in self.registry.get_tools()],
        }

    def close(self) -> None:
        self.store.unsubscribe(self._on_graph_change)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, name: str, args: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run tool *name* with *args* and wrap the result in a content envelope."""
        tool = self.registry.get_tool(name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {name}")
            return text_envelope(f"Error: Unknown tool '{name}'.")

        if args is None:
            args = {}
        elif not isinstance(args, Mapping):
            logger.warning(f"Non-object arguments for {name}: {type(args).__name__}")
            return text_envelope(f"Error: Arguments for {name} must be an object.")
        properties = tool.parameters.get("properties", {})
        unexpected = [k for k in args if k not in properties]
        if unexpected:
            logger.debug(f"Dropping unexpected arguments for {name}: {unexpected}")
        kwargs = {k: v for k, v in args.items() if k in properties}
        missing = [k for k in tool.parameters.get("required", []) if kwargs.get(k) is None]
        if missing:
            return text_envelope(f"Error: Missing required argument(s) for {name}: {', '.join(missing)}")

        logger.info(f"Calling tool: {name}({kwargs})")
        try:
            text = await tool.execute(**kwargs)
        except WalletNotConnectedError as e:
            text = str(e)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            text = f"Tool error: {e}"
        return text_envelope(text)

    async def handle_tool_call(self, event: ToolCallEvent) -> ToolResponse:
        """Execute each function call in arrival order and pair results with call ids."""
        responses = []
        for call in event.function_calls:
            try:
                envelope = await self.dispatch(call.name, call.args)
            except Exception as e:
                logger.error(f"Dispatch of {call.name} failed: {e}")
                envelope = text_envelope(f"Tool error: {e}")
            responses.append(FunctionResponse(id=call.id, name=call.name, response=envelope))
        return ToolResponse(function_responses=responses)
