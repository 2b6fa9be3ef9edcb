"""Tools the AI runtime may call, grouped into wallet and node families."""

from node_wallet_ai.tools.bridge import CATALOGUE_VERSION, ToolBridge
from node_wallet_ai.tools.registry import Tool, ToolRegistry

__all__ = ["CATALOGUE_VERSION", "Tool", "ToolBridge", "ToolRegistry"]
