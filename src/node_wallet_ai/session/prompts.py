"""System instruction for the assistant session."""

from __future__ import annotations

from node_wallet_ai.llm.base import ToolDefinition
from node_wallet_ai.nodes.store import NodeGraphStore
from node_wallet_ai.storage.models import AnyNode, EventNode, PersonNode

BASE_INSTRUCTION = """\
You are a helpful assistant for a personal Solana wallet and relationship graph.
The user keeps contacts (people), events and communities as nodes. You can only
see the nodes the user has explicitly shared with you.

Rules for moving funds:
- Always call create_sol_transfer with execute=false first and show the preview.
- Only call it again with execute=true after the user clearly confirms that exact
  recipient and amount in their latest message.
- Never retry a failed transfer on your own; explain the error and let the user
  decide.

When the user refers to a contact by name, look it up with the node tools and
use its wallet address. Keep answers short."""


def _describe(node: AnyNode) -> str:
    line = f"- [{node.kind.value}] {node.name} (id={node.id})"
    if isinstance(node, PersonNode) and node.wallet_address:
        line += f" wallet={node.wallet_address}"
    elif isinstance(node, EventNode):
        line += f" date={node.date.date().isoformat()}"
    return line


def node_context(store: NodeGraphStore) -> str:
    """Describe the active and selected nodes the AI is allowed to see."""
    visible = [n for n in store.active_nodes if store.is_llm_accessible(n.id)]
    lines = [f"Nodes shared with you: {len(store.get_llm_accessible_nodes())}."]
    if visible:
        lines.append("Nodes currently in focus:")
        lines.extend(_describe(n) for n in visible)
    selected = store.selected_node
    if selected is not None and store.is_llm_accessible(selected.id):
        lines.append(f"Selected node: {selected.name} (id={selected.id})")
    return "\n".join(lines)


def build_system_instruction(
    store: NodeGraphStore,
    tools: list[ToolDefinition],
    extra: str = "",
) -> str:
    tool_lines = "\n".join(f"- {t.name}: {t.description}" for t in tools)
    parts = [BASE_INSTRUCTION, f"Available tools:\n{tool_lines}", node_context(store)]
    if extra.strip():
        parts.append(extra.strip())
    return "\n\n".join(parts)
