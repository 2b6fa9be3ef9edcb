"""Session channel interface.

A channel is the transport to the AI runtime. It pushes typed events onto
its :attr:`SessionChannel.events` queue and accepts outbound text and tool
responses.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from node_wallet_ai.llm.base import ToolDefinition
from node_wallet_ai.session.events import SessionEvent, ToolResponse


@dataclass
class SessionSetup:
    system_instruction: str = ""
    tools: list[ToolDefinition] = field(default_factory=list)


class SessionChannel(ABC):
    """Bidirectional message channel to the AI runtime."""

    def __init__(self) -> None:
        self.events: asyncio.Queue[SessionEvent] = asyncio.Queue()

    def emit(self, event: SessionEvent) -> None:
        self.events.put_nowait(event)

    def update_setup(self, setup: SessionSetup) -> None:
        """Refresh instruction and tools for later turns, where the transport allows it."""

    @abstractmethod
    async def connect(self, setup: SessionSetup) -> None:
        """Open the session. Emits ``SetupComplete`` once ready."""

    @abstractmethod
    async def send(self, parts: list[str], turn_complete: bool = True) -> None:
        """Send user text. Must not wait for the model's reply."""

    @abstractmethod
    async def send_tool_response(self, response: ToolResponse) -> None:
        """Answer the most recent ``ToolCallEvent``."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the session. Emits ``SessionClosed``."""
