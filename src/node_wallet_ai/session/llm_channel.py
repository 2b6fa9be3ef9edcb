"""Session channel driven by a chat-completion provider.

Each user turn runs as a background task: the model is called, any tool
calls it makes are emitted as a ``ToolCallEvent``, and the task waits for
the matching tool response before calling the model again. The turn ends
with a ``TurnComplete`` carrying the model's final text.
"""

from __future__ import annotations

import asyncio
import logging

from node_wallet_ai.llm.base import BaseLLMProvider, LLMMessage, ToolDefinition
from node_wallet_ai.session.channel import SessionChannel, SessionSetup
from node_wallet_ai.session.events import (
    FunctionCall,
    SessionClosed,
    SetupComplete,
    ToolCallEvent,
    ToolResponse,
    TurnComplete,
    envelope_text,
)

logger = logging.getLogger("node_wallet_ai.session.llm")


class LLMSessionChannel(SessionChannel):
    """Runs the tool-calling loop against an :class:`BaseLLMProvider`."""

    def __init__(self, provider: BaseLLMProvider, max_tool_rounds: int = 8) -> None:
        super().__init__()
        self.provider = provider
        self.max_tool_rounds = max_tool_rounds
        self._history: list[LLMMessage] = []
        self._tools: list[ToolDefinition] = []
        self._turn_lock = asyncio.Lock()
        self._turns: set[asyncio.Task] = set()
        self._pending_response: asyncio.Future[ToolResponse] | None = None
        self._open = False

    @property
    def history(self) -> list[LLMMessage]:
        return list(self._history)

    async def connect(self, setup: SessionSetup) -> None:
        self._history = []
        if setup.system_instruction:
            self._history.append(LLMMessage(role="system", content=setup.system_instruction))
        self._tools = list(setup.tools)
        self._open = True
        self.emit(SetupComplete())

    def update_setup(self, setup: SessionSetup) -> None:
        self._tools = list(setup.tools)
        rest = [m for m in self._history if m.role != "system"]
        head = [LLMMessage(role="system", content=setup.system_instruction)] if setup.system_instruction else []
        self._history = head + rest

    async def send(self, parts: list[str], turn_complete: bool = True) -> None:
        if not self._open:
            raise RuntimeError("Session is not connected.")
        self._history.append(LLMMessage(role="user", content="\n".join(parts)))
        if not turn_complete:
            return
        task = asyncio.get_running_loop().create_task(self._run_turn())
        self._turns.add(task)
        task.add_done_callback(self._turns.discard)

    async def send_tool_response(self, response: ToolResponse) -> None:
        if self._pending_response is None or self._pending_response.done():
            logger.warning("Tool response received with no tool call pending")
            return
        self._pending_response.set_result(response)

    async def disconnect(self) -> None:
        if not self._open:
            return
        self._open = False
        for task in list(self._turns):
            task.cancel()
        if self._turns:
            await asyncio.gather(*self._turns, return_exceptions=True)
        self.emit(SessionClosed(reason="client disconnect"))

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    async def _run_turn(self) -> None:
        async with self._turn_lock:
            try:
                text = await self._complete_turn()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"AI turn failed: {e}")
                text = f"Sorry, the AI request failed: {e}"
            self.emit(TurnComplete(text=text))

    async def _complete_turn(self) -> str:
        for _ in range(self.max_tool_rounds):
            response = await self.provider.complete(messages=self._history, tools=self._tools or None)
            if not response.tool_calls:
                reply = response.content or ""
                self._history.append(LLMMessage(role="assistant", content=reply))
                return reply

            self._history.append(
                LLMMessage(
                    role="assistant",
                    content=response.content or "",
                    tool_calls=[
                        {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
                        for tc in response.tool_calls
                    ],
                )
            )
            self._pending_response = asyncio.get_running_loop().create_future()
            self.emit(
                ToolCallEvent(
                    function_calls=[
                        FunctionCall(id=tc.id, name=tc.name, args=tc.arguments)
                        for tc in response.tool_calls
                    ]
                )
            )
            tool_response = await self._pending_response
            self._pending_response = None

            answered = {r.id: r for r in tool_response.function_responses}
            for tc in response.tool_calls:
                r = answered.get(tc.id)
                content = envelope_text(r.response) if r is not None else "Tool error: no response"
                self._history.append(LLMMessage(role="tool", content=content, tool_call_id=tc.id))

        logger.warning(f"Turn stopped after {self.max_tool_rounds} tool rounds")
        return f"Stopped after {self.max_tool_rounds} tool rounds without a final answer."
