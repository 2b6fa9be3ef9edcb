"""AI session: one live channel connection plus a single event dispatch loop."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from node_wallet_ai.session.channel import SessionChannel, SessionSetup
from node_wallet_ai.session.events import (
    SessionClosed,
    SetupComplete,
    ToolCallEvent,
    TurnComplete,
)

if TYPE_CHECKING:
    from node_wallet_ai.tools.bridge import ToolBridge

logger = logging.getLogger("node_wallet_ai.session")

TurnListener = Callable[[str], None]


class AISession:
    """Owns at most one connection to the AI runtime.

    Events from the channel are consumed by one loop in arrival order: tool
    calls go to the bridge and the response is sent back before the next
    event is read; completed turns are forwarded to listeners and to any
    caller waiting in :meth:`ask`.
    """

    def __init__(self, channel: SessionChannel, bridge: ToolBridge) -> None:
        self.channel = channel
        self.bridge = bridge
        self._connected = False
        self._connect_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None
        self._listeners: list[TurnListener] = []
        self._waiters: list[asyncio.Future[str]] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    def add_turn_listener(self, listener: TurnListener) -> None:
        self._listeners.append(listener)

    def remove_turn_listener(self, listener: TurnListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self, setup: SessionSetup) -> bool:
        """Open the channel. A second call while connected is a no-op returning ``True``."""
        async with self._connect_lock:
            if self._connected:
                return True
            try:
                await self.channel.connect(setup)
            except Exception as e:
                logger.error(f"Session connect failed: {e}")
                return False
            self._connected = True
            self._loop_task = asyncio.get_running_loop().create_task(self._dispatch_loop())
            logger.info("AI session connected")
            return True

    async def disconnect(self) -> None:
        if not self._connected:
            return
        try:
            await self.channel.disconnect()
        except Exception as e:
            logger.warning(f"Error while closing session channel: {e}")
        task = self._loop_task
        if task is not None:
            try:
                await asyncio.wait_for(task, timeout=5)
            except asyncio.TimeoutError:
                task.cancel()
        self._mark_closed("disconnected")

    def _mark_closed(self, reason: str) -> None:
        self._connected = False
        self._loop_task = None
        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_exception(RuntimeError(f"Session closed: {reason}"))

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_text(self, text: str) -> None:
        if not self._connected:
            raise RuntimeError("AI session is not connected.")
        await self.channel.send([text], turn_complete=True)

    async def ask(self, text: str, timeout: float | None = None) -> str:
        """Send *text* and wait for the text of the turn it starts."""
        fut: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await self.send_text(text)
        except Exception:
            self._waiters.remove(fut)
            raise
        return await asyncio.wait_for(fut, timeout=timeout)

    # ------------------------------------------------------------------
    # Dispatch loop
    # ------------------------------------------------------------------

    async def _dispatch_loop(self) -> None:
        while True:
            event = await self.channel.events.get()
            if isinstance(event, SetupComplete):
                logger.debug("Session setup complete")
            elif isinstance(event, ToolCallEvent):
                names = [c.name for c in event.function_calls]
                logger.info(f"Tool call from AI: {names}")
                response = await self.bridge.handle_tool_call(event)
                try:
                    await self.channel.send_tool_response(response)
                except Exception as e:
                    logger.error(f"Failed to send tool response: {e}")
            elif isinstance(event, TurnComplete):
                self._deliver(event.text)
            elif isinstance(event, SessionClosed):
                logger.info(f"AI session closed: {event.reason or 'no reason given'}")
                self._mark_closed(event.reason)
                return

    def _deliver(self, text: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(text)
            except Exception as e:
                logger.error(f"Turn listener error: {e}")
        while self._waiters:
            fut = self._waiters.pop(0)
            if not fut.done():
                fut.set_result(text)
                break
