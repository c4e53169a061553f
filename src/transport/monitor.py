"""Connection monitor: periodic liveness probe plus tab-bridge push tracking."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from src.contracts.extension_v1 import PushFamily, PushType, RequestType
from src.core.logger import logger
from src.transport.correlation import CorrelationTransport


class ConnectionState(StrEnum):
    UNKNOWN = "unknown"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ConnectionSnapshot:
    state: ConnectionState
    tab_connected: bool
    tab_id: int | None
    last_checked: str | None


def _is_positive(response: Any) -> bool:
    if response is None:
        return False
    if isinstance(response, dict):
        if response.get("connected") is False or response.get("success") is False:
            return False
    return True


class ConnectionMonitor:
    def __init__(
        self,
        transport: CorrelationTransport,
        interval_s: float = 30.0,
        on_change: Callable[[ConnectionSnapshot], None] | None = None,
    ):
        self._transport = transport
        self._interval_s = interval_s
        self._on_change = on_change
        self.state = ConnectionState.UNKNOWN
        self.tab_connected = False
        self.tab_id: int | None = None
        self.last_checked: str | None = None
        self.checking = False
        self.pong_message = ""
        self._task: asyncio.Task | None = None

    @property
    def extension_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def snapshot(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            state=self.state,
            tab_connected=self.tab_connected,
            tab_id=self.tab_id,
            last_checked=self.last_checked,
        )

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.snapshot())
        except Exception:
            logger.exception("Connection on_change callback failed")

    async def check(self) -> ConnectionState:
        """Run one CONNECTION_CHECK probe. Never raises."""
        self.checking = True
        try:
            response = await self._transport.send({"type": RequestType.CONNECTION_CHECK.value})
        except Exception as e:
            logger.warning(f"Extension connection check failed: {e}")
            self.state = ConnectionState.DISCONNECTED
            self.tab_connected = False
            self.tab_id = None
        else:
            if _is_positive(response):
                self.state = ConnectionState.CONNECTED
                if isinstance(response, dict) and "datTabConnected" in response:
                    self.tab_connected = bool(response.get("datTabConnected"))
                    self.tab_id = response.get("tabId") if self.tab_connected else None
            else:
                logger.info(f"Extension answered connection check negatively: {response!r}")
                self.state = ConnectionState.DISCONNECTED
                self.tab_connected = False
                self.tab_id = None
        finally:
            self.checking = False
            self.last_checked = datetime.now(UTC).isoformat()
        self._notify()
        return self.state

    def _on_tab_event(self, message: dict[str, Any]) -> None:
        message_type = message.get("type")
        if message_type == PushType.DAT_TAB_CONNECTED:
            self.tab_connected = True
            self.tab_id = message.get("tabId")
        elif message_type == PushType.DAT_TAB_DISCONNECTED:
            self.tab_connected = False
            self.tab_id = None
        else:
            return
        self._notify()

    def _on_extension_event(self, message: dict[str, Any]) -> None:
        if message.get("type") == PushType.EXTENSION_DETECTED:
            self.state = ConnectionState.CONNECTED
            self._notify()

    async def _run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self._interval_s)

    def start(self) -> None:
        """Subscribe to push events and probe now and every interval."""
        self._transport.register(PushFamily.TAB, self._on_tab_event)
        self._transport.register(PushFamily.EXTENSION, self._on_extension_event)
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        self._transport.register(PushFamily.TAB, None)
        self._transport.register(PushFamily.EXTENSION, None)
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def ping(self) -> str:
        """Ask the extension to ping the DAT tab. Advisory text only."""
        self.pong_message = "Sending ping..."
        try:
            response = await self._transport.send({"type": RequestType.PING_DAT_TAB.value})
        except Exception as e:
            self.pong_message = f"Failed to communicate with extension: {e}"
            return self.pong_message
        if isinstance(response, dict) and response.get("message"):
            self.pong_message = str(response["message"])
        elif isinstance(response, dict) and response.get("error"):
            self.pong_message = f"Error: {response['error']}"
        else:
            self.pong_message = "Got response but no message"
        return self.pong_message
