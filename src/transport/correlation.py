"""Correlation transport: request/response plus push events across the page/extension boundary.

Strategies, in priority order:
  1. Direct channel (addressed call with native request/response pairing)
  2. Broadcast fallback (requestId-tagged post + one-time filtered listener)

Every call is bounded by a fixed timeout; the transport never retries.
Unsolicited messages are routed by ``type`` to a single callback per push family.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

from src.contracts.extension_v1 import BroadcastEnvelope, PushFamily, push_family
from src.core.errors import (
    RequestRejected,
    TransportTimeout,
    TransportUnavailable,
)
from src.core.ids import generate_request_id
from src.core.logger import logger
from src.transport.broadcast import BroadcastBus
from src.transport.direct import DirectChannel

PushCallback = Callable[[dict[str, Any]], None]

STRATEGY_DIRECT = "direct"
STRATEGY_BROADCAST = "broadcast"


class CorrelationTransport:
    """Synchronous-looking async API over the direct and broadcast channels."""

    def __init__(
        self,
        *,
        extension_id: str,
        marker: str,
        direct: DirectChannel | None = None,
        bus: BroadcastBus | None = None,
        timeout_s: float = 5.0,
    ):
        self._extension_id = extension_id
        self._marker = marker
        self._direct = direct
        self._bus = bus
        self._timeout_s = timeout_s
        self._callbacks: dict[PushFamily, PushCallback] = {}
        self._pending: set[str] = set()
        if self._bus is not None:
            self._bus.add_listener(self._on_bus_message)

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    def is_available(self) -> bool:
        return self._direct_available() or self._bus is not None

    def _direct_available(self) -> bool:
        if self._direct is None:
            return False
        try:
            return bool(self._direct.available())
        except Exception:
            return False

    async def send(self, message: dict[str, Any]) -> Any:
        """Deliver one request and return its single matching response.

        Raises TransportUnavailable, RequestRejected or TransportTimeout.
        """
        message_type = str(message.get("type") or "")
        if not message_type:
            raise ValueError("extension message must carry a 'type'")
        if self._direct_available():
            return await self._send_direct(message_type, message)
        if self._bus is not None:
            return await self._send_broadcast(message_type, message)
        logger.transport_response(
            message_type, "none", 0.0, False, error_reason="Extension API not available"
        )
        raise TransportUnavailable("Extension API not available")

    async def _send_direct(self, message_type: str, message: dict[str, Any]) -> Any:
        assert self._direct is not None
        logger.transport_request(message_type, STRATEGY_DIRECT)
        t0 = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._direct.send_message(self._extension_id, message),
                timeout=self._timeout_s,
            )
        except TimeoutError:
            logger.transport_response(
                message_type,
                STRATEGY_DIRECT,
                time.monotonic() - t0,
                False,
                error_reason="timed out",
            )
            raise TransportTimeout("Extension communication timed out") from None
        except RequestRejected as e:
            logger.transport_response(
                message_type, STRATEGY_DIRECT, time.monotonic() - t0, False, error_reason=str(e)
            )
            raise
        except Exception as e:
            # A missing receiver surfaces as an arbitrary runtime error; treat it as a rejection
            logger.transport_response(
                message_type, STRATEGY_DIRECT, time.monotonic() - t0, False, error_reason=str(e)
            )
            raise RequestRejected(str(e) or type(e).__name__) from e
        logger.transport_response(message_type, STRATEGY_DIRECT, time.monotonic() - t0, True)
        return response

    async def _send_broadcast(self, message_type: str, message: dict[str, Any]) -> Any:
        assert self._bus is not None
        bus = self._bus
        request_id = generate_request_id()
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()

        def on_response(event: dict[str, Any]) -> None:
            if event.get("source") != self._marker or event.get("requestId") != request_id:
                return
            bus.remove_listener(on_response)
            if not future.done():
                future.set_result(event)

        self._pending.add(request_id)
        bus.add_listener(on_response)
        logger.transport_request(message_type, STRATEGY_BROADCAST, request_id)
        t0 = time.monotonic()
        try:
            bus.post(BroadcastEnvelope.wrap(message, self._marker, request_id).to_wire())
            response = await asyncio.wait_for(future, timeout=self._timeout_s)
        except TimeoutError:
            logger.transport_response(
                message_type,
                STRATEGY_BROADCAST,
                time.monotonic() - t0,
                False,
                error_reason="timed out",
            )
            raise TransportTimeout("Extension communication timed out") from None
        finally:
            bus.remove_listener(on_response)
            self._pending.discard(request_id)
        logger.transport_response(message_type, STRATEGY_BROADCAST, time.monotonic() - t0, True)
        return response

    def register(self, family: PushFamily | str, callback: PushCallback | None) -> None:
        """Install the callback for a push family, replacing any previous one. None unregisters."""
        fam = PushFamily(family)
        if callback is None:
            self._callbacks.pop(fam, None)
        else:
            self._callbacks[fam] = callback

    def has_callback(self, family: PushFamily | str) -> bool:
        return PushFamily(family) in self._callbacks

    def _on_bus_message(self, event: dict[str, Any]) -> None:
        if not isinstance(event, dict) or event.get("source") != self._marker:
            return
        if event.get("requestId") in self._pending:
            return
        self.dispatch_push(event)

    def dispatch_push(self, message: dict[str, Any]) -> bool:
        """Route an unsolicited message to its family's callback. Returns True when handled."""
        message_type = str(message.get("type") or "")
        family = push_family(message_type)
        callback = self._callbacks.get(family) if family is not None else None
        logger.push_event(message_type, family.value if family else None, callback is not None)
        if callback is None:
            return False
        try:
            callback(message)
        except Exception:
            logger.exception(f"Push callback failed for {message_type}")
        return True

    def close(self) -> None:
        if self._bus is not None:
            self._bus.remove_listener(self._on_bus_message)
        self._callbacks.clear()
