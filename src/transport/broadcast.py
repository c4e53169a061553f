"""Window-scoped broadcast bus used as the fallback channel to the extension.

Semantics follow ``window.postMessage``: every posted payload is delivered to every
listener registered at delivery time, asynchronously on the event loop, including the
sender's own listeners. A listener removed before delivery is not called.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[[dict[str, Any]], None]


class BroadcastBus:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def post(self, payload: dict[str, Any]) -> None:
        """Queue delivery of ``payload`` on the running loop."""
        loop = asyncio.get_running_loop()
        loop.call_soon(self._deliver, dict(payload))

    def _deliver(self, payload: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            if listener not in self._listeners:
                continue
            try:
                listener(payload)
            except Exception as e:
                logger.error("Broadcast listener failed for %s: %s", payload.get("type"), e)
