"""Direct channel to the extension: an addressed request/response call.

The browser's ``chrome.runtime.sendMessage(extensionId, message)`` is reached through a
local bridge that the extension's native host exposes over HTTP:

    POST {bridge_url}/extensions/{extension_id}/messages   (JSON message)

The JSON body of a 2xx response is the extension's reply.
"""

from typing import Any, Protocol

import httpx

from src.core.errors import RequestRejected


class DirectChannel(Protocol):
    def available(self) -> bool:
        """Whether the channel exists at all (the ``chrome.runtime.sendMessage`` check)."""

    async def send_message(self, extension_id: str, message: dict[str, Any]) -> Any:
        """Deliver ``message`` and return the extension's reply. Raises RequestRejected."""


class HttpDirectChannel:
    def __init__(
        self,
        bridge_url: str,
        timeout_s: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._bridge_url = (bridge_url or "").rstrip("/")
        self._timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    def available(self) -> bool:
        return bool(self._bridge_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    async def send_message(self, extension_id: str, message: dict[str, Any]) -> Any:
        url = f"{self._bridge_url}/extensions/{extension_id}/messages"
        try:
            r = await self._get_client().post(url, json=message)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RequestRejected(
                f"Extension bridge returned {e.response.status_code} for {message.get('type')}"
            ) from e
        except httpx.HTTPError as e:
            raise RequestRejected(f"Extension bridge unreachable: {e!s}") from e
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise RequestRejected(f"Extension bridge returned non-JSON body: {e!s}") from e

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
