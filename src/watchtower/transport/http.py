"""HTTP transport: one POST per protocol request."""

from __future__ import annotations

from collections import deque

import httpx

from watchtower.transport.base import (
    Transport,
    TransportError,
    ConnectionError,
    ConnectionClosed,
    TimeoutError,
    SessionError,
)
from watchtower.transport.types import (
    TransportConfig,
    TransportEventType,
)


class HTTPTransport(Transport):
    """
    Carries protocol lines over HTTP.

    Each sent line is POSTed to the configured URL; the response body is the
    response line and is handed back by the next receive().
    """

    def __init__(self, config: TransportConfig, client: httpx.AsyncClient | None = None):
        super().__init__(config)
        self._client: httpx.AsyncClient | None = client
        self._owns_client = client is None
        self._connected = False
        self._responses: deque[bytes] = deque()

    async def connect(self) -> None:
        """Create the HTTP client; no request is made until the first send."""
        if self._connected:
            return

        self._emit_event(TransportEventType.CONNECTING, {"url": self.config.url})

        try:
            if self._client is None:
                timeout = httpx.Timeout(
                    self.config.timeout,
                    connect=self.config.connect_timeout,
                )
                self._client = httpx.AsyncClient(
                    timeout=timeout,
                    headers=self.config.headers,
                    http2=False,
                )
            self._connected = True
        except Exception as e:
            raise ConnectionError(f"Failed to initialize HTTP client: {e}", cause=e)

        self._emit_event(TransportEventType.CONNECTED)

    async def disconnect(self) -> None:
        """Close the HTTP client and drop undelivered responses."""
        if not self._connected:
            return

        self._emit_event(TransportEventType.DISCONNECTING)
        self._responses.clear()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._connected = False
        self._emit_event(TransportEventType.DISCONNECTED)

    async def send(self, line: bytes) -> None:
        if not self._client or not self._connected:
            raise SessionError("Transport not connected")

        self._emit_event(TransportEventType.MESSAGE_SENT, {"bytes": len(line)})

        try:
            response = await self._client.post(
                self.config.url,
                content=line,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Request timed out: {e}", cause=e)
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e}", cause=e)

        if response.status_code >= 400:
            raise TransportError(f"HTTP {response.status_code}: {response.text}")

        body = response.content.strip()
        if not body:
            raise ConnectionClosed(f"HTTP {response.status_code} carried no response")
        self._responses.append(body + b"\n")

    async def receive(self) -> bytes:
        if not self._connected:
            raise SessionError("Transport not connected")
        if not self._responses:
            raise ConnectionClosed("No response pending")

        line = self._responses.popleft()
        self._emit_event(TransportEventType.MESSAGE_RECEIVED, {"bytes": len(line)})
        return line

    def is_connected(self) -> bool:
        return self._connected
