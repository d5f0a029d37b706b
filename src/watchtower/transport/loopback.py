"""In-process transport wired straight into a ProtocolServer session."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from watchtower.transport.base import Transport, ConnectionClosed, SessionError
from watchtower.transport.types import TransportConfig, TransportEventType

if TYPE_CHECKING:
    from watchtower.protocol.server import ProtocolServer, ServerSession


class LoopbackTransport(Transport):
    """
    Embeds a source server in the calling process.

    Lines still go through the full encode/decode path, so behaviour matches
    a socket connection without the socket.
    """

    def __init__(self, server: "ProtocolServer", config: TransportConfig | None = None):
        super().__init__(config or TransportConfig(url=f"loopback://{server.name}"))
        self._server = server
        self._session: "ServerSession | None" = None
        self._responses: deque[bytes] = deque()

    async def connect(self) -> None:
        if self._session is not None:
            return
        self._emit_event(TransportEventType.CONNECTING, {"endpoint": self.endpoint})
        self._session = self._server.open_session()
        self._emit_event(TransportEventType.CONNECTED)

    async def disconnect(self) -> None:
        if self._session is None:
            return
        self._emit_event(TransportEventType.DISCONNECTING)
        session = self._session
        self._session = None
        self._responses.clear()
        await session.close()
        self._emit_event(TransportEventType.DISCONNECTED)

    async def send(self, line: bytes) -> None:
        if self._session is None:
            raise SessionError("Transport not connected")
        self._emit_event(TransportEventType.MESSAGE_SENT, {"bytes": len(line)})
        self._responses.append(await self._session.handle_line(line))

    async def receive(self) -> bytes:
        if self._session is None:
            raise SessionError("Transport not connected")
        if not self._responses:
            raise ConnectionClosed("No response pending")
        line = self._responses.popleft()
        self._emit_event(TransportEventType.MESSAGE_RECEIVED, {"bytes": len(line)})
        return line

    def is_connected(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> "ServerSession | None":
        return self._session
