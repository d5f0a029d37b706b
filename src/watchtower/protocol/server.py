"""Protocol server: exposes one Source through initialize/discover/execute."""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import sys
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from watchtower.lib import oj
from watchtower.protocol.errors import ProtocolError
from watchtower.protocol.messages import (
    Method,
    ProtocolRequest,
    ProtocolResponse,
    decode_request,
    encode_message,
    peek_request_id,
)
from watchtower.protocol.state import ConnectionState, ConnectionStateMachine

if TYPE_CHECKING:
    from watchtower.sources.base import Source

logger = logging.getLogger(__name__)

SourceFactory = Callable[[], "Source"]
MethodHandler = Callable[[dict[str, Any]], Awaitable[Any]]

DEFAULT_MAX_LINE_BYTES = 16 * 1024 * 1024


class ServerSession:
    """
    Server side of one connection.

    Owns the connection state machine and a dedicated source instance.
    ``handle_line`` never raises: every failure becomes an error response.
    """

    def __init__(self, source: "Source", session_id: str):
        self.source = source
        self.session_id = session_id
        self._state = ConnectionStateMachine()
        self._handlers: dict[str, MethodHandler] = {
            Method.INITIALIZE.value: self._handle_initialize,
            Method.DISCOVER.value: self._handle_discover,
            Method.EXECUTE.value: self._handle_execute,
        }

    @property
    def state(self) -> ConnectionState:
        return self._state.state

    async def handle_line(self, line: bytes | str) -> bytes:
        """Handle one request line and return the encoded response line."""
        try:
            request = decode_request(line)
        except ProtocolError as e:
            logger.debug(f"[{self.session_id}] Rejected request line: {e}")
            response = ProtocolResponse.failure(peek_request_id(line), e)
        else:
            response = await self.handle_request(request)

        try:
            return encode_message(response)
        except oj.JSONEncodeError as e:
            logger.error(f"[{self.session_id}] Result for id={response.id} is not serializable: {e}")
            return encode_message(
                ProtocolResponse.failure(
                    response.id,
                    ProtocolError.internal_error(f"Result is not serializable: {e}"),
                )
            )

    async def handle_request(self, request: ProtocolRequest) -> ProtocolResponse:
        """Dispatch a parsed request through the method handler map."""
        logger.debug(f"[{self.session_id}] Handling {request}")

        handler = self._handlers.get(request.method)
        if handler is None:
            return ProtocolResponse.failure(
                request.id, ProtocolError.method_not_found(request.method)
            )
        if self._state.is_closed:
            return ProtocolResponse.failure(
                request.id, ProtocolError.invalid_request("Connection closed")
            )

        try:
            result = await handler(request.params)
        except ProtocolError as e:
            return ProtocolResponse.failure(request.id, e)
        except Exception as e:
            logger.exception(f"[{self.session_id}] Handler error for {request.method}")
            return ProtocolResponse.failure(
                request.id, ProtocolError.internal_error(str(e) or type(e).__name__)
            )
        return ProtocolResponse.success(request.id, {} if result is None else result)

    def _require_initialized(self) -> None:
        if not self._state.is_initialized:
            raise ProtocolError.invalid_request("Not initialized")

    async def _handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        credentials = params.get("credentials", {})
        if not isinstance(credentials, dict):
            raise ProtocolError.invalid_params("credentials must be an object")

        if self._state.is_initialized:
            logger.info(f"[{self.session_id}] Re-initializing {self.source.provider} source")

        try:
            outcome = self.source.initialize(credentials)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            message = e.message if isinstance(e, ProtocolError) else str(e)
            logger.warning(f"[{self.session_id}] {self.source.provider} initialization failed: {message}")
            raise ProtocolError.internal_error(message or "Initialization failed")

        self._state.transition(ConnectionState.INITIALIZED)

        result: dict[str, Any] = {
            "provider": self.source.provider,
            "status": "initialized",
            "capabilities": list(self.source.capabilities()),
        }
        limits = self.source.limits()
        if limits:
            result["limits"] = limits
        return result

    async def _handle_discover(self, params: dict[str, Any]) -> dict[str, Any]:
        self._require_initialized()
        return {"functions": [op.to_dict() for op in self.source.operations()]}

    async def _handle_execute(self, params: dict[str, Any]) -> Any:
        self._require_initialized()

        operation_name = params.get("operation")
        if not isinstance(operation_name, str) or not operation_name:
            raise ProtocolError.invalid_params("operation must be a non-empty string")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise ProtocolError.invalid_params("arguments must be an object")

        operation = self.source.get_operation(operation_name)
        if operation is None:
            raise ProtocolError.invalid_params(
                f"Unknown operation: {operation_name}",
                data={"operation": operation_name},
            )

        problems = operation.descriptor.validate_arguments(arguments)
        if problems:
            raise ProtocolError.invalid_params(
                f"Invalid arguments for {operation_name}: {'; '.join(problems)}",
                data={"problems": problems},
            )

        return await self.source.invoke(operation_name, arguments)

    async def close(self) -> None:
        """Close the session exactly once and release the source."""
        if self._state.is_closed:
            return
        self._state.transition(ConnectionState.CLOSED)
        try:
            outcome = self.source.close()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"[{self.session_id}] Error closing {self.source.provider} source: {e}")
        logger.debug(f"[{self.session_id}] Session closed")


class ProtocolServer:
    """
    Serves a source over any number of concurrent connections.

    Each connection gets its own ServerSession and its own source instance
    from ``source_factory``. Requests on one connection are handled strictly
    in order, one at a time.
    """

    def __init__(
        self,
        source_factory: SourceFactory,
        name: str | None = None,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
    ):
        """
        Args:
            source_factory: Zero-argument callable (typically the Source class).
            name: Label for logs; defaults to the factory's ``provider``.
            max_line_bytes: Longest accepted request line.
        """
        self.source_factory = source_factory
        self.name = name or getattr(source_factory, "provider", None) or "source"
        self.max_line_bytes = max_line_bytes
        self._session_counter = itertools.count(1)
        self._sessions: set[ServerSession] = set()
        self._tcp_server: asyncio.AbstractServer | None = None

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def open_session(self) -> ServerSession:
        """Create a session with a fresh source instance."""
        session_id = f"{self.name}-{next(self._session_counter)}"
        return ServerSession(self.source_factory(), session_id)

    @staticmethod
    async def _read_line(reader: asyncio.StreamReader) -> tuple[bytes, bool]:
        """
        Read one request line.

        A line longer than the reader's limit is drained through its newline
        and dropped, so it gets a single error reply.

        Returns:
            (line, oversized). ``line`` is empty at EOF or for a dropped line.
        """
        oversized = False
        while True:
            try:
                line = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                return (b"" if oversized else e.partial), oversized
            except asyncio.LimitOverrunError as e:
                oversized = True
                # The overrun bytes are already buffered
                await reader.readexactly(e.consumed)
                continue
            return (b"" if oversized else line), oversized

    async def serve_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Run the read/handle/write loop until the peer disconnects."""
        session = self.open_session()
        self._sessions.add(session)
        peer = writer.get_extra_info("peername") or "stdio"
        logger.info(f"[{session.session_id}] Client connected from {peer}")

        try:
            while True:
                try:
                    line, oversized = await self._read_line(reader)
                except OSError as e:
                    logger.info(f"[{session.session_id}] Connection lost: {e}")
                    break

                if oversized:
                    response = ProtocolResponse.failure(
                        None,
                        ProtocolError.invalid_request(
                            f"Message exceeds {self.max_line_bytes} bytes"
                        ),
                    )
                    writer.write(encode_message(response))
                    await writer.drain()
                    continue
                if not line:
                    break
                if not line.strip():
                    continue

                writer.write(await session.handle_line(line))
                await writer.drain()
        except OSError as e:
            logger.info(f"[{session.session_id}] Connection lost while writing: {e}")
        finally:
            self._sessions.discard(session)
            await session.close()
            try:
                writer.close()
                await writer.wait_closed()
            except OSError:
                pass
            logger.info(f"[{session.session_id}] Client disconnected")

    async def start_tcp(self, host: str = "127.0.0.1", port: int = 0) -> asyncio.AbstractServer:
        """
        Start listening without blocking.

        Returns:
            The asyncio server; use ``sockets[0].getsockname()`` for the bound port.
        """
        self._tcp_server = await asyncio.start_server(
            self.serve_connection,
            host,
            port,
            limit=self.max_line_bytes,
        )
        bound = self._tcp_server.sockets[0].getsockname()
        logger.info(f"{self.name} protocol server listening on {bound[0]}:{bound[1]}")
        return self._tcp_server

    async def serve_tcp(self, host: str = "127.0.0.1", port: int = 0) -> None:
        """Listen on a TCP port until cancelled."""
        server = await self.start_tcp(host, port)
        async with server:
            await server.serve_forever()

    async def serve_stdio(self) -> None:
        """Serve a single connection over this process's stdin/stdout."""
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=self.max_line_bytes)
        await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader), sys.stdin
        )
        write_transport, write_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout
        )
        writer = asyncio.StreamWriter(write_transport, write_protocol, reader, loop)
        logger.info(f"{self.name} protocol server reading stdin")
        await self.serve_connection(reader, writer)

    async def close(self) -> None:
        """Stop accepting TCP connections."""
        if self._tcp_server is not None:
            self._tcp_server.close()
            await self._tcp_server.wait_closed()
            self._tcp_server = None
