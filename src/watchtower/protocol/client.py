"""Protocol client implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from watchtower.transport.base import (
    Transport,
    SessionError,
    TimeoutError as RequestTimeout,
)
from watchtower.protocol.messages import (
    Method,
    OperationDescriptor,
    ProtocolRequest,
    ProtocolResponse,
    decode_response,
    encode_message,
)
from watchtower.protocol.errors import ProtocolViolation
from watchtower.protocol.state import ConnectionState, ConnectionStateMachine

logger = logging.getLogger(__name__)


class ProtocolClient:
    """
    Client side of one protocol connection.

    Exactly one request is outstanding at a time: each call writes one
    request line, then reads exactly one response line and checks that its
    id matches. Error responses surface as typed ProtocolError subclasses;
    a dead or closed stream surfaces as TransportError. No retries.
    """

    def __init__(
        self,
        transport: Transport,
        name: str | None = None,
    ):
        """
        Initialize protocol client.

        Args:
            transport: Transport this client owns exclusively.
            name: Label for logs (defaults to the transport endpoint).
        """
        self.transport = transport
        self.name = name or transport.endpoint
        self.request_timeout = transport.config.timeout

        self._state = ConnectionStateMachine()
        self._lock = asyncio.Lock()
        self._server_info: dict[str, Any] | None = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state.state

    @property
    def is_initialized(self) -> bool:
        return self._state.is_initialized

    @property
    def is_closed(self) -> bool:
        return self._state.is_closed

    @property
    def server_info(self) -> dict[str, Any] | None:
        """Capability summary returned by the last successful initialize."""
        return self._server_info

    async def connect(self) -> None:
        """Open the underlying transport."""
        if self._state.is_closed:
            raise SessionError("Client is closed")
        await self.transport.connect()
        logger.debug(f"[{self.name}] Transport connected")

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """
        Send a request and wait for its response.

        Args:
            method: The protocol method name.
            params: Method parameters.

        Returns:
            The result from the response.

        Raises:
            ProtocolError: Typed by the error code of an error response.
            ProtocolViolation: Malformed response or mismatched id.
            TransportError: The stream failed before a response arrived.
        """
        if self._state.is_closed:
            raise SessionError("Client is closed")

        request = ProtocolRequest(method=str(method), params=params or {})

        async with self._lock:
            try:
                if self.request_timeout is not None:
                    response = await asyncio.wait_for(
                        self._exchange(request),
                        timeout=self.request_timeout,
                    )
                else:
                    response = await self._exchange(request)
                failure: Exception | None = None
            except asyncio.TimeoutError:
                failure = RequestTimeout(
                    f"{request} timed out after {self.request_timeout}s"
                )
            except ProtocolViolation as e:
                failure = e

        if failure is not None:
            # A late or stray line would be read as the next response
            logger.error(f"[{self.name}] {failure}; closing connection")
            await self.close()
            raise failure

        if response.is_error:
            logger.debug(f"[{self.name}] {request.method} failed: {response.error}")
            raise response.error
        return response.result

    async def _exchange(self, request: ProtocolRequest) -> ProtocolResponse:
        logger.debug(f"[{self.name}] Sending {request}")
        await self.transport.send(encode_message(request))

        line = await self.transport.receive()
        response = decode_response(line)
        if response.id != request.id:
            raise ProtocolViolation.id_mismatch(request.id, response.id)

        logger.debug(f"[{self.name}] Received {response}")
        return response

    async def initialize(self, credentials: dict[str, str] | None = None) -> dict[str, Any]:
        """
        Initialize the remote source.

        Args:
            credentials: Opaque configuration forwarded to the source.

        Returns:
            Capability summary (provider, status, capabilities, optional limits).
        """
        result = await self.request(Method.INITIALIZE, {"credentials": credentials or {}})
        if not isinstance(result, dict):
            raise ProtocolViolation.invalid_envelope("initialize result must be an object")

        self._state.transition(ConnectionState.INITIALIZED)
        self._server_info = result
        logger.info(
            f"[{self.name}] Initialized provider={result.get('provider')} "
            f"capabilities={result.get('capabilities', [])}"
        )
        return result

    async def discover(self) -> list[OperationDescriptor]:
        """List the source's operations in the source's order."""
        result = await self.request(Method.DISCOVER)
        try:
            return [OperationDescriptor.from_dict(f) for f in result["functions"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolViolation.invalid_envelope(f"bad discover result: {e!r}")

    async def execute(self, operation: str, arguments: dict[str, Any] | None = None) -> Any:
        """
        Execute an operation by its server-local (unprefixed) name.

        Returns:
            The operation-specific result object.
        """
        return await self.request(
            Method.EXECUTE,
            {"operation": operation, "arguments": arguments or {}},
        )

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._state.is_closed:
            return
        self._state.transition(ConnectionState.CLOSED)
        logger.debug(f"[{self.name}] Closing")
        await self.transport.disconnect()

    async def __aenter__(self) -> "ProtocolClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
