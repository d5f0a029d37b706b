"""Abstract base transport and error types."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

from watchtower.transport.types import TransportConfig, TransportEvent, TransportEventType

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Base exception for transport errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ConnectionError(TransportError):
    """Failed to establish connection to the source server."""

    pass


class ConnectionClosed(TransportError):
    """The stream ended or was reset before a complete message arrived."""

    pass


class TimeoutError(TransportError):
    """Request or connection timed out."""

    pass


class SessionError(TransportError):
    """Transport used while not connected or after close."""

    pass


class Transport(ABC):
    """
    Abstract base class for protocol transports.

    A transport moves complete newline-terminated message lines in both
    directions. It knows nothing about ids or methods; correlation is the
    client's job. Each transport is owned by exactly one client.
    """

    def __init__(self, config: TransportConfig):
        self.config = config
        self._event_handlers: list[Callable[[TransportEvent], None]] = []

    def on_event(self, handler: Callable[[TransportEvent], None]) -> None:
        """
        Register an event handler for transport events.

        Args:
            handler: Callback invoked when transport events occur.
        """
        self._event_handlers.append(handler)

    def _emit_event(
        self,
        type: TransportEventType,
        data: dict | None = None,
        error: Exception | None = None,
    ) -> None:
        """Emit an event to all registered handlers."""
        event = TransportEvent(type=type, timestamp=time.time(), data=data, error=error)
        for handler in self._event_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.warning(f"Transport event handler failed for {event}: {e}")

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the connection.

        Raises:
            ConnectionError: If connection cannot be established.
            TimeoutError: If connection times out.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close connection and release all resources.

        This method should be safe to call multiple times.
        """
        pass

    @abstractmethod
    async def send(self, line: bytes) -> None:
        """
        Write one newline-terminated message line.

        Raises:
            SessionError: If the transport is not connected.
            TransportError: If the write fails.
        """
        pass

    @abstractmethod
    async def receive(self) -> bytes:
        """
        Read the next complete message line.

        Raises:
            ConnectionClosed: If the peer closed before a full line arrived.
            TransportError: If the read fails.
        """
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """
        Check if transport is currently connected.

        Returns:
            True if connected and ready for communication.
        """
        pass

    @property
    def endpoint(self) -> str:
        """Printable endpoint for logs."""
        if self.config.command:
            return " ".join(self.config.command)
        return self.config.url or "?"

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()
