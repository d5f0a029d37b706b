"""
Protocol Transport Layer.

Moves newline-delimited JSON message lines over TCP sockets, child-process
stdio pipes, HTTP, or an in-process loopback.
"""

from watchtower.transport.types import TransportConfig, TransportEvent, TransportEventType
from watchtower.transport.base import (
    Transport,
    TransportError,
    ConnectionError,
    ConnectionClosed,
    TimeoutError,
    SessionError,
)
from watchtower.transport.stream import StreamTransport, TCPTransport, StdioTransport
from watchtower.transport.http import HTTPTransport
from watchtower.transport.loopback import LoopbackTransport


def create_transport(config: TransportConfig) -> Transport:
    """Pick the transport implementation for a config."""
    scheme = config.scheme
    if scheme == "stdio":
        return StdioTransport(config)
    if scheme == "tcp":
        return TCPTransport(config)
    if scheme in ("http", "https"):
        return HTTPTransport(config)
    raise ValueError(f"No transport for scheme {scheme!r}; loopback needs a server instance")


__all__ = [
    "Transport",
    "TransportConfig",
    "TransportEvent",
    "TransportEventType",
    "TransportError",
    "ConnectionError",
    "ConnectionClosed",
    "TimeoutError",
    "SessionError",
    "StreamTransport",
    "TCPTransport",
    "StdioTransport",
    "HTTPTransport",
    "LoopbackTransport",
    "create_transport",
]
