"""Transport layer types and configuration."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any
from urllib.parse import urlparse

SUPPORTED_SCHEMES = ("tcp", "http", "https", "loopback")


class TransportEventType(Enum):
    """Types of transport events for observability."""

    CONNECTING = auto()
    CONNECTED = auto()
    DISCONNECTING = auto()
    DISCONNECTED = auto()
    MESSAGE_SENT = auto()
    MESSAGE_RECEIVED = auto()
    ERROR = auto()


@dataclass
class TransportEvent:
    """Event emitted by transport for observability."""

    type: TransportEventType
    timestamp: float
    data: dict[str, Any] | None = None
    error: Exception | None = None

    def __str__(self) -> str:
        base = f"[{self.type.name}]"
        if self.data:
            base += f" {self.data}"
        if self.error:
            base += f" error={self.error}"
        return base


@dataclass
class TransportConfig:
    """Configuration for one protocol connection."""

    url: str | None = None
    """Endpoint: tcp://host:port, http(s)://..., or loopback://name."""

    command: list[str] | None = None
    """Command that starts a source server speaking the protocol over stdio."""

    timeout: float | None = None
    """Per-request timeout in seconds. None waits indefinitely."""

    connect_timeout: float = 10.0
    """Connection establishment timeout in seconds."""

    headers: dict[str, str] = field(default_factory=dict)
    """Additional HTTP headers (http/https only)."""

    max_line_bytes: int = 16 * 1024 * 1024
    """Longest accepted message line."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if bool(self.url) == bool(self.command):
            raise ValueError("exactly one of url or command is required")
        if self.url:
            scheme = urlparse(self.url).scheme
            if scheme not in SUPPORTED_SCHEMES:
                raise ValueError(f"unsupported url scheme: {scheme!r}")
            # Allow http:// only for localhost development
            if scheme == "http" and not self._is_localhost():
                raise ValueError("Remote connections must use https://")
            if scheme == "tcp" and (not self.host or self.port is None):
                raise ValueError("tcp url needs a host and a port")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.max_line_bytes < 1:
            raise ValueError("max_line_bytes must be at least 1")

    @property
    def scheme(self) -> str:
        """Transport kind: a url scheme, or 'stdio' for commands."""
        if self.command:
            return "stdio"
        return urlparse(self.url).scheme

    @property
    def host(self) -> str | None:
        return urlparse(self.url).hostname if self.url else None

    @property
    def port(self) -> int | None:
        return urlparse(self.url).port if self.url else None

    def _is_localhost(self) -> bool:
        """Check if URL points to localhost."""
        host = self.host or ""
        return host in ("localhost", "127.0.0.1", "::1", "[::1]")
