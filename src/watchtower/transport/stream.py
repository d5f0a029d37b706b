"""Line transports over asyncio streams: TCP sockets and subprocess stdio."""

from __future__ import annotations

import asyncio
import logging

from watchtower.transport.base import (
    Transport,
    TransportError,
    ConnectionError,
    ConnectionClosed,
    TimeoutError,
    SessionError,
)
from watchtower.transport.types import TransportConfig, TransportEventType

logger = logging.getLogger(__name__)


class StreamTransport(Transport):
    """
    Shared reader/writer plumbing.

    Subclasses only decide how the stream pair is opened and torn down.
    """

    def __init__(self, config: TransportConfig):
        super().__init__(config)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._closing = False

    async def connect(self) -> None:
        if self._writer is not None:
            return

        self._emit_event(TransportEventType.CONNECTING, {"endpoint": self.endpoint})
        try:
            self._reader, self._writer = await asyncio.wait_for(
                self._open(),
                timeout=self.config.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"Timed out connecting to {self.endpoint} after {self.config.connect_timeout}s",
                cause=e,
            )
        except OSError as e:
            raise ConnectionError(f"Failed to connect to {self.endpoint}: {e}", cause=e)

        self._closing = False
        logger.debug(f"Connected to {self.endpoint}")
        self._emit_event(TransportEventType.CONNECTED, {"endpoint": self.endpoint})

    async def _open(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        raise NotImplementedError

    async def _close_underlying(self) -> None:
        """Hook for subclasses with extra resources (e.g. a child process)."""

    async def disconnect(self) -> None:
        if self._writer is None:
            return

        self._closing = True
        self._emit_event(TransportEventType.DISCONNECTING)

        writer = self._writer
        self._writer = None
        self._reader = None
        try:
            writer.close()
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error while closing stream to {self.endpoint}: {e}")
        await self._close_underlying()

        self._emit_event(TransportEventType.DISCONNECTED)

    async def send(self, line: bytes) -> None:
        if self._writer is None or self._closing:
            raise SessionError("Transport not connected")

        try:
            self._writer.write(line)
            await self._writer.drain()
        except OSError as e:
            raise ConnectionClosed(f"Write to {self.endpoint} failed: {e}", cause=e)

        self._emit_event(TransportEventType.MESSAGE_SENT, {"bytes": len(line)})

    async def receive(self) -> bytes:
        if self._reader is None or self._closing:
            raise SessionError("Transport not connected")

        try:
            line = await self._reader.readline()
        except ValueError as e:
            # StreamReader reports an oversized line as ValueError
            raise TransportError(
                f"Message from {self.endpoint} exceeds {self.config.max_line_bytes} bytes",
                cause=e,
            )
        except OSError as e:
            raise ConnectionClosed(f"Read from {self.endpoint} failed: {e}", cause=e)

        if not line.endswith(b"\n"):
            raise ConnectionClosed(f"Connection to {self.endpoint} closed")

        self._emit_event(TransportEventType.MESSAGE_RECEIVED, {"bytes": len(line)})
        return line

    def is_connected(self) -> bool:
        return self._writer is not None and not self._closing


class TCPTransport(StreamTransport):
    """Protocol over a TCP socket (``tcp://host:port``)."""

    async def _open(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        return await asyncio.open_connection(
            self.config.host,
            self.config.port,
            limit=self.config.max_line_bytes,
        )


class StdioTransport(StreamTransport):
    """
    Protocol over a child process's stdin/stdout.

    The child's stderr is inherited so its logs stay visible.
    """

    def __init__(self, config: TransportConfig):
        super().__init__(config)
        self._process: asyncio.subprocess.Process | None = None

    async def _open(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        self._process = await asyncio.create_subprocess_exec(
            *self.config.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            limit=self.config.max_line_bytes,
        )
        logger.info(f"Started source process pid={self._process.pid}: {self.endpoint}")
        return self._process.stdout, self._process.stdin

    async def _close_underlying(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return

        # Closing stdin lets a well-behaved server exit on EOF
        try:
            await asyncio.wait_for(process.wait(), timeout=self.config.connect_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Source process pid={process.pid} did not exit, terminating")
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.config.connect_timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        return self._process
