"""Tests for the protocol client."""

import asyncio

import pytest

from watchtower.lib import oj
from watchtower.protocol.client import ProtocolClient
from watchtower.protocol.errors import (
    InvalidParams,
    InvalidRequest,
    MethodNotFound,
    ProtocolError,
    ProtocolViolation,
)
from watchtower.protocol.state import ConnectionState
from watchtower.transport import (
    ConnectionClosed,
    LoopbackTransport,
    SessionError,
    TimeoutError,
    Transport,
    TransportConfig,
    TransportError,
)


class ScriptedTransport(Transport):
    """Answers each request with ``reply(request_dict)``."""

    def __init__(self, reply, config=None):
        super().__init__(config or TransportConfig(url="tcp://127.0.0.1:9"))
        self.reply = reply
        self.sent = []
        self._pending = []
        self._connected = False
        self.disconnects = 0

    async def connect(self):
        self._connected = True

    async def disconnect(self):
        self.disconnects += 1
        self._connected = False

    async def send(self, line):
        self.sent.append(oj.loads(line))
        self._pending.append(self.reply(self.sent[-1]))

    async def receive(self):
        reply = self._pending.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, float):
            await asyncio.sleep(reply)
            return b"{}\n"
        return reply

    def is_connected(self):
        return self._connected


def ok(request, result):
    return oj.dumps_line({"jsonrpc": "2.0", "result": result, "id": request["id"]})


@pytest.fixture
def aws_client(aws_server):
    return ProtocolClient(LoopbackTransport(aws_server))


class TestProtocolClient:
    """Tests for request/response correlation and error surfacing."""

    @pytest.mark.asyncio
    async def test_lifecycle_against_aws(self, aws_client):
        async with aws_client as client:
            info = await client.initialize({"region": "us-east-1"})
            assert info["provider"] == "AWS"
            assert client.state == ConnectionState.INITIALIZED
            assert client.server_info == info

            operations = await client.discover()
            assert [op.name for op in operations] == ["fetchLogs", "fetchMetrics"]

            result = await client.execute(
                "fetchLogs",
                {"resource": "payment-service", "filter": "ERROR", "limit": 5},
            )
            assert len(result["logs"]) <= 5
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_each_request_gets_fresh_id(self):
        transport = ScriptedTransport(lambda req: ok(req, {"functions": []}))
        client = ProtocolClient(transport)
        await client.connect()
        await client.discover()
        await client.discover()
        ids = [req["id"] for req in transport.sent]
        assert len(set(ids)) == 2

    @pytest.mark.asyncio
    async def test_error_response_is_typed(self, aws_client):
        await aws_client.connect()
        with pytest.raises(InvalidRequest):
            await aws_client.execute("fetchLogs", {})
        await aws_client.initialize()
        with pytest.raises(InvalidParams) as exc_info:
            await aws_client.execute("noSuchOperation", {})
        assert exc_info.value.data == {"operation": "noSuchOperation"}
        await aws_client.close()

    @pytest.mark.asyncio
    async def test_unknown_method(self, aws_client):
        await aws_client.connect()
        with pytest.raises(MethodNotFound):
            await aws_client.request("ping")
        await aws_client.close()

    @pytest.mark.asyncio
    async def test_mismatched_id_is_violation(self):
        transport = ScriptedTransport(
            lambda req: oj.dumps_line({"jsonrpc": "2.0", "result": {}, "id": "someone-else"})
        )
        client = ProtocolClient(transport)
        await client.connect()
        with pytest.raises(ProtocolViolation, match="does not match"):
            await client.discover()
        assert client.is_closed
        assert transport.disconnects == 1

    @pytest.mark.asyncio
    async def test_malformed_response_is_violation(self):
        client = ProtocolClient(ScriptedTransport(lambda req: b"<html>\n"))
        await client.connect()
        with pytest.raises(ProtocolViolation):
            await client.discover()

    @pytest.mark.asyncio
    async def test_bad_discover_result(self):
        client = ProtocolClient(ScriptedTransport(lambda req: ok(req, {"functions": "all"})))
        await client.connect()
        with pytest.raises(ProtocolViolation):
            await client.discover()

    @pytest.mark.asyncio
    async def test_transport_closed_is_transport_error(self):
        client = ProtocolClient(ScriptedTransport(lambda req: ConnectionClosed("peer went away")))
        await client.connect()
        with pytest.raises(TransportError) as exc_info:
            await client.initialize()
        assert not isinstance(exc_info.value, ProtocolError)

    @pytest.mark.asyncio
    async def test_timeout_closes_client(self):
        config = TransportConfig(url="tcp://127.0.0.1:9", timeout=0.05)
        transport = ScriptedTransport(lambda req: 5.0, config=config)
        client = ProtocolClient(transport)
        await client.connect()
        with pytest.raises(TimeoutError):
            await client.discover()
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_requests_after_close_fail(self, aws_client):
        await aws_client.connect()
        await aws_client.close()
        await aws_client.close()
        with pytest.raises(SessionError):
            await aws_client.discover()
        with pytest.raises(SessionError):
            await aws_client.connect()

    @pytest.mark.asyncio
    async def test_concurrent_callers_are_serialized(self):
        in_flight = []

        class Tracking(ScriptedTransport):
            async def receive(self):
                in_flight.append(len(self._pending))
                await asyncio.sleep(0.01)
                return await super().receive()

        client = ProtocolClient(Tracking(lambda req: ok(req, {"functions": []})))
        await client.connect()
        await asyncio.gather(client.discover(), client.discover(), client.discover())
        assert in_flight == [1, 1, 1]
