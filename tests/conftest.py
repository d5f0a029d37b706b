"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from watchtower.config import SourceBinding
from watchtower.protocol.client import ProtocolClient
from watchtower.protocol.server import ProtocolServer
from watchtower.sources import AWSLogSource, GCPLogSource
from watchtower.transport import LoopbackTransport

# Enable async tests without marking each one
pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def aws_server():
    """Protocol server for the AWS sample source."""
    return ProtocolServer(AWSLogSource, name="AWS")


@pytest.fixture
def gcp_server():
    """Protocol server for the GCP sample source."""
    return ProtocolServer(GCPLogSource, name="GCP")


@pytest.fixture
def loopback_factory(aws_server, gcp_server):
    """Registry client factory that embeds the sample servers in-process."""
    servers = {"AWS": aws_server, "GCP": gcp_server}

    def factory(binding: SourceBinding) -> ProtocolClient:
        return ProtocolClient(LoopbackTransport(servers[binding.name]), name=binding.name)

    return factory


@pytest.fixture
def bindings():
    """Bindings for both sample sources."""
    return {
        "AWS": SourceBinding("AWS", url="loopback://AWS", credentials={"region": "us-east-1"}),
        "GCP": SourceBinding("GCP", url="loopback://GCP", credentials={"projectId": "demo"}),
    }


@pytest.fixture
def sources_json():
    """Sample sources.json document."""
    return """
{
  "sources": {
    "AWS": {"url": "tcp://127.0.0.1:8001", "credentials": {"region": "us-east-1"}},
    "GCP": {"command": "watchtower-source GCP --stdio", "timeout": 5}
  }
}
"""


@pytest.fixture
def config_home(tmp_path: Path, monkeypatch):
    """Point the global config location at a temp directory."""
    global_file = tmp_path / "home" / ".watchtower" / "sources.json"
    global_file.parent.mkdir(parents=True)
    monkeypatch.setattr("watchtower.config.GLOBAL_SOURCES_CONFIG", global_file)
    return global_file
