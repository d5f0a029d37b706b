"""Tests for the watchtower-source command line."""

from unittest.mock import AsyncMock, patch

import pytest

from watchtower.cli import build_parser, main


class TestParser:
    def test_port_mode(self):
        args = build_parser().parse_args(["AWS", "--port", "8001"])
        assert args.source == "AWS"
        assert args.port == 8001
        assert not args.stdio

    def test_stdio_mode(self):
        args = build_parser().parse_args(["GCP", "--stdio", "--log-level", "DEBUG"])
        assert args.stdio
        assert args.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "argv",
        [["AWS"], ["AWS", "--port", "1", "--stdio"], ["Azure", "--stdio"]],
    )
    def test_rejects_bad_usage(self, argv):
        with pytest.raises(SystemExit):
            build_parser().parse_args(argv)


class TestMain:
    def test_serves_tcp(self):
        with patch("watchtower.cli.ProtocolServer.serve_tcp", new_callable=AsyncMock) as serve_tcp:
            assert main(["AWS", "--port", "8123"]) == 0
        serve_tcp.assert_awaited_once_with("127.0.0.1", 8123)

    def test_bind_failure(self):
        with patch(
            "watchtower.cli.ProtocolServer.serve_tcp",
            new_callable=AsyncMock,
            side_effect=OSError("address in use"),
        ):
            assert main(["AWS", "--port", "8123"]) == 1
