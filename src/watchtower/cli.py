"""``watchtower-source``: serve a built-in source over TCP or stdio."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from watchtower.protocol.server import ProtocolServer
from watchtower.sources import BUILTIN_SOURCES

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watchtower-source",
        description="Serve a log source over the line-delimited JSON-RPC protocol",
    )
    parser.add_argument(
        "source",
        choices=sorted(BUILTIN_SOURCES),
        help="Which built-in source to serve",
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--port", type=int, help="Listen on this TCP port")
    mode.add_argument(
        "--stdio",
        action="store_true",
        help="Read requests from stdin and write responses to stdout",
    )
    parser.add_argument("--host", default="127.0.0.1", help="TCP bind address")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


async def serve(args: argparse.Namespace) -> None:
    server = ProtocolServer(BUILTIN_SOURCES[args.source], name=args.source)
    if args.stdio:
        await server.serve_stdio()
    else:
        await server.serve_tcp(args.host, args.port)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # stdout carries protocol lines in stdio mode
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        asyncio.run(serve(args))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except OSError as e:
        logger.error(f"Cannot serve {args.source}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
