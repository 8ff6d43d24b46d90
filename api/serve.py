"""
Server command: host the exchange-rate API until SIGINT/SIGTERM.

Usage:
  python serve.py --port 8080 --query-timeout 200ms --persist-timeout 10ms

Exit codes: 0 on a clean drain, 1 if the server failed to start or had to be
force-stopped with requests still in flight.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys

from core.config import Settings, parse_duration
from core.context import Context
from core.log import configure_logging
from core.server import GracefulServer, InFlightTracker, ShutdownSignal, UvicornListener, run_server
from main import create_app


def build_parser(defaults: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Exchange-rate HTTP server.")
    parser.add_argument("--host", default=defaults.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=defaults.port, help="HTTP server port")
    parser.add_argument(
        "--query-timeout",
        type=parse_duration,
        default=defaults.query_timeout_s,
        help="Time to request for exchange rate (e.g. 200ms)",
    )
    parser.add_argument(
        "--persist-timeout",
        type=parse_duration,
        default=defaults.persist_timeout_s,
        help="Time to persist exchange rate (e.g. 10ms)",
    )
    parser.add_argument(
        "--drain-timeout",
        type=parse_duration,
        default=defaults.drain_timeout_s,
        help="Time allowed for in-flight requests on shutdown (e.g. 10s)",
    )
    parser.add_argument("--log-level", default=defaults.log_level)
    return parser


async def serve(settings: Settings) -> int:
    tracker = InFlightTracker()
    root = Context.background()
    app = create_app(settings, tracker=tracker, root=root)
    listener = UvicornListener(app, host=settings.host, port=settings.port)
    server = GracefulServer(
        listener, tracker, drain_timeout_s=settings.drain_timeout_s, root=root
    )

    shutdown = ShutdownSignal()
    shutdown.install()
    try:
        return await run_server(server, shutdown)
    finally:
        shutdown.uninstall()


def main(argv: list[str] | None = None) -> int:
    defaults = Settings.from_env()
    args = build_parser(defaults).parse_args(argv)
    settings = dataclasses.replace(
        defaults,
        host=args.host,
        port=args.port,
        query_timeout_s=args.query_timeout,
        persist_timeout_s=args.persist_timeout,
        drain_timeout_s=args.drain_timeout,
        log_level=args.log_level.upper(),
    )
    configure_logging(settings.log_level)
    return asyncio.run(serve(settings))


if __name__ == "__main__":
    sys.exit(main())
