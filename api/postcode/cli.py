"""
Query a CEP on every provider at once and report the fastest answer.

Usage:
  python -m postcode.cli --cep 01001-000 --query-timeout 1s
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import httpx

from core.calls import CallOutcome
from core.config import parse_duration
from core.context import Context
from core.errors import NoWinnerError
from core.log import configure_logging
from core.race import RaceOrchestrator
from core.server import ShutdownSignal

from .providers import build_specs, normalize_cep

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Race CEP providers and keep the fastest.")
    parser.add_argument("--cep", required=True, help="CEP to query (12345-678 or 12345678)")
    parser.add_argument(
        "--query-timeout",
        type=parse_duration,
        default=1.0,
        help="Timeout querying for CEPs, per provider (e.g. 1s)",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


async def query(
    cep: str,
    timeout_s: float,
    *,
    client: httpx.AsyncClient | None = None,
    shutdown: ShutdownSignal | None = None,
) -> CallOutcome:
    """
    Race every provider for `cep`. Raises NoWinnerError if none returned usable data.

    A termination signal cancels every branch; cancelled branches still
    report (as failures).
    """
    specs = build_specs(cep, timeout_s)
    ctx = Context.background()
    owns_signal = shutdown is None
    shutdown = shutdown or ShutdownSignal()
    owns_client = client is None
    client = client or httpx.AsyncClient()

    async def cancel_on_signal() -> None:
        name = await shutdown.wait()
        ctx.cancel(f"interrupted by {name}")

    watcher = asyncio.create_task(cancel_on_signal())
    if owns_signal:
        shutdown.install()
    try:
        return await RaceOrchestrator.over_http(client).run(ctx, specs)
    finally:
        if owns_signal:
            shutdown.uninstall()
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)
        if owns_client:
            await client.aclose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        cep = normalize_cep(args.cep)
    except ValueError as exc:
        logger.critical("%s", exc)
        return 2

    logger.info("Starting...")
    try:
        winner = asyncio.run(query(cep, args.query_timeout))
    except NoWinnerError as exc:
        for outcome in exc.outcomes:
            logger.info("%s", json.dumps(outcome.to_dict(), ensure_ascii=False))
        logger.critical("No winners!")
        return 1

    logger.info("Winner: >> %s <<", winner.label)
    logger.info("Elapsed time: %.3fs", winner.elapsed_s)
    logger.info("Response: %s", json.dumps(winner.payload, ensure_ascii=False))
    print(json.dumps(winner.to_dict(), ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
