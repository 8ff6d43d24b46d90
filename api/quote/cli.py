"""
Usage:
  python -m quote.cli --url http://localhost:8080/cotacao --timeout 300ms --output cotacao.txt
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import httpx

from core.config import parse_duration
from core.context import Context
from core.errors import CallError
from core.log import configure_logging

from .service import append_bid, fetch_bid

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch the current USD/BRL bid and append it to a file.")
    parser.add_argument("--url", default="http://localhost:8080/cotacao")
    parser.add_argument("--timeout", type=parse_duration, default=0.3, help="Request deadline (e.g. 300ms)")
    parser.add_argument("--output", type=Path, default=Path("cotacao.txt"))
    parser.add_argument("--log-level", default="INFO")
    return parser


async def run(url: str, timeout_s: float, output: Path) -> float:
    async with httpx.AsyncClient() as client:
        bid = await fetch_bid(client, Context.background(), url, timeout_s)
    append_bid(output, bid)
    return bid


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        asyncio.run(run(args.url, args.timeout, args.output))
    except CallError as exc:
        logger.critical("Failed to fetch quote: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
