"""
Quote client: ask our own server for the current rate and keep a log of bids.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from core.calls import CallSpec, decode_json, fetch
from core.context import Context

logger = logging.getLogger(__name__)


def decode_bid(body: bytes) -> float:
    logger.info("%s", body.decode("utf-8", errors="replace"))
    data = decode_json(body)
    if not isinstance(data, dict) or "bid" not in data:
        raise ValueError("response has no bid")
    return float(data["bid"])


async def fetch_bid(client: httpx.AsyncClient, ctx: Context, url: str, timeout_s: float) -> float:
    spec = CallSpec(label="cotacao", url=url, timeout_s=timeout_s, decode=decode_bid)
    bid = await fetch(client, ctx, spec)
    logger.info("Cotação: %s", bid)
    return bid


def append_bid(path: Path, bid: float) -> None:
    with path.open("a", encoding="utf-8") as fh:
        fh.write(f"Dólar: {bid}\n")
