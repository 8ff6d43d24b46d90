"""
Single outbound calls bounded by a deadline.

`fetch` raises on failure; `call` wraps it so that every execution produces
exactly one `CallOutcome`, which is what the race orchestrator collects.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx

from .context import Context
from .errors import (
    CallError,
    DeadlineExceededError,
    DecodeError,
    ProtocolError,
    TransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Decoder = Callable[[bytes], Any]


def decode_text(body: bytes) -> str:
    return body.decode("utf-8")


def decode_json(body: bytes) -> Any:
    return json.loads(body)


@dataclass(frozen=True)
class CallSpec:
    label: str
    url: str
    timeout_s: float
    decode: Decoder = decode_text
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CallOutcome:
    label: str
    elapsed_s: float
    ok: bool
    payload: Any = None
    error: CallError | None = None

    @classmethod
    def success(cls, label: str, elapsed_s: float, payload: Any) -> CallOutcome:
        return cls(label=label, elapsed_s=elapsed_s, ok=True, payload=payload)

    @classmethod
    def failure(cls, label: str, elapsed_s: float, error: CallError) -> CallOutcome:
        return cls(label=label, elapsed_s=elapsed_s, ok=False, error=error)

    @property
    def has_data(self) -> bool:
        if not self.ok or self.payload is None:
            return False
        if isinstance(self.payload, (str, bytes, dict, list)):
            return len(self.payload) > 0
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.label,
            "elapsed_s": round(self.elapsed_s, 6),
            "ok": self.ok,
            "data": self.payload,
            "error": str(self.error) if self.error is not None else None,
        }


async def _send(client: httpx.AsyncClient, spec: CallSpec) -> httpx.Response:
    try:
        return await client.request(spec.method, spec.url, headers=dict(spec.headers))
    except httpx.TimeoutException as exc:
        raise DeadlineExceededError(spec.label, spec.timeout_s) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise TransportError(spec.label, f"request failed: {exc}") from exc


async def fetch(client: httpx.AsyncClient, ctx: Context, spec: CallSpec) -> Any:
    """
    Issue one request bounded by `spec.timeout_s` and the parent's deadline.

    No retries: a single failed attempt is final.
    """
    with ctx.with_timeout(spec.timeout_s) as scope:
        response = await scope.run(_send(client, spec), label=spec.label)

    if not response.is_success:
        # Avoid dumping huge bodies; include a small snippet.
        raise ProtocolError(spec.label, response.status_code, response.text[:300])

    try:
        return spec.decode(response.content)
    except Exception as exc:
        raise DecodeError(spec.label, f"failed to decode response: {exc}") from exc


async def call(client: httpx.AsyncClient, ctx: Context, spec: CallSpec) -> CallOutcome:
    """
    Run `spec` and report exactly one outcome; call failures never raise.
    """
    logger.info("Querying %s (%s)", spec.label, spec.url)
    start = time.perf_counter()
    try:
        payload = await fetch(client, ctx, spec)
    except CallError as exc:
        outcome = CallOutcome.failure(spec.label, time.perf_counter() - start, exc)
        logger.warning("[%s] Failed to request: %s", spec.label, exc)
    else:
        outcome = CallOutcome.success(spec.label, time.perf_counter() - start, payload)

    logger.info("Finished %s in %.3fs", spec.label, outcome.elapsed_s)
    return outcome


async def run_with_deadline(
    ctx: Context,
    timeout_s: float,
    operation: Callable[[], Awaitable[T]],
    *,
    label: str,
) -> T:
    """
    Bound an arbitrary operation (e.g. a database write) by its own deadline.
    """
    with ctx.with_timeout(timeout_s) as scope:
        return await scope.run(operation(), label=label)
