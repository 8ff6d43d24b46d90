"""
Test doubles shared by the suite: mock HTTP providers, stores and listeners.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from core.errors import PersistenceError

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


def delayed_json(delay_s: float, payload: object, status_code: int = 200) -> Handler:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delay_s)
        return httpx.Response(status_code, json=payload)

    return handler


def routed(routes: dict[str, Handler]) -> httpx.MockTransport:
    """
    MockTransport dispatching on the request host.
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.host)
        if route is None:
            return httpx.Response(404, text="no route")
        return await route(request)

    return httpx.MockTransport(handler)


def mock_client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class MemoryStore:
    def __init__(
        self, *, delay_s: float = 0.0, fail: bool = False, error: Exception | None = None
    ) -> None:
        self.rows: list[object] = []
        self.delay_s = delay_s
        self.fail = fail
        self.error = error

    async def store(self, rate: object) -> int:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail:
            raise PersistenceError("Failed to insert exchange rate: disk full")
        if self.error is not None:
            raise self.error
        self.rows.append(rate)
        return len(self.rows)


class FakeListener:
    def __init__(self, *, start_error: Exception | None = None) -> None:
        self.events: list[str] = []
        self.start_error = start_error

    async def start(self) -> None:
        self.events.append("start")
        if self.start_error is not None:
            raise self.start_error

    def stop_accepting(self) -> None:
        self.events.append("stop_accepting")

    async def close(self) -> None:
        self.events.append("close")
