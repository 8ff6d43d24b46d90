"""
Cancellation scopes with optional deadlines.

A `Context` is the parent of every bounded operation. Deriving a child with
`with_timeout(d)` gives it the deadline `min(parent deadline, now + d)`;
cancelling a scope cancels all of its live children at once.

Usage:

    with ctx.with_timeout(0.2) as scope:
        response = await scope.run(client.get(url), label="exchange-rate")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

from .errors import ContextCancelledError, DeadlineExceededError

T = TypeVar("T")


class Context:
    def __init__(
        self,
        *,
        deadline: float | None = None,
        timeout_s: float | None = None,
        parent: Context | None = None,
    ) -> None:
        self._deadline = deadline
        self._timeout_s = timeout_s
        self._parent = parent
        self._children: set[Context] = set()
        self._cancelled = asyncio.Event()
        self._reason: str | None = None

    @classmethod
    def background(cls) -> Context:
        return cls()

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def timeout_s(self) -> float | None:
        return self._timeout_s

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def with_timeout(self, seconds: float) -> Context:
        """
        Derive a child scope bounded by `seconds` and by this scope's deadline.
        """
        if seconds < 0:
            raise ValueError("Timeout must be non-negative.")

        now = time.monotonic()
        deadline = now + seconds
        if self._deadline is not None:
            deadline = min(deadline, self._deadline)

        # timeout_s is the effective budget, which a parent deadline may shorten.
        return self._derive(deadline, max(0.0, deadline - now))

    def child(self) -> Context:
        """
        Derive a scope that shares this scope's deadline and is cancelled with it.
        """
        return self._derive(self._deadline, self.remaining())

    def _derive(self, deadline: float | None, timeout_s: float | None) -> Context:
        child = Context(deadline=deadline, timeout_s=timeout_s, parent=self)
        if self.cancelled:
            child.cancel(self._reason or "context canceled")
        else:
            self._children.add(child)
        return child

    def cancel(self, reason: str = "context canceled") -> None:
        if self.cancelled:
            return
        self._reason = reason
        self._cancelled.set()
        children, self._children = self._children, set()
        for child in children:
            child.cancel(reason)

    def release(self) -> None:
        self.cancel("context released")
        if self._parent is not None:
            self._parent._children.discard(self)

    def __enter__(self) -> Context:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    async def run(self, awaitable: Awaitable[T], *, label: str = "call") -> T:
        """
        Await `awaitable` until it finishes, the deadline passes or the scope is cancelled.

        The underlying task is always cancelled and awaited before returning.
        """
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
            if task in done:
                return task.result()
            if waiter in done:
                raise ContextCancelledError(label, self._reason or "context canceled")
            raise DeadlineExceededError(label, self._timeout_s)
        finally:
            for fut in (task, waiter):
                if not fut.done():
                    fut.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)
