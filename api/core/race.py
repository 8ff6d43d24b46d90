"""
Race N independent calls and keep the fastest useful answer.

Every branch is waited for before a winner is chosen; completion order only
matters through each branch's measured elapsed time.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Sequence

import httpx

from .calls import CallOutcome, CallSpec, call
from .context import Context
from .errors import DeadlineExceededError, NoWinnerError, TransportError

logger = logging.getLogger(__name__)

Caller = Callable[[Context, CallSpec], Awaitable[CallOutcome]]


def select_winner(outcomes: Sequence[CallOutcome]) -> CallOutcome | None:
    """
    Smallest elapsed time among outcomes with usable data; ties go to the first declared.
    """
    winner: CallOutcome | None = None
    for outcome in outcomes:
        if not outcome.has_data:
            continue
        if winner is None or outcome.elapsed_s < winner.elapsed_s:
            winner = outcome
    return winner


class RaceOrchestrator:
    def __init__(self, caller: Caller, *, collect_grace_s: float = 0.5) -> None:
        self._caller = caller
        self._collect_grace_s = collect_grace_s

    @classmethod
    def over_http(cls, client: httpx.AsyncClient, **kwargs: float) -> RaceOrchestrator:
        return cls(functools.partial(call, client), **kwargs)

    async def collect(self, ctx: Context, specs: Sequence[CallSpec]) -> list[CallOutcome]:
        """
        Run every branch concurrently and return one outcome per branch, in declaration order.
        """
        if not specs:
            raise ValueError("At least one call is required for a race.")

        tasks = [asyncio.create_task(self._caller(ctx, spec)) for spec in specs]
        collect_timeout = max(spec.timeout_s for spec in specs) + self._collect_grace_s
        try:
            await asyncio.wait(tasks, timeout=collect_timeout)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes: list[CallOutcome] = []
        for spec, task in zip(specs, tasks):
            if task.cancelled():
                logger.warning("[%s] Branch did not report within %.3fs", spec.label, collect_timeout)
                outcomes.append(
                    CallOutcome.failure(
                        spec.label,
                        collect_timeout,
                        DeadlineExceededError(spec.label, collect_timeout),
                    )
                )
            elif task.exception() is not None:
                exc = task.exception()
                logger.error("[%s] Branch crashed: %r", spec.label, exc, exc_info=exc)
                outcomes.append(
                    CallOutcome.failure(
                        spec.label,
                        collect_timeout,
                        TransportError(spec.label, f"branch failed: {exc!r}"),
                    )
                )
            else:
                outcomes.append(task.result())
        return outcomes

    async def run(self, ctx: Context, specs: Sequence[CallSpec]) -> CallOutcome:
        outcomes = await self.collect(ctx, specs)
        winner = select_winner(outcomes)
        if winner is None:
            raise NoWinnerError(outcomes)
        return winner
