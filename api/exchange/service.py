"""
Exchange-rate service (orchestration).

This is where we:
- fetch the latest quote from the upstream API within `query_timeout_s`
- persist it within its own, shorter `persist_timeout_s`

Both deadlines derive from the inbound request's context, so an expired
fetch scope never shortens the write.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from core.calls import CallSpec, decode_json, fetch, run_with_deadline
from core.config import Settings
from core.context import Context
from core.errors import CallError, PersistenceError

from .schemas import ExchangeRate

logger = logging.getLogger(__name__)


class RateStore(Protocol):
    async def store(self, rate: ExchangeRate) -> Any: ...


def rate_decoder(pair: str):
    key = pair.replace("-", "").upper()

    def decode(body: bytes) -> ExchangeRate:
        data = decode_json(body)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        record = data.get(key, data)
        try:
            return ExchangeRate.model_validate(record)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc

    return decode


class ExchangeService:
    def __init__(self, client: httpx.AsyncClient, store: RateStore, settings: Settings) -> None:
        self._client = client
        self._store = store
        self._settings = settings

    def call_spec(self) -> CallSpec:
        return CallSpec(
            label="exchange-rate",
            url=self._settings.exchange_url,
            timeout_s=self._settings.query_timeout_s,
            decode=rate_decoder(self._settings.exchange_pair),
            headers={"Accept": "application/json"},
        )

    async def fetch_rate(self, ctx: Context) -> ExchangeRate:
        return await fetch(self._client, ctx, self.call_spec())

    async def persist(self, ctx: Context, rate: ExchangeRate) -> None:
        try:
            await run_with_deadline(
                ctx,
                self._settings.persist_timeout_s,
                lambda: self._store.store(rate),
                label="persist exchange rate",
            )
        except PersistenceError:
            raise
        except CallError as exc:
            raise PersistenceError(str(exc)) from exc
        except Exception as exc:
            # Any store failure is a persistence failure, never a failed fetch.
            raise PersistenceError(f"Store failed: {exc!r}") from exc

    async def get_rate(self, ctx: Context) -> ExchangeRate:
        """
        Fetch then persist. A failed write is logged; the fetched rate is still returned.
        """
        rate = await self.fetch_rate(ctx)
        try:
            await self.persist(ctx, rate)
        except PersistenceError as exc:
            logger.warning("Failed to persist exchange rate: %s", exc)
        return rate
