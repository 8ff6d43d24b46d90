"""
Exchange-rate persistence (raw SQL).

Single-table, insert-only: every successful fetch becomes a new row.
"""

from __future__ import annotations

import asyncpg

from core.db import Database
from core.errors import PersistenceError

from .schemas import ExchangeRate

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS exchanges (
    id          bigserial PRIMARY KEY,
    code        varchar(255),
    codein      varchar(255),
    name        varchar(255),
    high        double precision,
    low         double precision,
    varbid      double precision,
    pctchange   double precision,
    bid         double precision,
    ask         double precision,
    "timestamp" bigint,
    createdate  varchar(64),
    inserted_at timestamptz NOT NULL DEFAULT now()
)
"""


class ExchangeRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def ensure_schema(self) -> None:
        await self._db.execute(SCHEMA_SQL)

    async def store(self, rate: ExchangeRate) -> int:
        """
        Insert one exchange rate and return its row id.
        """
        try:
            row = await self._db.fetch_one(
                """
                INSERT INTO exchanges
                    (code, codein, name, high, low, varbid, pctchange, bid, ask, "timestamp", createdate)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                RETURNING id
                """,
                rate.code,
                rate.codein,
                rate.name,
                rate.high,
                rate.low,
                rate.var_bid,
                rate.pct_change,
                rate.bid,
                rate.ask,
                rate.timestamp,
                rate.create_date,
            )
        except (
            asyncpg.PostgresError,
            asyncpg.InterfaceError,
            asyncpg.exceptions.InternalClientError,
            OSError,
        ) as exc:
            raise PersistenceError(f"Failed to insert exchange rate: {exc}") from exc
        if row is None:
            raise PersistenceError("Failed to insert exchange rate.")
        return int(row["id"])
