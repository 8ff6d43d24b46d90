from __future__ import annotations

import asyncio

import asyncpg
import pytest

from core.errors import PersistenceError
from exchange.repository import SCHEMA_SQL, ExchangeRepository
from exchange.schemas import ExchangeRate

RATE = ExchangeRate.model_validate(
    {
        "code": "USD",
        "codein": "BRL",
        "name": "Dólar Americano/Real Brasileiro",
        "high": "5.4601",
        "low": "5.4012",
        "varBid": "0.0123",
        "pctChange": "0.23",
        "bid": "5.43",
        "ask": "5.4312",
        "timestamp": "1704988800",
        "create_date": "2024-01-11 13:00:00",
    }
)


class FakeDatabase:
    def __init__(self, *, row: dict | None = None, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.row = row
        self.error = error

    async def fetch_one(self, sql: str, *args: object) -> dict | None:
        self.calls.append((sql, args))
        if self.error is not None:
            raise self.error
        return self.row

    async def execute(self, sql: str, *args: object) -> str:
        self.calls.append((sql, args))
        return "CREATE TABLE"


@pytest.mark.unit
def test_store_inserts_columns_in_order_and_returns_the_id() -> None:
    db = FakeDatabase(row={"id": 7})

    row_id = asyncio.run(ExchangeRepository(db).store(RATE))  # type: ignore[arg-type]

    assert row_id == 7
    sql, args = db.calls[0]
    assert "INSERT INTO exchanges" in sql
    assert "RETURNING id" in sql
    assert args == (
        "USD",
        "BRL",
        "Dólar Americano/Real Brasileiro",
        5.4601,
        5.4012,
        0.0123,
        0.23,
        5.43,
        5.4312,
        1704988800,
        "2024-01-11 13:00:00",
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    "error",
    [
        asyncpg.exceptions.UniqueViolationError("duplicate key value"),
        asyncpg.exceptions.InternalClientError("protocol out of sync"),
        ConnectionResetError("connection reset by peer"),
    ],
)
def test_driver_errors_become_persistence_errors(error: Exception) -> None:
    repository = ExchangeRepository(FakeDatabase(error=error))  # type: ignore[arg-type]

    with pytest.raises(PersistenceError) as excinfo:
        asyncio.run(repository.store(RATE))

    assert "Failed to insert exchange rate" in str(excinfo.value)
    assert excinfo.value.__cause__ is error


@pytest.mark.unit
def test_missing_returned_row_is_a_persistence_error() -> None:
    repository = ExchangeRepository(FakeDatabase(row=None))  # type: ignore[arg-type]

    with pytest.raises(PersistenceError):
        asyncio.run(repository.store(RATE))


@pytest.mark.unit
def test_ensure_schema_creates_the_exchanges_table() -> None:
    db = FakeDatabase()

    asyncio.run(ExchangeRepository(db).ensure_schema())  # type: ignore[arg-type]

    assert db.calls == [(SCHEMA_SQL, ())]
    assert "CREATE TABLE IF NOT EXISTS exchanges" in SCHEMA_SQL
