"""
Pydantic schemas for the exchange-rate endpoint.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ExchangeRate(BaseModel):
    """
    One quote as published by the upstream API.

    Upstream sends numbers as strings ("5.43"); pydantic coerces them.
    """

    model_config = ConfigDict(populate_by_name=True)

    code: str = ""
    codein: str = ""
    name: str = ""
    high: float | None = None
    low: float | None = None
    var_bid: float | None = Field(default=None, alias="varBid")
    pct_change: float | None = Field(default=None, alias="pctChange")
    bid: float
    ask: float | None = None
    timestamp: int | None = None
    create_date: str = ""


class HttpError(BaseModel):
    message: str
