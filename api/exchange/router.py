"""
Exchange-rate API endpoints.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Request

from core.context import Context

from .service import ExchangeService

router = APIRouter()


async def request_context(request: Request) -> AsyncIterator[Context]:
    # Child of the server-wide scope, so a forced stop cancels in-flight calls.
    ctx = request.app.state.root_context.child()
    try:
        yield ctx
    finally:
        ctx.release()


def get_exchange_service(request: Request) -> ExchangeService:
    return request.app.state.exchange_service


@router.get("/cotacao")
async def exchange_rate(
    ctx: Context = Depends(request_context),
    service: ExchangeService = Depends(get_exchange_service),
) -> dict:
    rate = await service.get_rate(ctx)
    return rate.model_dump(by_alias=True)
