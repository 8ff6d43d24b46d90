from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from core.config import Settings
from core.context import Context
from core.db import Database
from core.errors import CallError
from core.server import InFlightMiddleware, InFlightTracker
from exchange.repository import ExchangeRepository
from exchange.router import router as exchange_router
from exchange.schemas import HttpError
from exchange.service import ExchangeService

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=HttpError(message=message).model_dump())


def create_app(
    settings: Settings | None = None,
    *,
    service: ExchangeService | None = None,
    tracker: InFlightTracker | None = None,
    root: Context | None = None,
) -> FastAPI:
    """
    Build the API. Pass `service` to skip opening the DB pool and HTTP client (tests).

    Request scopes derive from `root`; cancelling it cancels every in-flight call.
    """
    settings = settings or Settings.from_env()
    tracker = tracker or InFlightTracker()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if service is not None:
            app.state.exchange_service = service
            yield
            return

        # Shared process-wide resources, opened once and injected.
        db = Database(settings.database_url)
        await db.connect()
        client = httpx.AsyncClient()
        try:
            repository = ExchangeRepository(db)
            await repository.ensure_schema()
            app.state.exchange_service = ExchangeService(client, repository, settings)
            yield
        finally:
            await client.aclose()
            await db.close()

    app = FastAPI(lifespan=lifespan)
    app.state.tracker = tracker
    app.state.root_context = root or Context.background()
    app.add_middleware(InFlightMiddleware, tracker=tracker)

    @app.exception_handler(CallError)
    async def call_error_handler(request: Request, exc: CallError) -> JSONResponse:
        logger.error("An error has occurred: %s", exc, exc_info=exc)
        return _error_response(500, str(exc))

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unexpected error: %s", exc, exc_info=exc)
        return _error_response(500, str(exc) or "Internal Server Error")

    app.include_router(exchange_router, tags=["exchange"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/")
    def root() -> dict:
        return {
            "name": "exchange-rate API",
            "endpoints": ["/cotacao", "/health"],
        }

    return app
