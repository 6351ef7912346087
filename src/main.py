"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.cm_common.database import engine
from src.cm_common.errors import AppError, InternalError
from src.cm_common.redis_client import close_redis, get_redis
from src.cm_common.response import error_response
from src.cm_gateway.middleware.rate_limit import RateLimitMiddleware
from src.cm_gateway.middleware.request_log import RequestLogMiddleware
from src.cm_mint.api.admin_router import router as admin_router
from src.cm_mint.api.router import router as mint_router
from src.cm_mint.application.wiring import close_clients, get_catalog, get_scheduler
from src.cm_payment.api.router import router as webhook_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, load pools, start scheduler. Shutdown: reverse."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    get_catalog()
    if settings.SCHEDULER_ENABLED:
        get_scheduler().start()
    yield
    if settings.SCHEDULER_ENABLED:
        await get_scheduler().stop()
    await close_clients()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# Added last runs first: every request (rate-limited ones too) is logged.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


def _envelope(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _envelope(request, exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope(request, InternalError())


app.include_router(webhook_router, prefix="/api/v1")
app.include_router(mint_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
