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

from config.settings import settings
from src.am_admin.api.router import router as admin_router
from src.am_common.database import dispose_engine
from src.am_common.errors import AppError
from src.am_common.response import error_response
from src.am_gateway.middleware.request_log import RequestLogMiddleware
from src.am_trading.api.router import (
    auctions_router,
    escrows_router,
    listings_router,
    offers_router,
)

VERSION = "0.1.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: log the store in use. Shutdown: dispose the SQL pool if one was opened."""
    logger.info(
        "%s starting store=%s path=%s",
        settings.APP_NAME,
        settings.STORE_BACKEND,
        settings.STORE_PATH if settings.STORE_BACKEND == "json" else "-",
    )
    yield
    await dispose_engine()


app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, getattr(request.state, "request_id", None))
    if exc.http_status >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(listings_router, prefix="/api/v1")
app.include_router(escrows_router, prefix="/api/v1")
app.include_router(offers_router, prefix="/api/v1")
app.include_router(auctions_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": VERSION, "store": settings.STORE_BACKEND}
