"""FastAPI application factory for the nightly E2E status service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .routes.nightly import router as nightly_router
from .services.nightly import refresh_nightly_cache
from .services.nightly_cache import create_cache_store_from_env
from .services.nightly_errors import NightlyConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"


def _configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def _prewarm_enabled() -> bool:
    return os.getenv("NIGHTLY_PREWARM", "").strip().lower() in ("1", "true", "yes", "on")


async def _prewarm(app: FastAPI) -> None:
    token = os.getenv("GITHUB_TOKEN")
    if not token:
        logger.info("Skipping nightly cache prewarm: GITHUB_TOKEN not set")
        return
    try:
        await refresh_nightly_cache(token, app.state.nightly_cache)
        logger.info("Nightly cache prewarmed")
    except Exception:
        logger.exception("Nightly cache prewarm failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    prewarm_task = asyncio.create_task(_prewarm(app)) if _prewarm_enabled() else None
    yield
    if prewarm_task is not None and not prewarm_task.done():
        prewarm_task.cancel()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    _configure_logging()

    try:
        cache_store = create_cache_store_from_env()
    except NightlyConfigurationError as exc:
        raise RuntimeError(f"Invalid cache configuration: {exc}") from exc

    app = FastAPI(title="Nightly E2E Status", version="1.0.0", lifespan=lifespan)
    app.state.nightly_cache = cache_store

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    app.include_router(nightly_router, prefix="/api/nightly-e2e")
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
