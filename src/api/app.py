"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from src.segment_store.errors import SegmentStoreError

from .metrics import instrument_app
from .metrics import router as metrics_router
from .routers import health, ingest
from .settings import get_settings

LOGGER = logging.getLogger("segment_store.api")


async def _segment_store_error(request: Request, exc: SegmentStoreError) -> PlainTextResponse:
    LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
    return PlainTextResponse(str(exc), status_code=exc.status_code)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, version=settings.version)
    app.add_exception_handler(SegmentStoreError, _segment_store_error)
    app.include_router(ingest.router)
    app.include_router(health.router)
    app.include_router(metrics_router)
    return instrument_app(app)
