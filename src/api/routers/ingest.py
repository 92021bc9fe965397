"""PCM chunk ingestion endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from src.segment_store.blob_store import BlobStore
from src.segment_store.errors import InputInvalid

from ..deps.storage import get_blob_store
from ..services.ingest_service import IngestService
from ..settings import APISettings, get_settings

LOGGER = logging.getLogger("segment_store.api")

router = APIRouter(tags=["ingest"])


def get_service(
    settings: APISettings = Depends(get_settings),
    blobs: BlobStore = Depends(get_blob_store),
) -> IngestService:
    return IngestService(settings, blobs)


@router.post("/", response_class=PlainTextResponse)
@router.post("/v1/audio", response_class=PlainTextResponse)
async def ingest_audio(
    request: Request,
    sample_rate: str | None = Query(None),
    uid: str | None = Query(None),
    service: IngestService = Depends(get_service),
):
    LOGGER.info("Received request from uid: %s", uid)
    LOGGER.info("Requested sample rate: %s", sample_rate)
    try:
        body = await request.body()
    except ClientDisconnect as exc:
        raise InputInvalid("Failed to read request body") from exc
    rate = service.resolve_sample_rate(sample_rate)
    result = await run_in_threadpool(service.ingest, body, rate, uid)
    return PlainTextResponse(f"Audio bytes processed for file {result.filename}")
