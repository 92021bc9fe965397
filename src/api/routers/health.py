"""Liveness endpoint."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..schemas import HealthResponse
from ..settings import APISettings, get_settings

router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz(settings: APISettings = Depends(get_settings)) -> HealthResponse:
    backend = settings.blob_backend.strip().lower()
    return HealthResponse(
        ok=True,
        backend=backend,
        bucket=settings.gcs_bucket_name if backend == "gcs" else None,
        timestamp=datetime.now(timezone.utc),
    )
