"""Pydantic schemas for API contracts."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    ok: bool
    backend: str
    bucket: str | None = None
    timestamp: datetime
