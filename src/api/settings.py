"""API settings resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field


class APISettings(BaseModel):
    app_name: str = Field(default="WAV Segment Ingest API")
    version: str = Field(default="1.0.0")
    blob_backend: str = Field(default=os.getenv("BLOB_BACKEND", "gcs"))
    gcs_bucket_name: str | None = Field(default=os.getenv("GCS_BUCKET_NAME"))
    google_credentials_json: str | None = Field(
        default=os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON")
    )
    local_blob_dir: str = Field(default=os.getenv("LOCAL_BLOB_DIR", "data/blobs"))
    metadata_key: str = Field(
        default=os.getenv("METADATA_KEY", "current_wav_metadata.json")
    )
    default_sample_rate: int = Field(
        default=int(os.getenv("DEFAULT_SAMPLE_RATE", "16000"))
    )
    max_segment_seconds: float = Field(
        default=float(os.getenv("MAX_SEGMENT_SECONDS", "300"))
    )
    inactivity_limit_seconds: float = Field(
        default=float(os.getenv("INACTIVITY_LIMIT_SECONDS", "120"))
    )
    host: str = Field(default=os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default=int(os.getenv("PORT", "8080")))
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))


@lru_cache()
def get_settings() -> APISettings:
    return APISettings()
