"""Blob backend selection shared by every request."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from src.segment_store.blob_store import BlobStore, GCSBlobStore, LocalBlobStore, MemoryBlobStore
from src.segment_store.errors import ConfigurationMissing

from ..settings import APISettings, get_settings


@lru_cache(maxsize=8)
def _cached_store(
    backend: str,
    bucket_name: str | None,
    credentials_b64: str | None,
    local_dir: str,
) -> BlobStore:
    if backend == "gcs":
        return GCSBlobStore.from_credentials(bucket_name, credentials_b64)
    if backend == "local":
        return LocalBlobStore(local_dir)
    if backend == "memory":
        return MemoryBlobStore()
    raise ConfigurationMissing(f"unknown BLOB_BACKEND '{backend}' (expected gcs, local or memory)")


def build_blob_store(settings: APISettings) -> BlobStore:
    return _cached_store(
        settings.blob_backend.strip().lower(),
        settings.gcs_bucket_name,
        settings.google_credentials_json,
        settings.local_blob_dir,
    )


def get_blob_store(settings: APISettings = Depends(get_settings)) -> BlobStore:
    return build_blob_store(settings)


def reset_blob_store_cache() -> None:
    _cached_store.cache_clear()
