"""Glue between the HTTP endpoint and the append engine."""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Optional

from src.segment_store.append_engine import AppendEngine
from src.segment_store.blob_store import BlobStore
from src.segment_store.metadata_store import MetadataStore
from src.segment_store.models import SegmentWrite
from src.segment_store.rotation import RotationPolicy

from ..metrics import INGEST_BYTES, INGEST_COUNTER, INGEST_DURATION, ROTATION_COUNTER
from ..settings import APISettings

LOGGER = logging.getLogger("segment_store.api")


class IngestService:
    """Store PCM chunks through the append engine and record metrics."""

    def __init__(self, settings: APISettings, blobs: BlobStore) -> None:
        self.settings = settings
        policy = RotationPolicy(
            max_duration=timedelta(seconds=settings.max_segment_seconds),
            inactivity_limit=timedelta(seconds=settings.inactivity_limit_seconds),
        )
        self.engine = AppendEngine(blobs, MetadataStore(blobs, settings.metadata_key), policy)

    def resolve_sample_rate(self, raw: Optional[str]) -> int:
        """Parse the ``sample_rate`` query value, falling back to the default."""

        if raw is None:
            return self.settings.default_sample_rate
        try:
            value = int(raw.strip())
        except ValueError:
            LOGGER.warning("Ignoring unparsable sample_rate %r", raw)
            return self.settings.default_sample_rate
        if value <= 0:
            LOGGER.warning("Ignoring non-positive sample_rate %r", raw)
            return self.settings.default_sample_rate
        return value

    def ingest(self, payload: bytes, sample_rate: int, uid: Optional[str] = None) -> SegmentWrite:
        start_time = time.perf_counter()
        try:
            result = self.engine.append(payload, sample_rate)
        except Exception as exc:
            INGEST_COUNTER.labels(outcome="error").inc()
            LOGGER.error("Failed to store %d bytes from uid %s: %s", len(payload), uid, exc)
            raise
        finally:
            INGEST_DURATION.observe(time.perf_counter() - start_time)
        if result.rotated:
            INGEST_COUNTER.labels(outcome="created").inc()
            ROTATION_COUNTER.labels(reason=result.reason).inc()
        else:
            INGEST_COUNTER.labels(outcome="appended").inc()
        INGEST_BYTES.inc(result.payload_bytes)
        LOGGER.info("Successfully processed audio for file: %s", result.filename)
        return result
