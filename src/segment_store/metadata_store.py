"""Single-record store describing the open segment."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from .blob_store import BlobStore
from .errors import BlobNotFound, MetadataConflict, MetadataCorrupt, PreconditionFailed
from .models import SegmentMetadata

DEFAULT_METADATA_KEY = "current_wav_metadata.json"

LOGGER = logging.getLogger("segment_store.metadata")


class MetadataStore:
    def __init__(self, blobs: BlobStore, key: str = DEFAULT_METADATA_KEY) -> None:
        self.blobs = blobs
        self.key = key

    def load(self) -> Optional[SegmentMetadata]:
        """Return the current record, or ``None`` before the first segment exists."""

        try:
            stored = self.blobs.read(self.key)
        except BlobNotFound:
            LOGGER.debug("No metadata at %s yet", self.key)
            return None
        try:
            metadata = SegmentMetadata.model_validate_json(stored.data)
        except ValidationError as exc:
            raise MetadataCorrupt(f"failed to decode metadata {self.key}: {exc}") from exc
        metadata.generation = stored.generation
        return metadata

    def save(self, metadata: SegmentMetadata, if_generation_match: Optional[int] = None) -> int:
        try:
            generation = self.blobs.write(
                self.key,
                metadata.to_json(),
                content_type="application/json",
                if_generation_match=if_generation_match,
            )
        except PreconditionFailed as exc:
            raise MetadataConflict(f"metadata {self.key} changed concurrently: {exc}") from exc
        metadata.generation = generation
        return generation


__all__ = ["DEFAULT_METADATA_KEY", "MetadataStore"]
