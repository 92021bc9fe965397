"""Route each PCM chunk into the open WAV segment or a fresh one.

Blob stores cannot append byte ranges, so an append reads the whole segment,
swaps in a header describing the new length and writes the object back in one
call. Cost grows with segment size; the rotation duration cap bounds it.

Load, decide, write and save run under a per-key lock within the process.
Across processes, every write carries a generation precondition so a racing
writer surfaces as ``MetadataConflict`` instead of a lost update.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .blob_store import BlobStore, StoredBlob
from .errors import (
    BlobMissing,
    BlobNotFound,
    InputInvalid,
    MetadataConflict,
    PreconditionFailed,
    SegmentCorrupt,
)
from .metadata_store import MetadataStore
from .models import SegmentMetadata, SegmentWrite
from .rotation import SEGMENT_MISMATCH, RotationPolicy
from .wav_header import HEADER_SIZE, MAX_PAYLOAD_BYTES, encode_header

WAV_CONTENT_TYPE = "audio/wav"
FILENAME_FORMAT = "%d_%m_%Y_%H_%M_%S"
MAX_NAME_SUFFIX = 1000

LOGGER = logging.getLogger("segment_store.engine")

_KEY_LOCKS: Dict[str, threading.Lock] = {}
_KEY_LOCKS_GUARD = threading.Lock()


def _lock_for(key: str) -> threading.Lock:
    with _KEY_LOCKS_GUARD:
        lock = _KEY_LOCKS.get(key)
        if lock is None:
            lock = _KEY_LOCKS[key] = threading.Lock()
        return lock


def segment_filename(now: datetime, suffix: int = 0) -> str:
    stem = now.strftime(FILENAME_FORMAT)
    if suffix:
        stem = f"{stem}_{suffix}"
    return f"{stem}.wav"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AppendEngine:
    def __init__(
        self,
        blobs: BlobStore,
        metadata: MetadataStore,
        policy: Optional[RotationPolicy] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.blobs = blobs
        self.metadata = metadata
        self.policy = policy or RotationPolicy()
        self.clock = clock

    def ingest(self, payload: bytes, sample_rate: int, now: Optional[datetime] = None) -> str:
        """Store ``payload`` and return the name of the segment now holding it."""

        return self.append(payload, sample_rate, now).filename

    def append(self, payload: bytes, sample_rate: int, now: Optional[datetime] = None) -> SegmentWrite:
        if len(payload) > MAX_PAYLOAD_BYTES:
            raise InputInvalid(f"chunk of {len(payload)} bytes exceeds the WAV size limit")
        now = now or self.clock()
        with _lock_for(self.metadata.key):
            current = self.metadata.load()
            reason = self.policy.reason(current, now, sample_rate, len(payload))
            updated: Optional[SegmentMetadata] = None
            if reason is None and current is not None:
                stored = self._read_segment(current)
                stored_size = len(stored.data) - HEADER_SIZE
                if stored_size == current.current_size:
                    updated = self._extend_segment(current, stored, payload, sample_rate, now)
                else:
                    # A blob write whose metadata save failed leaves the segment ahead of its record.
                    LOGGER.warning(
                        "Segment %s holds %d payload bytes, metadata records %d",
                        current.filename,
                        stored_size,
                        current.current_size,
                    )
                    reason = SEGMENT_MISMATCH
            if updated is None:
                if current is not None:
                    LOGGER.info("Closing segment %s (%s)", current.filename, reason)
                updated = self._start_segment(payload, sample_rate, now)
            self.metadata.save(
                updated,
                if_generation_match=current.generation if current is not None else 0,
            )
        return SegmentWrite(
            filename=updated.filename,
            rotated=reason is not None,
            reason=reason,
            current_size=updated.current_size,
            payload_bytes=len(payload),
        )

    def _start_segment(self, payload: bytes, sample_rate: int, now: datetime) -> SegmentMetadata:
        content = encode_header(
            len(payload), sample_rate, self.policy.channels, self.policy.bits_per_sample
        ) + payload
        for suffix in range(MAX_NAME_SUFFIX):
            filename = segment_filename(now, suffix)
            try:
                self.blobs.write(
                    filename,
                    content,
                    content_type=WAV_CONTENT_TYPE,
                    if_generation_match=0,
                )
            except PreconditionFailed:
                LOGGER.warning("Segment %s already exists, trying next suffix", filename)
                continue
            LOGGER.info("Created segment %s with %d bytes", filename, len(payload))
            return SegmentMetadata(
                filename=filename,
                last_write_time=now,
                current_size=len(payload),
                sample_rate=sample_rate,
            )
        raise MetadataConflict(
            f"no free segment name for {segment_filename(now)} after {MAX_NAME_SUFFIX} attempts"
        )

    def _read_segment(self, current: SegmentMetadata) -> StoredBlob:
        try:
            stored = self.blobs.read(current.filename)
        except BlobNotFound as exc:
            raise BlobMissing(f"active segment {current.filename} does not exist") from exc
        if len(stored.data) < HEADER_SIZE:
            raise SegmentCorrupt(
                f"segment {current.filename} is {len(stored.data)} bytes, shorter than a WAV header"
            )
        return stored

    def _extend_segment(
        self,
        current: SegmentMetadata,
        stored: StoredBlob,
        payload: bytes,
        sample_rate: int,
        now: datetime,
    ) -> SegmentMetadata:
        new_size = current.current_size + len(payload)
        header = encode_header(
            new_size, sample_rate, self.policy.channels, self.policy.bits_per_sample
        )
        content = b"".join((header, stored.data[HEADER_SIZE:], payload))
        try:
            self.blobs.write(
                current.filename,
                content,
                content_type=WAV_CONTENT_TYPE,
                if_generation_match=stored.generation,
            )
        except PreconditionFailed as exc:
            raise MetadataConflict(f"segment {current.filename} changed concurrently") from exc
        LOGGER.info(
            "Appended %d bytes to %s (now %d bytes)", len(payload), current.filename, new_size
        )
        return SegmentMetadata(
            filename=current.filename,
            last_write_time=now,
            current_size=new_size,
            sample_rate=sample_rate,
        )


__all__ = ["AppendEngine", "FILENAME_FORMAT", "WAV_CONTENT_TYPE", "segment_filename"]
