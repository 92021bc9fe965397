"""Segment lifecycle and WAV append engine."""

from .append_engine import AppendEngine, segment_filename
from .blob_store import BlobStore, GCSBlobStore, LocalBlobStore, MemoryBlobStore
from .metadata_store import MetadataStore
from .models import SegmentMetadata, SegmentWrite
from .rotation import RotationPolicy, should_rotate
from .wav_header import HEADER_SIZE, encode_header

__all__ = [
    "AppendEngine",
    "BlobStore",
    "GCSBlobStore",
    "HEADER_SIZE",
    "LocalBlobStore",
    "MemoryBlobStore",
    "MetadataStore",
    "RotationPolicy",
    "SegmentMetadata",
    "SegmentWrite",
    "encode_header",
    "segment_filename",
    "should_rotate",
]
