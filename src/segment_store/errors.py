"""Failure taxonomy for the segment store."""

from __future__ import annotations


class SegmentStoreError(Exception):
    """Base class for ingest failures; ``status_code`` is what the HTTP shell returns."""

    status_code = 500


class ConfigurationMissing(SegmentStoreError):
    """Required configuration (bucket, credentials, backend) is absent or invalid."""


class BackendUnavailable(SegmentStoreError):
    """Authentication or connection to the blob store failed."""


class MetadataCorrupt(SegmentStoreError):
    """The metadata record exists but cannot be decoded."""


class MetadataConflict(SegmentStoreError):
    """Another writer changed the metadata or segment between load and save."""

    status_code = 409


class BlobMissing(SegmentStoreError):
    """Metadata names an active segment whose blob no longer exists."""


class SegmentCorrupt(SegmentStoreError):
    """A stored segment is shorter than a header or disagrees with its metadata."""


class InputInvalid(SegmentStoreError):
    """The request body could not be read or cannot be stored."""

    status_code = 400


class BlobNotFound(Exception):
    """Raised by blob backends when a key does not exist."""


class PreconditionFailed(Exception):
    """Raised by blob backends when a generation precondition does not hold."""
