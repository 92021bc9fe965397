"""Blob backends holding segment objects and the metadata record.

Every backend hands out a generation number with each read and accepts an
``if_generation_match`` precondition on write, following Cloud Storage
semantics: ``0`` means the object must not exist yet, any other value must
equal the object's current generation.
"""

from __future__ import annotations

import abc
import base64
import binascii
import contextlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from google.api_core import exceptions as gax_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage
from google.oauth2 import service_account

from .errors import (
    BackendUnavailable,
    BlobNotFound,
    ConfigurationMissing,
    MetadataConflict,
    PreconditionFailed,
)

LOGGER = logging.getLogger("segment_store.blob")


@dataclass(slots=True, frozen=True)
class StoredBlob:
    data: bytes
    generation: int


class BlobStore(abc.ABC):
    """Minimal read/write interface the metadata store and engine depend on."""

    name = "abstract"

    @abc.abstractmethod
    def read(self, key: str) -> StoredBlob:
        """Return the full object; raise ``BlobNotFound`` when absent."""

    @abc.abstractmethod
    def write(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        if_generation_match: Optional[int] = None,
    ) -> int:
        """Replace the object in one call and return its new generation."""


def _check_precondition(key: str, current: Optional[int], expected: Optional[int]) -> None:
    if expected is None:
        return
    if expected == 0 and current is None:
        return
    if current is None or current != expected:
        raise PreconditionFailed(f"{key}: expected generation {expected}, found {current}")


class MemoryBlobStore(BlobStore):
    """Process-local backend for tests and throwaway runs."""

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: Dict[str, Tuple[bytes, int, str]] = {}
        self._counter = 0

    def read(self, key: str) -> StoredBlob:
        with self._lock:
            entry = self._objects.get(key)
        if entry is None:
            raise BlobNotFound(key)
        return StoredBlob(data=entry[0], generation=entry[1])

    def write(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        if_generation_match: Optional[int] = None,
    ) -> int:
        with self._lock:
            entry = self._objects.get(key)
            _check_precondition(key, entry[1] if entry else None, if_generation_match)
            self._counter += 1
            self._objects[key] = (bytes(data), self._counter, content_type)
            return self._counter

    def content_type(self, key: str) -> str:
        with self._lock:
            entry = self._objects.get(key)
        if entry is None:
            raise BlobNotFound(key)
        return entry[2]

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)


class LocalBlobStore(BlobStore):
    """Directory-backed store for local development.

    Generations live in ``.generations/<key>`` next to the objects. Writes
    are serialized within the process only.
    """

    name = "local"

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._gen_dir = self.root / ".generations"
        self._gen_dir.mkdir(exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        if not key or Path(key).name != key or key.startswith("."):
            raise ValueError(f"invalid blob key: {key!r}")
        return self.root / key

    def _generation(self, key: str) -> Optional[int]:
        gen_path = self._gen_dir / key
        if not gen_path.exists():
            return None
        try:
            return int(gen_path.read_text(encoding="utf-8").strip() or "0")
        except (OSError, ValueError) as exc:
            raise BackendUnavailable(f"unreadable generation for {key}: {exc}") from exc

    def read(self, key: str) -> StoredBlob:
        path = self._path(key)
        with self._lock:
            try:
                data = path.read_bytes()
            except FileNotFoundError as exc:
                raise BlobNotFound(key) from exc
            except OSError as exc:
                raise BackendUnavailable(f"failed to read {key}: {exc}") from exc
            return StoredBlob(data=data, generation=self._generation(key) or 1)

    def write(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        if_generation_match: Optional[int] = None,
    ) -> int:
        path = self._path(key)
        with self._lock:
            current = self._generation(key)
            if current is None and path.exists():
                current = 1
            _check_precondition(key, current, if_generation_match)
            generation = (current or 0) + 1
            try:
                fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp-")
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                os.replace(tmp_name, path)
                (self._gen_dir / key).write_text(str(generation), encoding="utf-8")
            except OSError as exc:
                raise BackendUnavailable(f"failed to write {key}: {exc}") from exc
            return generation


class GCSBlobStore(BlobStore):
    """Google Cloud Storage bucket backend."""

    name = "gcs"

    def __init__(self, bucket) -> None:
        self.bucket = bucket

    @classmethod
    def from_credentials(cls, bucket_name: str | None, credentials_b64: str | None) -> "GCSBlobStore":
        if not bucket_name:
            raise ConfigurationMissing("GCS_BUCKET_NAME environment variable is not set")
        credentials = load_service_account(credentials_b64)
        try:
            client = storage.Client(project=credentials.project_id, credentials=credentials)
        except auth_exceptions.GoogleAuthError as exc:
            raise BackendUnavailable(f"failed to create storage client: {exc}") from exc
        LOGGER.info("Using bucket %s in project %s", bucket_name, credentials.project_id)
        return cls(client.bucket(bucket_name))

    def read(self, key: str) -> StoredBlob:
        with _translate_errors(key):
            blob = self.bucket.get_blob(key)
            if blob is None:
                raise BlobNotFound(key)
            try:
                data = blob.download_as_bytes(if_generation_match=blob.generation)
            except gax_exceptions.PreconditionFailed as exc:
                raise MetadataConflict(f"{key} changed while it was being read") from exc
            return StoredBlob(data=data, generation=int(blob.generation))

    def write(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        if_generation_match: Optional[int] = None,
    ) -> int:
        with _translate_errors(key):
            blob = self.bucket.blob(key)
            blob.upload_from_string(
                data,
                content_type=content_type,
                if_generation_match=if_generation_match,
            )
            return int(blob.generation or 0)


def load_service_account(credentials_b64: str | None) -> service_account.Credentials:
    """Decode base64 service-account JSON into credentials."""

    if not credentials_b64:
        raise ConfigurationMissing(
            "GOOGLE_APPLICATION_CREDENTIALS_JSON environment variable is not set"
        )
    try:
        info = json.loads(base64.b64decode(credentials_b64, validate=True))
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationMissing(f"failed to decode credentials: {exc}") from exc
    try:
        return service_account.Credentials.from_service_account_info(info)
    except (ValueError, auth_exceptions.GoogleAuthError) as exc:
        raise ConfigurationMissing(f"invalid service account credentials: {exc}") from exc


@contextlib.contextmanager
def _translate_errors(key: str) -> Iterator[None]:
    try:
        yield
    except gax_exceptions.NotFound as exc:
        raise BlobNotFound(key) from exc
    except gax_exceptions.PreconditionFailed as exc:
        raise PreconditionFailed(f"{key}: {exc.message}") from exc
    except (gax_exceptions.GoogleAPICallError, auth_exceptions.GoogleAuthError, OSError) as exc:
        raise BackendUnavailable(f"blob store request for {key} failed: {exc}") from exc


__all__ = [
    "BlobStore",
    "GCSBlobStore",
    "LocalBlobStore",
    "MemoryBlobStore",
    "StoredBlob",
    "load_service_account",
]
