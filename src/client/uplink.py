"""HTTP client that streams PCM chunks to the ingest API."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import httpx
import numpy as np
import soundfile as sf

LOGGER = logging.getLogger("segment_store.uplink")

BYTES_PER_SAMPLE = 2


class UplinkError(Exception):
    pass


def load_pcm16(path: str | Path) -> Tuple[bytes, int]:
    """Read any soundfile-supported file as mono 16-bit little-endian PCM."""

    audio, sample_rate = sf.read(str(path), dtype="int16", always_2d=True)
    if audio.shape[1] > 1:
        audio = audio.mean(axis=1).round().astype(np.int16)
    else:
        audio = audio[:, 0]
    return audio.astype("<i2").tobytes(), int(sample_rate)


def iter_chunks(pcm: bytes, sample_rate: int, chunk_seconds: float) -> Iterator[bytes]:
    """Split PCM into chunks of ``chunk_seconds`` without cutting a sample in half."""

    if chunk_seconds <= 0:
        raise ValueError("chunk_seconds must be positive")
    samples = max(1, int(round(sample_rate * chunk_seconds)))
    step = samples * BYTES_PER_SAMPLE
    usable = len(pcm) - (len(pcm) % BYTES_PER_SAMPLE)
    for offset in range(0, usable, step):
        yield pcm[offset : min(offset + step, usable)]


class UplinkClient:
    def __init__(
        self,
        base_url: str,
        *,
        uid: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        if not self.base_url:
            raise UplinkError("Server URL missing")
        self.uid = uid
        self._client = client or httpx.Client(timeout=timeout)

    def send_chunk(self, pcm: bytes, sample_rate: int) -> str:
        """POST one chunk and return the segment filename the server reports."""

        params = {"sample_rate": str(sample_rate)}
        if self.uid:
            params["uid"] = self.uid
        try:
            resp = self._client.post(
                f"{self.base_url}/v1/audio",
                params=params,
                content=pcm,
                headers={"Content-Type": "application/octet-stream"},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UplinkError(
                f"Upload failed: {exc.response.status_code} {exc.response.text.strip()}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UplinkError(str(exc)) from exc
        return _filename_from_reply(resp.text)

    def stream_pcm(
        self,
        pcm: bytes,
        sample_rate: int,
        chunk_seconds: float = 1.0,
        *,
        realtime: bool = False,
    ) -> List[str]:
        filenames: List[str] = []
        for index, chunk in enumerate(iter_chunks(pcm, sample_rate, chunk_seconds)):
            filename = self.send_chunk(chunk, sample_rate)
            LOGGER.info("chunk %d (%d bytes) -> %s", index, len(chunk), filename)
            filenames.append(filename)
            if realtime:
                time.sleep(len(chunk) / (sample_rate * BYTES_PER_SAMPLE))
        return filenames

    def close(self) -> None:
        self._client.close()


def _filename_from_reply(text: str) -> str:
    prefix = "Audio bytes processed for file "
    text = text.strip()
    if not text.startswith(prefix):
        raise UplinkError(f"Invalid response: {text[:120]}")
    return text[len(prefix) :]


__all__ = ["UplinkClient", "UplinkError", "iter_chunks", "load_pcm16"]
