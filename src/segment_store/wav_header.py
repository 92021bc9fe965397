"""Canonical 44-byte WAV header for PCM payloads."""

from __future__ import annotations

import struct
from dataclasses import dataclass

HEADER_SIZE = 44
MAX_PAYLOAD_BYTES = 0xFFFFFFFF - 36

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(slots=True, frozen=True)
class WavHeader:
    riff_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def encode_header(
    payload_length: int,
    sample_rate: int,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """Build the RIFF/WAVE header describing ``payload_length`` bytes of PCM."""

    if payload_length < 0 or payload_length > MAX_PAYLOAD_BYTES:
        raise ValueError(f"payload length out of range: {payload_length}")
    if sample_rate <= 0:
        raise ValueError(f"sample rate must be positive: {sample_rate}")
    if channels < 1:
        raise ValueError(f"channel count must be positive: {channels}")
    if bits_per_sample <= 0 or bits_per_sample % 8:
        raise ValueError(f"unsupported bits per sample: {bits_per_sample}")
    block_align = channels * bits_per_sample // 8
    return _HEADER.pack(
        b"RIFF",
        36 + payload_length,
        b"WAVE",
        b"fmt ",
        16,
        1,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bits_per_sample,
        b"data",
        payload_length,
    )


def decode_header(data: bytes) -> WavHeader:
    if len(data) < HEADER_SIZE:
        raise ValueError(f"need {HEADER_SIZE} bytes, got {len(data)}")
    (
        riff,
        riff_size,
        wave,
        fmt,
        _fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_tag,
        data_size,
    ) = _HEADER.unpack_from(data)
    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise ValueError("not a canonical PCM WAV header")
    return WavHeader(
        riff_size=riff_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )


__all__ = ["HEADER_SIZE", "MAX_PAYLOAD_BYTES", "WavHeader", "decode_header", "encode_header"]
