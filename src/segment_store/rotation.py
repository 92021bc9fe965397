"""Decide when the active segment must be closed."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import SegmentMetadata
from .wav_header import MAX_PAYLOAD_BYTES

NO_SEGMENT = "no_segment"
MAX_DURATION = "max_duration"
INACTIVITY = "inactivity"
SAMPLE_RATE_CHANGED = "sample_rate_changed"
SIZE_LIMIT = "size_limit"
SEGMENT_MISMATCH = "segment_mismatch"


def bytes_per_second(sample_rate: int, channels: int = 1, bits_per_sample: int = 16) -> int:
    return sample_rate * channels * bits_per_sample // 8


def rotation_reason(
    metadata: Optional[SegmentMetadata],
    now: datetime,
    max_duration: timedelta,
    inactivity_limit: timedelta,
    sample_rate: int,
    channels: int = 1,
    bits_per_sample: int = 16,
    incoming_bytes: int = 0,
) -> Optional[str]:
    """Return why the next chunk needs a new segment, or ``None`` to append."""

    if metadata is None:
        return NO_SEGMENT
    rate = bytes_per_second(sample_rate, channels, bits_per_sample)
    if metadata.current_size >= max_duration.total_seconds() * rate:
        return MAX_DURATION
    if _as_utc(now) - _as_utc(metadata.last_write_time) >= inactivity_limit:
        return INACTIVITY
    if metadata.sample_rate is not None and metadata.sample_rate != sample_rate:
        return SAMPLE_RATE_CHANGED
    if metadata.current_size + incoming_bytes > MAX_PAYLOAD_BYTES:
        return SIZE_LIMIT
    return None


def should_rotate(
    metadata: Optional[SegmentMetadata],
    now: datetime,
    max_duration: timedelta,
    inactivity_limit: timedelta,
    sample_rate: int,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bool:
    reason = rotation_reason(
        metadata, now, max_duration, inactivity_limit, sample_rate, channels, bits_per_sample
    )
    return reason is not None


@dataclass(slots=True, frozen=True)
class RotationPolicy:
    max_duration: timedelta = timedelta(minutes=5)
    inactivity_limit: timedelta = timedelta(minutes=2)
    channels: int = 1
    bits_per_sample: int = 16

    def reason(
        self,
        metadata: Optional[SegmentMetadata],
        now: datetime,
        sample_rate: int,
        incoming_bytes: int = 0,
    ) -> Optional[str]:
        return rotation_reason(
            metadata,
            now,
            self.max_duration,
            self.inactivity_limit,
            sample_rate,
            self.channels,
            self.bits_per_sample,
            incoming_bytes,
        )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = [
    "INACTIVITY",
    "MAX_DURATION",
    "NO_SEGMENT",
    "SAMPLE_RATE_CHANGED",
    "SEGMENT_MISMATCH",
    "SIZE_LIMIT",
    "RotationPolicy",
    "bytes_per_second",
    "rotation_reason",
    "should_rotate",
]
