"""Records shared by the rotation policy, metadata store and append engine."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

_FRACTION = re.compile(r"(\.\d{6})\d+")


class SegmentMetadata(BaseModel):
    """Describes the segment currently open for appends."""

    filename: str
    last_write_time: datetime
    current_size: int = Field(ge=0)
    sample_rate: int | None = None
    generation: int | None = Field(default=None, exclude=True)

    @field_validator("last_write_time", mode="before")
    @classmethod
    def _trim_nanoseconds(cls, value: Any) -> Any:
        # RFC 3339 writers may emit nanosecond precision; datetime keeps microseconds.
        if isinstance(value, str):
            return _FRACTION.sub(r"\1", value)
        return value

    @field_validator("last_write_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_json(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode("utf-8")


@dataclass(slots=True, frozen=True)
class SegmentWrite:
    """Outcome of one successful ingest."""

    filename: str
    rotated: bool
    reason: str | None
    current_size: int
    payload_bytes: int


__all__ = ["SegmentMetadata", "SegmentWrite"]
