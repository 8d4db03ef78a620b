"""Data models for trimming and subtitles."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class TrimRange:
    """Segment to keep, in seconds from the start of the source."""

    start: float
    end: float

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError("start must be >= 0")
        if self.end <= self.start:
            raise ValueError("end must be greater than start")

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> dict[str, float]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrimRange":
        return cls(start=float(data["start"]), end=float(data["end"]))


@dataclass(frozen=True, slots=True)
class SubtitleEntry:
    """Caption shown between start and end (seconds, source timeline)."""

    text: str
    start: float
    end: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubtitleEntry":
        return cls(text=str(data["text"]), start=float(data["start"]), end=float(data["end"]))
