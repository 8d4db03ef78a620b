"""SRT generation for subtitle burn-in."""

from collections.abc import Iterable

from media.models import SubtitleEntry, TrimRange


def format_srt_timestamp(seconds: float) -> str:
    """HH:MM:SS,mmm"""
    total_ms = max(0, round(seconds * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, ms = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def shift_to_range(entries: Iterable[SubtitleEntry], trim: TrimRange) -> list[SubtitleEntry]:
    """Move captions onto the trimmed timeline, clipping to [0, duration]."""
    shifted = []
    for entry in entries:
        start = min(max(0.0, entry.start - trim.start), trim.duration)
        end = min(max(0.0, entry.end - trim.start), trim.duration)
        if end <= start:
            continue
        shifted.append(SubtitleEntry(entry.text, start, end))
    return shifted


def build_srt(entries: Iterable[SubtitleEntry], trim: TrimRange) -> str:
    blocks = []
    for index, entry in enumerate(shift_to_range(entries, trim), start=1):
        blocks.append(
            f"{index}\n"
            f"{format_srt_timestamp(entry.start)} --> {format_srt_timestamp(entry.end)}\n"
            f"{entry.text}\n"
        )
    return "\n".join(blocks)
