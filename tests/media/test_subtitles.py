"""Tests for SRT generation."""

import pytest

from media.models import SubtitleEntry, TrimRange
from media.subtitles import build_srt, format_srt_timestamp, shift_to_range


class TestTimestamps:
    def test_format(self):
        assert format_srt_timestamp(0) == "00:00:00,000"
        assert format_srt_timestamp(3723.456) == "01:02:03,456"
        assert format_srt_timestamp(-1) == "00:00:00,000"


class TestShift:
    def test_clips_to_trimmed_timeline(self):
        trim = TrimRange(10.0, 20.0)
        entries = [
            SubtitleEntry("before", 2.0, 5.0),
            SubtitleEntry("straddles start", 8.0, 12.0),
            SubtitleEntry("inside", 14.0, 16.0),
            SubtitleEntry("straddles end", 19.0, 25.0),
        ]

        shifted = shift_to_range(entries, trim)

        assert [(e.text, e.start, e.end) for e in shifted] == [
            ("straddles start", 0.0, 2.0),
            ("inside", 4.0, 6.0),
            ("straddles end", 9.0, 10.0),
        ]

    def test_build_srt_numbers_blocks(self):
        srt = build_srt(
            [SubtitleEntry("Salut", 1.0, 2.5), SubtitleEntry("Ça va ?", 3.0, 4.0)],
            TrimRange(1.0, 5.0),
        )

        assert srt == (
            "1\n00:00:00,000 --> 00:00:01,500\nSalut\n"
            "\n"
            "2\n00:00:02,000 --> 00:00:03,000\nÇa va ?\n"
        )


class TestTrimRange:
    def test_invalid_ranges(self):
        with pytest.raises(ValueError):
            TrimRange(-1.0, 2.0)
        with pytest.raises(ValueError):
            TrimRange(3.0, 3.0)

    def test_duration_and_dict(self):
        trim = TrimRange.from_dict({"start": "1.5", "end": 16.5})

        assert trim.duration == 15.0
        assert trim.to_dict() == {"start": 1.5, "end": 16.5}
