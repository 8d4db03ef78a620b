"""Video trimming and subtitle burn-in."""

from media.models import SubtitleEntry, TrimRange
from media.trimmer import VideoTrimmer

__all__ = ["SubtitleEntry", "TrimRange", "VideoTrimmer"]
