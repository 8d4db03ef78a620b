"""Video trimming and subtitle burn-in through ffmpeg."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import threading
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import httpx

from core.config import settings
from media.models import SubtitleEntry, TrimRange
from media.subtitles import build_srt

logger = logging.getLogger(__name__)

SUBTITLE_STYLE = "FontSize=24,PrimaryColour=&HFFFFFF&,OutlineColour=&H000000&,Outline=2"
OUTPUT_NAME = "output.mp4"
SUBTITLES_NAME = "subs.srt"
READER_JOIN_SECONDS = 5.0

Source = bytes | str | Path
ProgressCallback = Callable[[float], None]


class TrimError(Exception):
    """Trim failure with error code for categorization."""

    def __init__(self, message: str, error_code: str = "TRIM_FAILED") -> None:
        super().__init__(message)
        self.error_code = error_code


def trim_args(input_name: str, trim: TrimRange) -> list[str]:
    """Stream-copy cut; no re-encode."""
    return [
        "-ss", f"{trim.start:.3f}",
        "-i", input_name,
        "-t", f"{trim.duration:.3f}",
        "-c:v", "copy",
        "-c:a", "copy",
        "-avoid_negative_ts", "make_zero",
        OUTPUT_NAME,
    ]  # fmt: skip


def burn_args(input_name: str, trim: TrimRange) -> list[str]:
    """Cut and re-encode with subtitles rendered into the picture."""
    return [
        "-ss", f"{trim.start:.3f}",
        "-i", input_name,
        "-t", f"{trim.duration:.3f}",
        "-vf", f"subtitles={SUBTITLES_NAME}:force_style='{SUBTITLE_STYLE}'",
        "-c:a", "copy",
        "-preset", "ultrafast",
        OUTPUT_NAME,
    ]  # fmt: skip


def parse_progress(line: str, duration: float) -> float | None:
    """Fraction done from one `-progress` line, None for other keys."""
    key, _, value = line.strip().partition("=")
    if key not in ("out_time_us", "out_time_ms") or not value.isdigit() or duration <= 0:
        return None
    # both keys carry microseconds
    return min(1.0, int(value) / 1_000_000 / duration)


class VideoTrimmer:
    """
    Cuts a segment out of a video, optionally burning in subtitles.

    Each run works in its own temporary directory that is removed
    afterwards whatever the outcome; runs are serialized by a lock.
    """

    def __init__(
        self,
        ffmpeg_binary: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary or settings.ffmpeg_binary
        self.on_progress = on_progress
        self.loaded = False
        self.processing = False
        self.progress = 0
        self._ffmpeg: str | None = None
        self._lock = threading.Lock()

    def load(self) -> bool:
        """Resolve the ffmpeg binary; safe to call repeatedly."""
        if self.loaded:
            return True
        self._ffmpeg = shutil.which(self.ffmpeg_binary)
        self.loaded = self._ffmpeg is not None
        if not self.loaded:
            logger.error("ffmpeg binary '%s' not found", self.ffmpeg_binary)
        return self.loaded

    def trim(
        self,
        source: Source,
        trim: TrimRange,
        subtitles: Sequence[SubtitleEntry] | None = None,
        filename: str | None = None,
    ) -> bytes | None:
        """Return the trimmed MP4 bytes, or None on failure."""
        if not self.loaded:
            logger.error("Trim requested before ffmpeg was loaded")
            return None

        with self._lock:
            self.processing = True
            self._report(0.0)
            workdir = Path(tempfile.mkdtemp(prefix="trim-"))
            try:
                input_name = f"input{_extension(filename or _source_name(source))}"
                (workdir / input_name).write_bytes(self._read_source(source))
                if subtitles:
                    (workdir / SUBTITLES_NAME).write_text(build_srt(subtitles, trim), encoding="utf-8")
                    args = burn_args(input_name, trim)
                else:
                    args = trim_args(input_name, trim)
                self._run(args, workdir, trim.duration)
                data = (workdir / OUTPUT_NAME).read_bytes()
                self._report(1.0)
                logger.info("Trimmed %.3fs-%.3fs (%d bytes)", trim.start, trim.end, len(data))
                return data
            except (TrimError, OSError, httpx.HTTPError, subprocess.SubprocessError) as e:
                logger.error("Trim failed: %s", e)
                return None
            finally:
                shutil.rmtree(workdir, ignore_errors=True)
                self.processing = False

    def _read_source(self, source: Source) -> bytes:
        if isinstance(source, bytes):
            return source
        if isinstance(source, str) and source.startswith(("http://", "https://")):
            response = httpx.get(
                source, timeout=settings.media_fetch_timeout_seconds, follow_redirects=True
            )
            response.raise_for_status()
            return response.content
        return Path(source).read_bytes()

    def _run(self, args: list[str], workdir: Path, duration: float) -> None:
        cmd = [
            self._ffmpeg,
            "-y",
            "-hide_banner",
            "-loglevel", "error",
            "-nostats",
            "-progress", "pipe:1",
            *args,
        ]  # fmt: skip
        process = subprocess.Popen(
            cmd,
            cwd=workdir,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        # pipes drain on threads; the main thread only waits on the deadline
        errors: list[str] = []
        readers = [
            threading.Thread(target=self._follow_progress, args=(process.stdout, duration), daemon=True),
            threading.Thread(target=errors.extend, args=(process.stderr,), daemon=True),
        ]
        for reader in readers:
            reader.start()
        try:
            process.wait(timeout=settings.media_timeout_seconds)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.wait()
            raise TrimError("ffmpeg timed out", "TIMEOUT") from e
        finally:
            for reader in readers:
                reader.join(timeout=READER_JOIN_SECONDS)
        if process.returncode != 0:
            stderr = "".join(errors).strip()[:500]
            raise TrimError(f"ffmpeg exited with {process.returncode}: {stderr}")

    def _follow_progress(self, stream: Iterable[str], duration: float) -> None:
        for line in stream:
            fraction = parse_progress(line, duration)
            if fraction is not None:
                self._report(fraction)

    def _report(self, fraction: float) -> None:
        self.progress = round(fraction * 100)
        if self.on_progress:
            try:
                self.on_progress(fraction)
            except Exception:
                logger.exception("Progress callback failed")


def _source_name(source: Source) -> str:
    if isinstance(source, bytes):
        return ""
    return str(source).split("?", 1)[0]


def _extension(name: str) -> str:
    suffix = Path(name).suffix.lower()
    return suffix if suffix and len(suffix) <= 5 else ".mp4"

