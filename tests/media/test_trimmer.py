"""Tests for the ffmpeg video trimmer."""

import json
import shutil
import subprocess
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from core.config import settings
from media.models import SubtitleEntry, TrimRange
from media.trimmer import VideoTrimmer, burn_args, parse_progress, trim_args


def _fake_popen(returncode: int = 0, stderr: str = "", workdirs: list | None = None):
    def popen(cmd, cwd, **kwargs):
        if workdirs is not None:
            workdirs.append((Path(cwd), list(cmd)))
        if returncode == 0:
            (Path(cwd) / "output.mp4").write_bytes(b"trimmed")
        process = MagicMock()
        process.stdout = iter(["frame=10\n", "out_time_us=5000000\n", "progress=end\n"])
        process.stderr = iter([stderr])
        process.returncode = returncode
        return process

    return popen


@pytest.fixture
def trimmer():
    with patch("media.trimmer.shutil.which", return_value="/usr/bin/ffmpeg"):
        trimmer = VideoTrimmer(ffmpeg_binary="ffmpeg")
        assert trimmer.load()
    return trimmer


class TestArgs:
    def test_trim_is_stream_copy(self):
        args = trim_args("input.mp4", TrimRange(1.5, 4.0))

        assert args[:6] == ["-ss", "1.500", "-i", "input.mp4", "-t", "2.500"]
        assert "copy" in args
        assert args[-1] == "output.mp4"

    def test_burn_reencodes_with_subtitles(self):
        args = burn_args("input.mov", TrimRange(0.0, 2.0))

        assert any(a.startswith("subtitles=subs.srt:force_style=") for a in args)
        assert "ultrafast" in args
        assert "-c:v" not in args

    def test_parse_progress(self):
        assert parse_progress("out_time_us=2500000", 10.0) == 0.25
        assert parse_progress("out_time_ms=20000000", 10.0) == 1.0
        assert parse_progress("progress=continue", 10.0) is None
        assert parse_progress("out_time_us=N/A", 10.0) is None


class TestVideoTrimmer:
    def test_not_loaded(self):
        with patch("media.trimmer.shutil.which", return_value=None):
            trimmer = VideoTrimmer(ffmpeg_binary="missing-ffmpeg")
            assert not trimmer.load()

        assert trimmer.trim(b"data", TrimRange(0, 1)) is None

    def test_success_reports_progress_and_cleans_up(self, trimmer):
        calls = []
        fractions = []
        trimmer.on_progress = fractions.append

        with patch("media.trimmer.subprocess.Popen", side_effect=_fake_popen(workdirs=calls)):
            data = trimmer.trim(b"source", TrimRange(2.0, 12.0), filename="take.MOV")

        assert data == b"trimmed"
        workdir, cmd = calls[0]
        assert not workdir.exists()
        assert cmd[0] == "/usr/bin/ffmpeg"
        assert "input.mov" in cmd
        assert fractions == [0.0, 0.5, 1.0]
        assert trimmer.progress == 100
        assert not trimmer.processing

    def test_failure_cleans_up(self, trimmer):
        calls = []

        with patch(
            "media.trimmer.subprocess.Popen",
            side_effect=_fake_popen(returncode=1, stderr="Invalid data", workdirs=calls),
        ):
            data = trimmer.trim(b"source", TrimRange(0.0, 1.0))

        assert data is None
        assert not calls[0][0].exists()
        assert not trimmer.processing

    def test_subtitles_written_for_burn_in(self, trimmer):
        seen = {}

        def popen(cmd, cwd, **kwargs):
            seen["srt"] = (Path(cwd) / "subs.srt").read_text(encoding="utf-8")
            return _fake_popen()(cmd, cwd, **kwargs)

        with patch("media.trimmer.subprocess.Popen", side_effect=popen):
            data = trimmer.trim(
                b"source", TrimRange(1.0, 3.0), [SubtitleEntry("Hello", 1.5, 2.0)]
            )

        assert data == b"trimmed"
        assert "00:00:00,500 --> 00:00:01,000" in seen["srt"]

    def test_missing_source_file(self, trimmer, tmp_path):
        assert trimmer.trim(tmp_path / "missing.mp4", TrimRange(0.0, 1.0)) is None

    def test_progress_callback_errors_are_contained(self, trimmer):
        trimmer.on_progress = MagicMock(side_effect=RuntimeError("ui gone"))

        with patch("media.trimmer.subprocess.Popen", side_effect=_fake_popen()):
            assert trimmer.trim(b"source", TrimRange(0.0, 10.0)) == b"trimmed"

    @pytest.mark.skipif(shutil.which("sleep") is None, reason="needs a POSIX shell")
    def test_stalled_ffmpeg_is_killed_at_deadline(self, tmp_path, monkeypatch):
        stalled = tmp_path / "ffmpeg"
        stalled.write_text("#!/bin/sh\nexec sleep 30\n")
        stalled.chmod(0o755)
        monkeypatch.setattr(settings, "media_timeout_seconds", 1)
        trimmer = VideoTrimmer(ffmpeg_binary=str(stalled))
        assert trimmer.load()

        started = time.monotonic()
        data = trimmer.trim(b"source", TrimRange(0.0, 1.0))

        assert data is None
        assert time.monotonic() - started < 10
        assert not trimmer.processing
        assert trimmer._lock.acquire(blocking=False)
        trimmer._lock.release()


def _probe_duration(path: Path) -> float:
    out = subprocess.run(
        ["ffprobe", "-v", "error", "-show_entries", "format=duration", "-of", "json", str(path)],
        capture_output=True,
        text=True,
        check=True,
    )
    return float(json.loads(out.stdout)["format"]["duration"])


@pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg not installed",
)
class TestRealFfmpeg:
    def test_trimmed_duration(self, tmp_path):
        source = tmp_path / "source.mp4"
        subprocess.run(
            [
                "ffmpeg", "-y", "-loglevel", "error",
                "-f", "lavfi", "-i", "testsrc=duration=4:size=160x120:rate=10",
                "-g", "1", "-pix_fmt", "yuv420p",
                str(source),
            ],
            check=True,
        )  # fmt: skip
        output = tmp_path / "out.mp4"

        trimmer = VideoTrimmer()
        assert trimmer.load()
        data = trimmer.trim(source, TrimRange(1.0, 3.0))

        assert data
        output.write_bytes(data)
        assert abs(_probe_duration(output) - 2.0) < 0.3
