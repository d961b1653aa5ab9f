"""
Pytest fixtures for vidremix tests.

Most tests replace the ffmpeg subprocess layer with ``FakeRunner`` and patch
ffprobe, so they run without any media tooling installed.

CI/CD Note:
Tests that need real ffmpeg/ffprobe binaries are marked with
@pytest.mark.requires_ffmpeg and skipped when the binaries are missing.
Run `pytest -m "not requires_ffmpeg"` to skip them explicitly.
"""

import shutil
import subprocess
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from vidremix.config import Settings
from vidremix.exceptions import VidremixError
from vidremix.render.ffmpeg_command import FFmpegInvocation
from vidremix.render.transform_runner import Completed
from vidremix.utils.media_info import MediaInfo


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring ffmpeg and ffprobe binaries (skipped when absent)",
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


requires_ffmpeg = pytest.mark.skipif(
    not _ffmpeg_available(),
    reason="ffmpeg/ffprobe not installed",
)


class FakeRunner:
    """Stands in for TransformRunner.

    ``run`` replays one scripted event list per invocation (default: a single
    Completed). A scripted ``Completed`` writes a small file at the
    invocation's output path, like ffmpeg would.
    """

    def __init__(
        self,
        scripts: list[list] | None = None,
        chunks: list[bytes] | None = None,
        stream_error: VidremixError | None = None,
    ):
        self.scripts = list(scripts or [])
        self.chunks = list(chunks or [])
        self.stream_error = stream_error
        self.invocations: list[FFmpegInvocation] = []

    async def run(self, invocation: FFmpegInvocation, timeout_s: float | None = None):
        self.invocations.append(invocation)
        events = self.scripts.pop(0) if self.scripts else [Completed("")]
        for event in events:
            if isinstance(event, Completed):
                Path(invocation.output).write_bytes(b"fake media")
                event = Completed(invocation.output)
            yield event

    async def stream(self, invocation: FFmpegInvocation, timeout_s: float | None = None):
        self.invocations.append(invocation)
        if self.stream_error is not None:
            raise self.stream_error
        for chunk in self.chunks:
            yield chunk


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary storage directory."""
    settings = Settings(storage_root=str(tmp_path / "storage"), cleanup_interval_s=3600)
    for directory in (settings.upload_dir, settings.output_dir, settings.bgm_dir):
        directory.mkdir(parents=True, exist_ok=True)
    return settings


@pytest.fixture
def source_file(settings: Settings) -> Path:
    """An uploaded source (content is irrelevant once ffprobe is patched)."""
    path = settings.upload_dir / "source.mp4"
    path.write_bytes(b"\x00" * 64)
    return path


@pytest.fixture
def media_info() -> MediaInfo:
    return MediaInfo(
        duration_ms=10_000,
        width=1280,
        height=720,
        fps=30.0,
        video_codec="h264",
        audio_codec="aac",
        sample_rate=48000,
        channels=2,
        has_video=True,
        has_audio=True,
    )


@pytest.fixture
def patched_probe(media_info: MediaInfo):
    """Patch ffprobe wherever it is used; yields the AsyncMock."""
    probe = AsyncMock(return_value=media_info)
    with patch("vidremix.services.transform_service.probe_media", probe), patch(
        "vidremix.services.media_storage.probe_media", probe
    ):
        yield probe


@pytest.fixture
def bgm_track(settings: Settings) -> Path:
    path = settings.bgm_dir / "calm.mp3"
    path.write_bytes(b"ID3")
    return path


@pytest.fixture
def real_video(tmp_path: Path) -> Path:
    """A 10 second 320x240 test video with a sine tone, generated with ffmpeg."""
    if not _ffmpeg_available():
        pytest.skip("ffmpeg/ffprobe not installed")
    output_path = tmp_path / "testsrc.mp4"
    subprocess.run(
        [
            "ffmpeg", "-y",
            "-f", "lavfi", "-i", "testsrc=duration=10:size=320x240:rate=25",
            "-f", "lavfi", "-i", "sine=frequency=440:duration=10",
            "-c:v", "libx264", "-g", "25",
            "-c:a", "aac",
            "-shortest",
            str(output_path),
        ],
        capture_output=True,
        check=True,
    )
    return output_path
