"""Shared fixtures: fake AI analyzer, fake ffmpeg toolkit and temporary media folders."""

import os

import pytest
from PIL import Image

from config import EngineSettings
from errors import AnalysisError, DependencyUnavailable, ExtractionError
from frame_provider import DependencyStatus, FrameProvider, VideoInfo


class FakeAnalyzer:
    """Replays scripted responses; an Exception entry is raised instead of returned.

    Without a script, every call answers one well-formed DESC line per image,
    named after the image file.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def analyze(self, image_paths, prompt_text):
        self.calls.append(list(image_paths))
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return "\n".join(
            f"DESC{i + 1}: {os.path.splitext(os.path.basename(p))[0]} scene" for i, p in enumerate(image_paths)
        )


class FakeToolkit:
    """Stands in for ffprobe/ffmpeg by writing small placeholder files."""

    def __init__(self, duration=10.0, fps=25.0, keyframes=3, fail_at_call=None, probe_error=None):
        self.duration = duration
        self.fps = fps
        self.keyframes = keyframes
        self.fail_at_call = fail_at_call
        self.probe_error = probe_error
        self.frame_times = []
        self.extract_calls = 0

    def probe(self, video_path):
        if self.probe_error:
            raise self.probe_error
        return VideoInfo(duration=self.duration, width=640, height=480, fps=self.fps)

    def extract_frame_at(self, video_path, time_seconds, output_path):
        self.extract_calls += 1
        if self.fail_at_call is not None and self.extract_calls == self.fail_at_call:
            raise ExtractionError(f"FFmpeg error at {time_seconds:.2f}s: boom")
        self.frame_times.append(round(time_seconds, 3))
        with open(output_path, "wb") as f:
            f.write(b"jpeg-bytes")

    def extract_keyframes(self, video_path, output_pattern):
        for i in range(1, self.keyframes + 1):
            with open(output_pattern % i, "wb") as f:
                f.write(b"keyframe")


class FakeDependencyChecker:
    def __init__(self, available=True):
        self.available = available
        self.checks = 0

    def check_available(self):
        self.checks += 1
        if self.available:
            return DependencyStatus(True, {"ffmpeg": "6.1", "ffprobe": "6.1"})
        return DependencyStatus(False, {}, "ffmpeg", "ffmpeg command not found")

    def require(self):
        status = self.check_available()
        if not status.available:
            raise DependencyUnavailable(status.missing_tool, status.error)
        return status


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer()


@pytest.fixture
def fake_toolkit():
    return FakeToolkit()


@pytest.fixture
def frame_provider(tmp_path, fake_toolkit):
    frames_root = tmp_path / "frames"
    frames_root.mkdir()
    provider = FrameProvider(toolkit=fake_toolkit, dependency_checker=FakeDependencyChecker(),
                             frame_count=5, max_workers=2, temp_root=str(frames_root), log_callback=lambda m: None)
    yield provider
    provider.cleanup()


@pytest.fixture
def media_dir(tmp_path):
    """A folder holding a.jpg and b.mp4."""
    folder = tmp_path / "media"
    folder.mkdir()
    (folder / "a.jpg").write_bytes(b"\xff\xd8 image a")
    (folder / "b.mp4").write_bytes(b"video b")
    return folder


@pytest.fixture
def settings():
    return EngineSettings(max_batch_size=4, retry_base_delay=1.0)


@pytest.fixture
def failing_analysis():
    return AnalysisError("503 Service Unavailable")


@pytest.fixture
def make_analyzer():
    """Factory for analyzers with scripted responses."""
    return FakeAnalyzer


@pytest.fixture
def make_toolkit():
    return FakeToolkit


@pytest.fixture
def make_checker():
    return FakeDependencyChecker


@pytest.fixture
def make_image():
    """Writes a real image file with Pillow and returns its path."""

    def _make(path, size=(64, 48), mode="RGB", fmt=None):
        color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
        Image.new(mode, size, color).save(path, format=fmt)
        return path

    return _make
