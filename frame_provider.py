# frame_provider.py
import itertools
import json
import os
import re
import subprocess
import sys
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from errors import DependencyUnavailable, ExtractionError, ProbeError
from file_utils import log_message

DEFAULT_FRAME_COUNT = 5
DEFAULT_FRAME_OFFSET = 10  # frames into the clip for the 'single' strategy
EDGE_MARGIN = 0.1  # share of the duration skipped at both ends for 'multiple'
DEFAULT_FPS = 25.0


def _creation_flags():
    return subprocess.CREATE_NO_WINDOW if sys.platform == 'win32' else 0


@dataclass
class DependencyStatus:
    available: bool
    versions: dict = field(default_factory=dict)
    missing_tool: str = None
    error: str = None


class DependencyChecker:
    """Checks once that ffmpeg and ffprobe can be run, and caches the answer."""

    TOOLS = ("ffmpeg", "ffprobe")

    def __init__(self, tools=TOOLS, timeout=5):
        self.tools = tools
        self.timeout = timeout
        self._status = None

    def check_available(self):
        if self._status is not None:
            return self._status
        versions = {}
        for tool in self.tools:
            try:
                result = subprocess.run([tool, '-version'], capture_output=True, text=True,
                                        timeout=self.timeout, creationflags=_creation_flags())
            except FileNotFoundError:
                self._status = DependencyStatus(False, versions, tool, f"{tool} command not found. Is FFmpeg installed and in PATH?")
                return self._status
            except (OSError, subprocess.TimeoutExpired) as e:
                self._status = DependencyStatus(False, versions, tool, str(e))
                return self._status
            if result.returncode != 0:
                self._status = DependencyStatus(False, versions, tool, f"'{tool} -version' exited with code {result.returncode}")
                return self._status
            match = re.search(r'version\s+(\S+)', result.stdout or result.stderr or '', re.IGNORECASE)
            versions[tool] = match.group(1) if match else "unknown"
        self._status = DependencyStatus(True, versions)
        return self._status

    def require(self):
        """Raises DependencyUnavailable unless every tool is present."""
        status = self.check_available()
        if not status.available:
            raise DependencyUnavailable(status.missing_tool, status.error)
        return status


@dataclass
class VideoInfo:
    duration: float
    width: int
    height: int
    fps: float


@dataclass
class VideoFrames:
    video_path: str
    frame_paths: list
    duration: float
    width: int
    height: int
    fps: float
    strategy: str


def parse_fps(fps_string):
    """Parses an ffprobe rate such as '30000/1001'."""
    try:
        if '/' in fps_string:
            numerator, denominator = fps_string.split('/')
            return float(numerator) / float(denominator)
        return float(fps_string)
    except (TypeError, ValueError, ZeroDivisionError):
        return DEFAULT_FPS


def single_frame_time(duration, fps, offset=DEFAULT_FRAME_OFFSET):
    """A fixed frame offset near the start, kept inside the clip."""
    fps = fps if fps and fps > 0 else DEFAULT_FPS
    return max(0.0, min(offset / fps, duration - 1))


def multiple_frame_times(duration, count=DEFAULT_FRAME_COUNT):
    """Evenly spaced timepoints with a 10% margin trimmed from both ends."""
    if count <= 1:
        return [duration / 2]
    margin = duration * EDGE_MARGIN
    span = duration - 2 * margin
    return [margin + i * span / (count - 1) for i in range(count)]


class FfmpegToolkit:
    """Thin wrapper around the ffprobe/ffmpeg command lines."""

    def __init__(self, timeout=300):
        self.timeout = timeout

    def _run(self, cmd):
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout,
                                  creationflags=_creation_flags())
        except FileNotFoundError as e:
            raise ExtractionError(f"{cmd[0]} command not found. Is FFmpeg installed and in PATH?") from e
        except subprocess.TimeoutExpired as e:
            raise ExtractionError(f"{cmd[0]} timed out after {self.timeout}s") from e

    def probe(self, video_path):
        cmd = ['ffprobe', '-v', 'quiet', '-print_format', 'json', '-show_format', '-show_streams',
               '-select_streams', 'v:0', video_path]
        result = self._run(cmd)
        if result.returncode != 0:
            raise ProbeError(f"ffprobe failed for {video_path}: {result.stderr.strip()}")
        try:
            info = json.loads(result.stdout)
        except ValueError as e:
            raise ProbeError(f"Could not parse ffprobe output for {video_path}: {e}") from e

        video_stream = next((s for s in info.get("streams", []) if s.get("codec_type") == "video"), None)
        if not video_stream:
            raise ProbeError(f"No video stream found in {video_path}")
        duration = info.get("format", {}).get("duration") or video_stream.get("duration") or 0
        try:
            duration = float(duration)
        except (TypeError, ValueError):
            duration = 0.0
        return VideoInfo(duration=duration,
                         width=int(video_stream.get("width") or 0),
                         height=int(video_stream.get("height") or 0),
                         fps=parse_fps(video_stream.get("r_frame_rate", "")))

    def extract_frame_at(self, video_path, time_seconds, output_path):
        cmd = ['ffmpeg', '-v', 'error', '-ss', f"{time_seconds:.3f}", '-i', video_path,
               '-frames:v', '1', '-q:v', '2', '-y', output_path]
        result = self._run(cmd)
        if result.returncode != 0:
            raise ExtractionError(f"FFmpeg error at {time_seconds:.2f}s: {result.stderr.strip()}")
        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise ExtractionError(f"FFmpeg produced no frame at {time_seconds:.2f}s")

    def extract_keyframes(self, video_path, output_pattern):
        cmd = ['ffmpeg', '-v', 'error', '-i', video_path, '-vf', 'select=eq(pict_type\\,I)',
               '-vsync', 'vfr', '-q:v', '2', '-y', output_pattern]
        result = self._run(cmd)
        if result.returncode != 0:
            raise ExtractionError(f"FFmpeg keyframe extraction failed: {result.stderr.strip()}")


class FrameProvider:
    """Turns videos into temporary frame images and owns those files until released."""

    def __init__(self, toolkit=None, dependency_checker=None, frame_count=DEFAULT_FRAME_COUNT,
                 frame_offset=DEFAULT_FRAME_OFFSET, max_workers=2, temp_root=None, log_callback=None):
        self.toolkit = toolkit or FfmpegToolkit()
        self.dependency_checker = dependency_checker or DependencyChecker()
        self.frame_count = frame_count
        self.frame_offset = frame_offset
        self.max_workers = max(1, max_workers)
        self.log_callback = log_callback
        self._temp_root = temp_root
        self._owns_root = temp_root is None
        self._files = set()
        self._dirs = []
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def _next_frame_path(self, directory, prefix="frame"):
        with self._lock:
            seq = next(self._sequence)
        return os.path.join(directory, f"{prefix}_{seq:05d}.jpg")

    def _new_extraction_dir(self):
        with self._lock:
            if self._temp_root is None:
                self._temp_root = tempfile.mkdtemp(prefix="media-namer-")
            directory = tempfile.mkdtemp(prefix="frames_", dir=self._temp_root)
            self._dirs.append(directory)
        return directory

    def extract(self, video_path, strategy="multiple"):
        """Extracts frames from one video. Raises ExtractionError; nothing is left behind on failure."""
        self.dependency_checker.require()
        if not os.path.isfile(video_path):
            raise ExtractionError(f"Video file not found: {video_path}")

        info = self.toolkit.probe(video_path)
        if strategy in ("single", "multiple") and info.duration <= 0:
            raise ProbeError(f"Video {os.path.basename(video_path)} has zero or negative duration.")

        directory = self._new_extraction_dir()
        created = []
        try:
            if strategy == "single":
                path = self._next_frame_path(directory)
                created.append(path)
                self.toolkit.extract_frame_at(video_path, single_frame_time(info.duration, info.fps, self.frame_offset), path)
            elif strategy == "multiple":
                timepoints = multiple_frame_times(info.duration, self.frame_count)
                created.extend(self._next_frame_path(directory) for _ in timepoints)
                log_message(f"  Extracting {len(timepoints)} frames from {os.path.basename(video_path)} "
                            f"(duration: {info.duration:.2f}s)...", self.log_callback)
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    # list() re-raises the first extraction failure
                    list(pool.map(lambda args: self.toolkit.extract_frame_at(video_path, *args),
                                  zip(timepoints, created)))
            elif strategy == "keyframes":
                with self._lock:
                    seq = next(self._sequence)
                prefix = f"keyframe_{seq:05d}_"
                self.toolkit.extract_keyframes(video_path, os.path.join(directory, prefix + "%03d.jpg"))
                # The number of keyframes is only known once ffmpeg is done
                created.extend(os.path.join(directory, name) for name in sorted(os.listdir(directory))
                               if name.startswith(prefix))
            else:
                raise ExtractionError(f"Unsupported extraction strategy: {strategy}")
        except Exception:
            self._discard(directory, created)
            raise

        with self._lock:
            self._files.update(created)
        return VideoFrames(video_path=video_path, frame_paths=created, duration=info.duration,
                           width=info.width, height=info.height, fps=info.fps, strategy=strategy)

    def _discard(self, directory, paths):
        """Removes everything a failed extraction wrote into its own directory."""
        leftovers = set(paths)
        if os.path.isdir(directory):
            leftovers.update(os.path.join(directory, name) for name in os.listdir(directory))
        for path in leftovers:
            self._remove_file(path)
        self._remove_dir(directory)
        with self._lock:
            if directory in self._dirs:
                self._dirs.remove(directory)

    def _remove_file(self, path):
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            log_message(f"  Warning: Could not delete temporary frame file {path}: {e}", self.log_callback)

    def _remove_dir(self, directory):
        try:
            if os.path.isdir(directory):
                os.rmdir(directory)
        except OSError as e:
            log_message(f"  Warning: Could not delete temporary directory {directory}: {e}", self.log_callback)

    @property
    def tracked_files(self):
        with self._lock:
            return set(self._files)

    def release(self, paths):
        """Deletes the given tracked frames. Untracked paths (original images) are never touched."""
        with self._lock:
            owned = [p for p in paths if p in self._files]
            self._files.difference_update(owned)
        for path in owned:
            self._remove_file(path)

    def cleanup(self):
        """Deletes every tracked frame and directory. Safe to call more than once."""
        with self._lock:
            files, self._files = self._files, set()
            dirs, self._dirs = self._dirs, []
            root = self._temp_root if self._owns_root else None
            if self._owns_root:
                self._temp_root = None
        for path in files:
            self._remove_file(path)
        for directory in reversed(dirs):
            self._remove_dir(directory)
        if root:
            self._remove_dir(root)
