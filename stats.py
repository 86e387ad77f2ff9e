# stats.py
import threading
from dataclasses import dataclass, field, fields

from file_utils import format_file_size


@dataclass
class BatchStats:
    """Counters for one run. Every update goes through the lock."""
    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    image_files: int = 0
    video_files: int = 0
    total_frames: int = 0
    total_batches: int = 0
    successful_batches: int = 0
    failed_batches: int = 0
    degraded_batches: int = 0
    total_retries: int = 0
    estimated_tokens: int = 0
    original_image_bytes: int = 0
    sent_image_bytes: int = 0
    frame_extraction_time: float = 0.0
    total_processing_time: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_item(self, media_type, frame_count):
        with self._lock:
            if media_type == "image":
                self.image_files += 1
            elif media_type == "video":
                self.video_files += 1
            self.total_frames += frame_count

    def record_batch(self, success, retries=0, degraded=False, estimated_tokens=0, original_bytes=0, sent_bytes=0):
        with self._lock:
            self.total_batches += 1
            self.total_retries += retries
            if success:
                self.successful_batches += 1
                self.estimated_tokens += estimated_tokens
                self.original_image_bytes += original_bytes
                self.sent_image_bytes += sent_bytes
                if degraded:
                    self.degraded_batches += 1
            else:
                self.failed_batches += 1

    def record_outcome(self, outcome):
        with self._lock:
            if outcome.success:
                self.successful_files += 1
            else:
                self.failed_files += 1

    def add_time(self, frame_extraction=0.0, total=0.0):
        with self._lock:
            self.frame_extraction_time += frame_extraction
            self.total_processing_time += total

    def snapshot(self):
        """A detached copy, safe to hand to the presentation layer."""
        with self._lock:
            values = {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith('_')}
        return BatchStats(**values)

    @property
    def success_rate(self):
        if not self.total_batches:
            return 0
        return round(self.successful_batches / self.total_batches * 100)

    def summary_lines(self):
        return [
            f"Files:    {self.successful_files}/{self.total_files} succeeded, {self.failed_files} failed "
            f"({self.image_files} images, {self.video_files} videos, {self.total_frames} frames)",
            f"Batches:  {self.successful_batches}/{self.total_batches} succeeded, {self.failed_batches} failed, "
            f"{self.degraded_batches} degraded, {self.total_retries} retries ({self.success_rate}% success)",
            f"Tokens:   ~{self.estimated_tokens} estimated",
            f"Images:   {format_file_size(self.sent_image_bytes)} sent "
            f"(from {format_file_size(self.original_image_bytes)} on disk)",
            f"Time:     {self.total_processing_time:.2f}s total, {self.frame_extraction_time:.2f}s frame extraction",
        ]
