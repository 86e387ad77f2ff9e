# renamer_core.py
import os
import time

from analysis import AnalysisDispatcher
from batch_planner import ItemState, MediaItem, plan_batches
from cleanup import CleanupScope
from config import EngineSettings
from errors import ExtractionError
from file_utils import detect_media_type, log_message
from frame_provider import FfmpegToolkit, FrameProvider
from reconciler import reconcile
from rename_executor import RenameExecutor, RenameOutcome
from result_mapper import ResultMapper
from stats import BatchStats


class MediaBatchProcessor:
    """Runs the whole pipeline for a list of image and video files.

    Videos are turned into frames first. All frames are then packed into
    batches, and each batch is analyzed, reconciled, mapped back onto its
    files and renamed before the next batch is sent, so a late failure
    never undoes earlier work. Every input file ends up with exactly one
    RenameOutcome.
    """

    def __init__(self, analyzer, settings=None, frame_provider=None, log_callback=None,
                 stop_flag_check=None, sleep=time.sleep):
        self.settings = settings or EngineSettings()
        self.log_callback = log_callback
        self.stop_flag_check = stop_flag_check or (lambda: False)
        self.frame_provider = frame_provider or FrameProvider(
            toolkit=FfmpegToolkit(timeout=self.settings.extract_timeout),
            frame_count=self.settings.frames_to_analyze,
            frame_offset=self.settings.single_frame_offset,
            max_workers=self.settings.extract_workers,
            log_callback=log_callback)
        self.dispatcher = AnalysisDispatcher(analyzer, self.settings.prompt_text,
                                             max_retries=self.settings.max_retries,
                                             base_delay=self.settings.retry_base_delay,
                                             sleep=sleep, log_callback=log_callback)
        self.mapper = ResultMapper()
        self.renamer = RenameExecutor(self.settings.output_dir, self.settings.preview, log_callback)

    def process(self, file_paths, scope=None):
        """Returns (outcomes in input order, BatchStats snapshot).

        Raises DependencyUnavailable before touching any file when videos are
        present and ffmpeg/ffprobe are missing.
        """
        own_scope = scope is None
        scope = scope or CleanupScope(self.log_callback)
        scope.register(self.frame_provider.cleanup)
        try:
            return self._run(file_paths)
        finally:
            if own_scope:
                scope.close()

    def _run(self, file_paths):
        start = time.monotonic()
        paths = []
        seen = set()
        for path in file_paths:
            # One file under two spellings (relative, absolute, symlink) is one input
            key = os.path.normcase(os.path.realpath(path))
            if key not in seen:
                seen.add(key)
                paths.append(path)
        if len(paths) != len(file_paths):
            log_message(f"Ignoring {len(file_paths) - len(paths)} duplicate path(s).", self.log_callback)
        self._outcomes = {}
        self._completed = set()
        self._stats = BatchStats(total_files=len(paths))

        if any(detect_media_type(p) == "video" for p in paths):
            status = self.frame_provider.dependency_checker.require()
            log_message(f"FFmpeg available ({', '.join(f'{k} {v}' for k, v in status.versions.items())})",
                        self.log_callback)

        log_message(f"\n--- Preparing {len(paths)} file(s) ---", self.log_callback)
        extraction_start = time.monotonic()
        items = self._preprocess(paths)
        self._stats.add_time(frame_extraction=time.monotonic() - extraction_start)

        batches = plan_batches(items, self.settings.max_batch_size,
                               self.settings.max_tokens_per_request, self.settings.avg_tokens_per_frame)
        total_frames = sum(len(b) for b in batches)
        log_message(f"\n--- Analyzing {total_frames} frame(s) in {len(batches)} batch(es) ---", self.log_callback)

        for batch in batches:
            if self.stop_flag_check():
                log_message("Stopping analysis.", self.log_callback)
                break
            self._process_batch(batch, len(batches))

        reason = "Processing cancelled" if self.stop_flag_check() else "No analysis result"
        for item in items:
            if not item.resolved:
                self._resolve_failed(item, reason)
        for path in paths:
            if path not in self._outcomes:
                self._record(RenameOutcome(path, path, False, error="Processing cancelled"))
        for item in items:
            self._release(item, force=True)

        self._stats.add_time(total=time.monotonic() - start)
        stats = self._stats.snapshot()
        log_message(f"\nBatch processing complete: {stats.successful_files}/{stats.total_files} succeeded.",
                    self.log_callback)
        return [self._outcomes[p] for p in paths], stats

    def _preprocess(self, paths):
        """Builds one MediaItem per usable file; unusable files get a failed outcome right away."""
        items = []
        for i, path in enumerate(paths):
            if self.stop_flag_check():
                log_message("Stopping preparation.", self.log_callback)
                break
            filename = os.path.basename(path)
            if not os.path.isfile(path):
                self._record(RenameOutcome(path, path, False, error="File not found"))
                continue
            media_type = detect_media_type(path)
            extension = os.path.splitext(path)[1].lower()
            if media_type == "image":
                item = MediaItem(path, [path], "image", {"extension": extension})
            elif media_type == "video":
                log_message(f"Extracting frames ({i + 1}/{len(paths)}): {filename}", self.log_callback)
                try:
                    video = self.frame_provider.extract(path, self.settings.extraction_strategy)
                except ExtractionError as e:
                    log_message(f"  ERROR extracting frames from {filename}: {e}", self.log_callback)
                    self._record(RenameOutcome(path, path, False, error=f"Frame extraction failed: {e}"))
                    continue
                item = MediaItem(path, list(video.frame_paths), "video",
                                 {"extension": extension, "duration": video.duration, "width": video.width,
                                  "height": video.height, "fps": video.fps, "strategy": video.strategy})
                if not item.frames:
                    log_message(f"  No frames extracted from {filename}.", self.log_callback)
                    self._resolve_failed(item, "No frames extracted")
                    continue
            else:
                self._record(RenameOutcome(path, path, False, error="Unsupported file type"))
                continue
            item.state = ItemState.FRAMES_EXTRACTED
            self._stats.record_item(item.media_type, len(item.frames))
            items.append(item)
        return items

    def _process_batch(self, batch, batch_count):
        result = self.dispatcher.dispatch(batch, batch_count)
        if not result.success:
            self._stats.record_batch(False, retries=result.retries)
            for item in self.mapper.failed_items(batch, self._completed):
                self._resolve_failed(item, f"Analysis failed: {result.error}")
        else:
            reconciliation = reconcile(result.text, len(batch.frames))
            if reconciliation.degraded:
                log_message(f"  Warning: response for batch {batch.index + 1} did not match the {len(batch.frames)} "
                            f"frame(s) sent ({reconciliation.strategy}); names are a best guess.", self.log_callback)
            self._stats.record_batch(True, retries=result.retries, degraded=reconciliation.degraded,
                                     estimated_tokens=batch.estimated_tokens,
                                     original_bytes=result.original_bytes, sent_bytes=result.sent_bytes)
            for resolution in self.mapper.map(batch, reconciliation, self._completed):
                log_message(f"\nOriginal:  {os.path.basename(resolution.item.original_path)}\n"
                            f"Suggested: {resolution.analysis_result.suggested_name}", self.log_callback)
                outcome = self.renamer.rename(resolution.item, resolution.analysis_result)
                self._record(outcome, resolution.item)

        self.mapper.consume(batch)
        for item in batch.items():
            self._release(item)

    def _resolve_failed(self, item, reason):
        self._record(RenameOutcome(item.original_path, item.original_path, False, error=reason), item)

    def _record(self, outcome, item=None):
        self._outcomes[outcome.original_path] = outcome
        self._completed.add(outcome.original_path)
        self._stats.record_outcome(outcome)
        if item is not None:
            item.state = ItemState.SUCCEEDED if outcome.success else ItemState.FAILED

    def _release(self, item, force=False):
        """Deletes a video's frames once it is resolved and no later batch needs them."""
        if item.media_type != "video" or not item.frames:
            return
        if force or (item.resolved and item.fully_consumed):
            self.frame_provider.release(item.frames)
