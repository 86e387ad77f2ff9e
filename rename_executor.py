# rename_executor.py
import os
import re
import shutil
import threading
from dataclasses import dataclass

from errors import RenameError
from file_utils import log_message

MAX_NAME_LENGTH = 200
_ILLEGAL_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


@dataclass(frozen=True)
class RenameOutcome:
    original_path: str
    new_path: str
    success: bool
    analysis_result: object = None
    error: str = None


def sanitize_name(name, max_length=MAX_NAME_LENGTH):
    """Strips characters no filesystem accepts, joins words with '_' and caps the length."""
    name = _ILLEGAL_CHARS_RE.sub('_', name)
    name = re.sub(r'\s+', '_', name)
    name = re.sub(r'_{2,}', '_', name)
    name = name.strip('_. ')
    name = name[:max_length].rstrip('_. ')
    return name or "unnamed"


def _same_path(a, b):
    return os.path.normcase(os.path.abspath(a)) == os.path.normcase(os.path.abspath(b))


class RenameExecutor:
    """Moves (or copies) analyzed files to unique, descriptive names.

    Names handed out earlier in the run stay reserved, so two files that
    want the same name in a preview run still get distinct targets.
    """

    def __init__(self, output_dir=None, preview=False, log_callback=None):
        self.output_dir = output_dir
        self.preview = preview
        self.log_callback = log_callback
        self._reserved = set()
        self._lock = threading.Lock()

    def _is_taken(self, candidate, source):
        key = os.path.normcase(os.path.abspath(candidate))
        if key in self._reserved:
            return True
        return os.path.exists(candidate) and not _same_path(candidate, source)

    def unique_target(self, directory, base, extension, source=""):
        """Probes name, name-1, name-2, ... until a free name is found."""
        candidate = os.path.join(directory, base + extension)
        counter = 1
        while self._is_taken(candidate, source):
            candidate = os.path.join(directory, f"{base}-{counter}{extension}")
            counter += 1
        return candidate

    def rename(self, item, analysis_result, output_dir=None, preview=None):
        source = item.original_path
        output_dir = output_dir if output_dir is not None else self.output_dir
        preview = self.preview if preview is None else preview
        source_dir = os.path.dirname(os.path.abspath(source))
        target_dir = os.path.abspath(output_dir) if output_dir else source_dir
        copy = not _same_path(target_dir, source_dir)
        extension = os.path.splitext(source)[1].lower()
        base = sanitize_name(analysis_result.suggested_name)

        with self._lock:
            target = self.unique_target(target_dir, base, extension, source)
            key = os.path.normcase(os.path.abspath(target))
            self._reserved.add(key)
            try:
                if preview:
                    log_message(f"  DRY RUN: Would {'copy' if copy else 'rename'} '{os.path.basename(source)}' "
                                f"to '{target}'", self.log_callback)
                elif _same_path(target, source):
                    log_message(f"  '{os.path.basename(source)}' already has the suggested name.", self.log_callback)
                else:
                    self._move(source, target, copy)
                    log_message(f"  SUCCESS: {'Copied' if copy else 'Renamed'} '{os.path.basename(source)}' "
                                f"to '{os.path.basename(target)}'", self.log_callback)
            except RenameError as e:
                self._reserved.discard(key)
                log_message(f"  ERROR renaming {os.path.basename(source)}: {e}", self.log_callback)
                return RenameOutcome(source, source, False, analysis_result, str(e))
        return RenameOutcome(source, target, True, analysis_result)

    def _move(self, source, target, copy):
        try:
            if not os.path.isfile(source):
                raise RenameError(f"Source file not found: {source}")
            os.makedirs(os.path.dirname(target), exist_ok=True)
            if os.path.exists(target):
                raise RenameError(f"Target already exists: {target}")
            if copy:
                shutil.copy2(source, target)
            else:
                os.rename(source, target)
        except OSError as e:
            raise RenameError(str(e)) from e
