# errors.py


class MediaNamerError(Exception):
    """Base class for all errors raised by the media renamer."""


class ConfigError(MediaNamerError):
    """Invalid configuration value."""


class DependencyUnavailable(MediaNamerError):
    """ffmpeg or ffprobe is missing. Fatal for the whole run."""

    def __init__(self, tool, reason):
        self.tool = tool
        self.reason = reason
        super().__init__(f"{tool} is not available: {reason}")


class ExtractionError(MediaNamerError):
    """Frame extraction failed for one video."""


class ProbeError(ExtractionError):
    """ffprobe could not read a usable video stream."""


class AnalysisError(MediaNamerError):
    """The AI analysis call failed (network, auth, quota, model)."""


class RenameError(MediaNamerError):
    """Moving or copying one file failed."""
