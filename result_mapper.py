# result_mapper.py
import time
from dataclasses import dataclass, field

from batch_planner import ItemState
from file_utils import clean_suggestion

UNNAMED = "unnamed"


@dataclass(frozen=True)
class AnalysisResult:
    original_path: str
    suggested_name: str
    description: str
    tags: tuple = field(default_factory=tuple)
    filename: str = ""
    timestamp: float = 0.0
    degraded: bool = False


def build_analysis_result(original_path, description, degraded=False):
    """Derives the suggested filename base and tags from one frame description."""
    suggested_name = clean_suggestion(description) or UNNAMED
    tags = []
    for word in suggested_name.split('_'):
        if word and word not in tags:
            tags.append(word)
    return AnalysisResult(original_path=original_path, suggested_name=suggested_name,
                          description=description, tags=tuple(tags), filename=description,
                          timestamp=time.time(), degraded=degraded)


@dataclass
class Resolution:
    """An item whose analysis is settled and which is ready to be renamed."""
    item: object
    analysis_result: AnalysisResult


class ResultMapper:
    """Folds per-frame descriptions back onto the files that own the frames."""

    def map(self, batch, reconciliation, completed_files):
        """One Resolution per item of the batch that is not already completed.

        The first description seen for an item wins. Items are not added to
        completed_files here: the caller does that once the rename resolved.
        """
        resolved = {}
        for description, mapping in zip(reconciliation.descriptions, batch.item_mappings):
            path = mapping.item.original_path
            if path in completed_files or path in resolved:
                continue
            mapping.item.state = ItemState.ANALYZED
            resolved[path] = Resolution(mapping.item, build_analysis_result(path, description, reconciliation.degraded))
        return list(resolved.values())

    def failed_items(self, batch, completed_files):
        """Items of a failed batch that have no outcome yet, each once, in order."""
        return [item for item in batch.items() if item.original_path not in completed_files]

    def consume(self, batch):
        """Counts the frames of this batch as consumed by their owning items."""
        for mapping in batch.item_mappings:
            mapping.item.frames_consumed += 1
