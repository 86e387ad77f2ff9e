# batch_planner.py
from dataclasses import dataclass, field
from enum import Enum


class ItemState(Enum):
    PENDING = "pending"
    FRAMES_EXTRACTED = "frames_extracted"
    ANALYZED = "analyzed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(eq=False)
class MediaItem:
    """One input file and the frame(s) that represent it.

    For an image, frames is [original_path]. For a video, frames are the
    temporary images extracted from it, in temporal order.
    """
    original_path: str
    frames: list
    media_type: str
    metadata: dict = field(default_factory=dict)
    state: ItemState = ItemState.PENDING
    frames_consumed: int = 0

    @property
    def resolved(self):
        return self.state in (ItemState.SUCCEEDED, ItemState.FAILED)

    @property
    def fully_consumed(self):
        return self.frames_consumed >= len(self.frames)


@dataclass(frozen=True)
class FrameMapping:
    frame_index: int  # position inside the batch
    item: MediaItem
    index_within_item: int


@dataclass
class Batch:
    index: int
    frames: list = field(default_factory=list)
    item_mappings: list = field(default_factory=list)
    estimated_tokens: int = 0

    def __len__(self):
        return len(self.frames)

    def add(self, frame_path, item, index_within_item, tokens):
        self.item_mappings.append(FrameMapping(len(self.frames), item, index_within_item))
        self.frames.append(frame_path)
        self.estimated_tokens += tokens

    def items(self):
        """Distinct owning items, in order of first appearance."""
        seen = []
        for mapping in self.item_mappings:
            if not any(mapping.item is item for item in seen):
                seen.append(mapping.item)
        return seen


def flatten_frames(items):
    """Yields (frame_path, item, index_within_item), item order then frame order."""
    for item in items:
        for index, frame_path in enumerate(item.frames):
            yield frame_path, item, index


def plan_batches(items, max_batch_size, max_token_budget, avg_tokens_per_frame):
    """Greedy packing of every frame into batches bounded by count and estimated tokens.

    A frame is never split; an item whose frames do not fit in the current
    batch simply continues in the next one. A single frame whose estimate
    exceeds the budget on its own still gets a batch of its own.
    """
    if max_batch_size < 1:
        raise ValueError(f"max_batch_size must be at least 1, got {max_batch_size}")

    batches = []
    current = Batch(index=0)
    for frame_path, item, index in flatten_frames(items):
        full = len(current) >= max_batch_size
        over_budget = current.estimated_tokens + avg_tokens_per_frame > max_token_budget
        if (full or over_budget) and len(current) > 0:
            batches.append(current)
            current = Batch(index=len(batches))
        current.add(frame_path, item, index, avg_tokens_per_frame)

    if len(current) > 0:
        batches.append(current)
    return batches
