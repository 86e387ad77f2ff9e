# reconciler.py
import re
from dataclasses import dataclass

ITEM_MARKER = "DESC"
FALLBACK_DESCRIPTION = "image content"

_MARKER_RE = re.compile(ITEM_MARKER + r"\d+:[ \t]*(.*)")


@dataclass
class Reconciliation:
    """Exactly one description per frame of a batch.

    degraded is set when descriptions were padded, truncated or replaced by
    the placeholder; such names are lower-confidence guesses.
    """
    descriptions: list
    strategy: str
    degraded: bool = False


def parse_markers(raw_text):
    """Descriptions from 'DESC<n>: <text>' lines, in the order they appear.

    A marker with no text yields '' so later descriptions keep their position.
    """
    return [match.group(1).strip() for match in map(_MARKER_RE.search, raw_text.splitlines()) if match]


def reconcile(raw_text, expected_count):
    """Aligns a raw model response with the number of frames that were sent."""
    if expected_count <= 0:
        return Reconciliation([], "markers")
    raw_text = raw_text or ""

    descriptions = parse_markers(raw_text)
    blanks = '' in descriptions
    descriptions = [text or FALLBACK_DESCRIPTION for text in descriptions]
    if len(descriptions) == expected_count:
        return Reconciliation(descriptions, "markers", degraded=blanks)
    if descriptions:
        # Pad by repeating the last description, or drop the extras
        while len(descriptions) < expected_count:
            descriptions.append(descriptions[-1])
        return Reconciliation(descriptions[:expected_count], "markers_adjusted", degraded=True)

    lines = [line.strip() for line in raw_text.split('\n')]
    lines = [line for line in lines if line]
    if len(lines) >= expected_count:
        return Reconciliation(lines[:expected_count], "lines")

    return Reconciliation([FALLBACK_DESCRIPTION] * expected_count, "fallback", degraded=True)
