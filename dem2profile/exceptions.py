"""
Error types raised or reported while extracting river profiles.

Structural failures (an empty network) abort a run. Conditions scoped to a
single river or vertex are recorded and reported in the run diagnostics.
"""

from typing import Any, Sequence


class Dem2ProfileError(Exception):
    """Base class for dem2profile errors."""


class EmptyNetwork(Dem2ProfileError, ValueError):
    """Raised when no stream segments are available after ingestion."""

    def __init__(self, message: str = "Stream network contains no segments"):
        super().__init__(message)


class CycleDetected(Dem2ProfileError, RuntimeError):
    """Raised when walking downstream from a head revisits a segment."""

    def __init__(self, head_id: Any, segment_id: Any):
        self.head_id = head_id
        self.segment_id = segment_id
        super().__init__(
            f"Cycle detected while tracing head {head_id!r}: segment {segment_id!r} visited twice"
        )


class NoDataAtVertex(Dem2ProfileError):
    """A sampler returned no data for one vertex attribute."""

    def __init__(self, attribute: str, x: float, y: float):
        self.attribute = attribute
        self.x = x
        self.y = y
        super().__init__(f"No {attribute} data at ({x}, {y})")


class AmbiguousTopology(UserWarning):
    """More than one segment starts where a segment ends."""

    def __init__(self, segment_id: Any, candidates: Sequence[Any], chosen: Any):
        self.segment_id = segment_id
        self.candidates = tuple(candidates)
        self.chosen = chosen
        super().__init__(
            f"Segment {segment_id!r} has {len(self.candidates)} downstream candidates "
            f"{list(self.candidates)}; using {chosen!r}"
        )
