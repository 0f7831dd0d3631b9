from typing import Hashable, Iterator, Optional, Sequence, Tuple

from .exceptions import CycleDetected
from .segments import Segment
from .topology import FlowLink


class RiverPath:
    """Ordered chain of segments from a head down to its outlet."""

    def __init__(self, head_id: Hashable, segments: Sequence[Segment]):
        if not segments:
            raise ValueError("A river path needs at least one segment")
        self.head_id = head_id
        self.segments: Tuple[Segment, ...] = tuple(segments)
        self.segment_ids: Tuple[Hashable, ...] = tuple(s.segment_id for s in self.segments)

    @property
    def outlet_id(self) -> Hashable:
        return self.segment_ids[-1]

    @property
    def length(self) -> float:
        """Sum of segment lengths in map units."""
        return sum(s.length for s in self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __repr__(self) -> str:
        return f"RiverPath(head_id={self.head_id!r}, n_segments={len(self)}, outlet_id={self.outlet_id!r})"


def reconstruct_path(head_id: Hashable, flow_link: FlowLink) -> RiverPath:
    """
    Follow the flows-into relation from ``head_id`` to the outlet.

    The walk is iterative so that long river chains do not hit the recursion limit.

    Raises:
        KeyError: If ``head_id`` is not part of the network.
        CycleDetected: If the walk returns to a segment it already visited.
    """
    if head_id not in flow_link:
        raise KeyError(f"Segment {head_id!r} is not part of the network")

    store = flow_link.store
    visited = set()
    segments = []
    current: Optional[Hashable] = head_id
    while current is not None:
        if current in visited:
            raise CycleDetected(head_id, current)
        visited.add(current)
        segments.append(store[current])
        current = flow_link.downstream_of(current)

    return RiverPath(head_id, segments)
