"""
Flow topology between stream segments.

A segment flows into the segment whose upstream endpoint coincides with its
downstream endpoint. Start points are indexed once by coordinate key and every
end point is probed against that index, so resolution is linear in the number
of segments on average.
"""

import logging
import warnings
from typing import Dict, Hashable, List, Optional, Tuple

from .exceptions import AmbiguousTopology, EmptyNetwork
from .segments import SegmentStore, sorted_ids

logger = logging.getLogger(__name__)

SUPPORTED_TIE_BREAKS = ["lowest_id"]


class FlowLink:
    """
    Read-only "flows into" relation over the segments of a store.

    Each segment maps to at most one downstream segment id, or None for an outlet.
    Segments that had several downstream candidates are listed in ``ambiguous``
    together with every candidate; the mapping holds the tie-break choice.
    """

    def __init__(self,
                 store: SegmentStore,
                 flows_into: Dict[Hashable, Optional[Hashable]],
                 ambiguous: Dict[Hashable, Tuple[Hashable, ...]]):
        self.store = store
        self._flows_into = dict(flows_into)
        self._ambiguous = dict(ambiguous)
        self._upstream: Dict[Hashable, List[Hashable]] = {}
        for segment_id, downstream_id in self._flows_into.items():
            if downstream_id is not None:
                self._upstream.setdefault(downstream_id, []).append(segment_id)

    @property
    def flows_into(self) -> Dict[Hashable, Optional[Hashable]]:
        return dict(self._flows_into)

    @property
    def ambiguous(self) -> Dict[Hashable, Tuple[Hashable, ...]]:
        return dict(self._ambiguous)

    @property
    def n_ambiguous(self) -> int:
        return len(self._ambiguous)

    def downstream_of(self, segment_id: Hashable) -> Optional[Hashable]:
        return self._flows_into[segment_id]

    def upstream_of(self, segment_id: Hashable) -> List[Hashable]:
        if segment_id not in self._flows_into:
            raise KeyError(segment_id)
        return sorted_ids(self._upstream.get(segment_id, []))

    def outlets(self) -> List[Hashable]:
        return sorted_ids(sid for sid, down in self._flows_into.items() if down is None)

    def __contains__(self, segment_id) -> bool:
        return segment_id in self._flows_into

    def __len__(self) -> int:
        return len(self._flows_into)

    def __repr__(self) -> str:
        return (f"FlowLink(n_segments={len(self)}, "
                f"n_outlets={len(self.outlets())}, "
                f"n_ambiguous={self.n_ambiguous})")


class TopologyResolver:
    """Resolves the downstream neighbour of every segment in a store."""

    def __init__(self, tie_break: str = "lowest_id"):
        if tie_break not in SUPPORTED_TIE_BREAKS:
            raise ValueError(f"Tie-break '{tie_break}' not supported. Available: {SUPPORTED_TIE_BREAKS}")
        self.tie_break = tie_break

    def _choose(self, candidates: List[Hashable]) -> Hashable:
        return sorted_ids(candidates)[0]

    def resolve(self, store: SegmentStore) -> FlowLink:
        """
        Build the flows-into relation for ``store``.

        Ambiguous links are resolved by the tie-break, logged and issued as
        ``AmbiguousTopology`` warnings; they never abort resolution.

        Raises:
            EmptyNetwork: If the store holds no segments.
        """
        if len(store) == 0:
            raise EmptyNetwork()

        start_index = store.endpoint_index("start")

        flows_into: Dict[Hashable, Optional[Hashable]] = {}
        ambiguous: Dict[Hashable, Tuple[Hashable, ...]] = {}
        for segment in store:
            key = store.coordinate_key(segment.end)
            candidates = [sid for sid in start_index.get(key, []) if sid != segment.segment_id]

            if not candidates:
                flows_into[segment.segment_id] = None
            elif len(candidates) == 1:
                flows_into[segment.segment_id] = candidates[0]
            else:
                chosen = self._choose(candidates)
                flows_into[segment.segment_id] = chosen
                ambiguous[segment.segment_id] = tuple(sorted_ids(candidates))
                logger.warning("Ambiguous downstream link for segment %r: candidates %s, using %r",
                               segment.segment_id, ambiguous[segment.segment_id], chosen)
                warnings.warn(AmbiguousTopology(segment.segment_id, candidates, chosen), stacklevel=2)

        flow_link = FlowLink(store, flows_into, ambiguous)
        logger.info("Resolved topology for %d segments (%d outlets, %d ambiguous links)",
                    len(flow_link), len(flow_link.outlets()), flow_link.n_ambiguous)
        return flow_link


def resolve_topology(store: SegmentStore, tie_break: str = "lowest_id") -> FlowLink:
    """Resolve the flows-into relation of ``store`` with a default resolver."""
    return TopologyResolver(tie_break=tie_break).resolve(store)
