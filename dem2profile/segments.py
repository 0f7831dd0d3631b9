import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

import numpy as np
import geopandas as gpd
from shapely import LineString, MultiLineString, line_merge

from .exceptions import EmptyNetwork

logger = logging.getLogger(__name__)

Point2D = Tuple[float, float]

HEAD = "head"
INTERIOR = "interior"
OUTLET = "outlet"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class Segment:
    """
    One directed stream segment as produced by raster-to-vector extraction.

    The first vertex is the upstream end and the last vertex the downstream end.
    Any z values are dropped so that coincidence is tested on (x, y) only.
    """
    segment_id: Hashable
    coords: Tuple[Point2D, ...] = field(repr=False)

    def __post_init__(self):
        coords = tuple((float(c[0]), float(c[1])) for c in self.coords)
        if len(coords) < 2:
            raise ValueError(f"Segment {self.segment_id!r} needs at least 2 vertices, got {len(coords)}")
        object.__setattr__(self, "coords", coords)

    @property
    def start(self) -> Point2D:
        return self.coords[0]

    @property
    def end(self) -> Point2D:
        return self.coords[-1]

    @property
    def length(self) -> float:
        """Planar length of the segment in map units."""
        xy = np.asarray(self.coords)
        return float(np.hypot(*np.diff(xy, axis=0).T).sum())

    @property
    def line(self) -> LineString:
        return LineString(self.coords)


class SegmentStore:
    """
    Immutable collection of stream segments keyed by identifier.

    The store also owns the coincidence rule used by the rest of the package:
    with ``precision=None`` two endpoints coincide only if their coordinates are
    exactly equal floats (the stream extraction snaps vertices at confluences);
    with an integer ``precision`` both coordinates are rounded to that many
    decimals before comparison. Rounding snaps to a decimal grid, it is not a
    distance tolerance: two points closer than ``10**-precision`` that fall on
    either side of a rounding boundary (1.0004999 and 1.0005001 at precision 3)
    never coincide.
    """

    def __init__(self, precision: Optional[int] = None):
        self.precision = precision
        self._segments: Dict[Hashable, Segment] = {}
        self._is_head: Dict[Hashable, bool] = {}
        self._is_outlet: Dict[Hashable, bool] = {}
        self.classified = False

    @classmethod
    def from_geodataframe(cls,
                          gdf: gpd.GeoDataFrame,
                          id_col: Optional[str] = None,
                          precision: Optional[int] = None) -> "SegmentStore":
        """
        Build a store from a GeoDataFrame of stream lines.

        Arguments:
            gdf (gpd.GeoDataFrame): Stream segments, one (Multi)LineString per row, digitised downstream.
            id_col (str, optional): Column holding segment identifiers. Defaults to the frame index.
            precision (int, optional): Decimal places used for endpoint matching. Defaults to exact matching.

        Returns:
            SegmentStore: Store holding every non-empty segment of the frame.
        """
        if id_col is not None and id_col not in gdf.columns:
            raise ValueError(f"Required column '{id_col}' not found in stream data")

        ids = gdf[id_col] if id_col is not None else gdf.index
        segments = []
        for segment_id, geom in zip(ids, gdf.geometry):
            if geom is None or geom.is_empty:
                logger.warning("Skipping segment %r with empty geometry", segment_id)
                continue
            if isinstance(geom, MultiLineString):
                geom = line_merge(geom, directed=True)
            if not isinstance(geom, LineString):
                raise ValueError(f"Segment {segment_id!r} is a {geom.geom_type}, expected a single LineString")
            if isinstance(segment_id, np.generic):
                segment_id = segment_id.item()
            segments.append(Segment(segment_id, tuple(geom.coords)))

        return cls(precision=precision).ingest(segments)

    @classmethod
    def from_file(cls,
                  path: str,
                  id_col: Optional[str] = None,
                  precision: Optional[int] = None) -> "SegmentStore":
        """Read a stream vector file with geopandas and build a store from it."""
        gdf = gpd.read_file(path)
        logger.info("Read %d stream features from %s", len(gdf), path)
        return cls.from_geodataframe(gdf, id_col=id_col, precision=precision)

    def ingest(self, segments: Iterable[Segment]) -> "SegmentStore":
        """
        Load segments into the store.

        Raises:
            ValueError: If the store already holds data or an identifier repeats.
            EmptyNetwork: If no segments were supplied.
        """
        if self._segments:
            raise ValueError("SegmentStore has already been populated")

        loaded: Dict[Hashable, Segment] = {}
        for segment in segments:
            if segment.segment_id in loaded:
                raise ValueError(f"Duplicate segment identifier: {segment.segment_id!r}")
            loaded[segment.segment_id] = segment

        if not loaded:
            raise EmptyNetwork()

        self._segments = loaded
        return self

    def coordinate_key(self, point: Point2D) -> Point2D:
        """Key under which an endpoint is compared with other endpoints."""
        if self.precision is None:
            return point
        return (round(point[0], self.precision), round(point[1], self.precision))

    def endpoint_index(self, which: str) -> Dict[Point2D, List[Hashable]]:
        """Map coordinate keys of every segment's ``start`` or ``end`` to the ids found there."""
        if which not in ("start", "end"):
            raise ValueError(f"which must be 'start' or 'end', got {which!r}")
        index: Dict[Point2D, List[Hashable]] = {}
        for segment_id, segment in self._segments.items():
            key = self.coordinate_key(getattr(segment, which))
            index.setdefault(key, []).append(segment_id)
        return index

    def classify(self) -> "SegmentStore":
        """Flag each segment as head (nothing flows into it) and/or outlet (it flows into nothing)."""
        if not self._segments:
            raise EmptyNetwork()

        starts = self.endpoint_index("start")
        ends = self.endpoint_index("end")
        for segment_id, segment in self._segments.items():
            upstream = ends.get(self.coordinate_key(segment.start), [])
            downstream = starts.get(self.coordinate_key(segment.end), [])
            self._is_head[segment_id] = all(other == segment_id for other in upstream)
            self._is_outlet[segment_id] = all(other == segment_id for other in downstream)

        self.classified = True
        logger.debug("Classified %d segments: %d heads, %d outlets",
                     len(self), len(self.heads()), len(self.outlets()))
        return self

    def _ensure_classified(self) -> None:
        if not self.classified:
            self.classify()

    def is_head(self, segment_id: Hashable) -> bool:
        self._ensure_classified()
        return self._is_head[segment_id]

    def is_outlet(self, segment_id: Hashable) -> bool:
        self._ensure_classified()
        return self._is_outlet[segment_id]

    def classification(self, segment_id: Hashable) -> str:
        """
        Single tag for a segment. An isolated segment is both head and outlet
        and is tagged ``head``; use ``is_outlet`` to tell it apart.
        """
        if segment_id not in self._segments:
            raise KeyError(segment_id)
        if not self.classified:
            return UNKNOWN
        if self._is_head[segment_id]:
            return HEAD
        if self._is_outlet[segment_id]:
            return OUTLET
        return INTERIOR

    def heads(self) -> List[Hashable]:
        self._ensure_classified()
        return sorted_ids(sid for sid, flag in self._is_head.items() if flag)

    def outlets(self) -> List[Hashable]:
        self._ensure_classified()
        return sorted_ids(sid for sid, flag in self._is_outlet.items() if flag)

    @property
    def n_segments(self) -> int:
        return len(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments.values())

    def __contains__(self, segment_id: Any) -> bool:
        return segment_id in self._segments

    def __getitem__(self, segment_id: Hashable) -> Segment:
        return self._segments[segment_id]

    def __repr__(self) -> str:
        return f"SegmentStore(n_segments={len(self)}, precision={self.precision})"


def sorted_ids(ids: Iterable[Hashable]) -> List[Hashable]:
    """Sort identifiers, falling back to their string form when types are mixed."""
    ids = list(ids)
    try:
        return sorted(ids)
    except TypeError:
        return sorted(ids, key=str)
