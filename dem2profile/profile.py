"""
Per-vertex river profiles.

A reconstructed river path is flattened into one ordered vertex sequence, the
along-channel distance is accumulated from the channel head, and elevation and
flow accumulation are sampled at every retained vertex. Accumulation cell
counts are converted to drainage area with the raster's cell area.
"""

import logging
from typing import Callable, List, NamedTuple, Optional

import numpy as np
import pandas as pd

from .exceptions import NoDataAtVertex
from .path import RiverPath

logger = logging.getLogger(__name__)

Sampler = Callable[[float, float], Optional[float]]

PROFILE_COLUMNS = ["x", "y", "dist_m", "dist_km", "elevation", "accumulation", "drainage_area_m2"]


class ProfilePoint(NamedTuple):
    x: float
    y: float
    dist_m: float
    elevation: float
    drainage_area_m2: float


def flatten_path(path: RiverPath) -> np.ndarray:
    """
    Concatenate the vertices of every segment of ``path`` in flow order.

    Segments share their junction vertex, so any vertex equal to the one before
    it is dropped and each location appears once.

    Returns:
        np.ndarray: Array of shape (n, 2) with x and y columns.
    """
    xy = np.concatenate([np.asarray(segment.coords, dtype=float) for segment in path.segments])
    keep = np.ones(len(xy), dtype=bool)
    keep[1:] = np.any(xy[1:] != xy[:-1], axis=1)
    return xy[keep]


def cumulative_distance(xy: np.ndarray) -> np.ndarray:
    """Cumulative Euclidean distance along a vertex sequence, starting at 0."""
    xy = np.asarray(xy, dtype=float)
    if len(xy) == 0:
        return np.zeros(0)
    steps = np.hypot(*np.diff(xy, axis=0).T)
    return np.concatenate([[0.0], np.cumsum(steps)])


def _sample(sampler: Sampler, attribute: str, x: float, y: float) -> float:
    value = sampler(x, y)
    if value is None or pd.isna(value):
        logger.debug("%s", NoDataAtVertex(attribute, x, y))
        return np.nan
    return float(value)


class ProfileBuilder:
    """
    Builds the attributed profile of a river path.

    The elevation and accumulation samplers are injected callables taking map
    coordinates and returning a value, or None where the raster has no data.
    A missing value becomes NaN on that vertex; the vertex is kept.
    """

    def __init__(self,
                 sample_elevation: Sampler,
                 sample_accumulation: Sampler,
                 cell_area_m2: float,
                 keep_channel_head: bool = True):
        """
        Arguments:
            sample_elevation (Callable): Point sampler for the filled DEM.
            sample_accumulation (Callable): Point sampler for the flow accumulation raster (cell counts).
            cell_area_m2 (float): Area of one raster cell in square meters.
            keep_channel_head (bool, optional): Keep the distance-0 vertex at the channel head.
                When False only vertices with strictly positive distance are kept. Defaults to True.
        """
        if not cell_area_m2 > 0:
            raise ValueError(f"cell_area_m2 must be positive, got {cell_area_m2}")
        self.sample_elevation = sample_elevation
        self.sample_accumulation = sample_accumulation
        self.cell_area_m2 = float(cell_area_m2)
        self.keep_channel_head = keep_channel_head

    def retained_vertices(self, path: RiverPath):
        """Flattened vertices and their distances after the channel-head rule is applied."""
        xy = flatten_path(path)
        dist = cumulative_distance(xy)
        mask = dist > 0
        if self.keep_channel_head and len(mask):
            mask[0] = True
        return xy[mask], dist[mask]

    def build(self, path: RiverPath) -> pd.DataFrame:
        """
        Build the profile of ``path``.

        Returns:
            pd.DataFrame: One row per retained vertex with columns ``PROFILE_COLUMNS``.
        """
        xy, dist = self.retained_vertices(path)

        elevation = [_sample(self.sample_elevation, "elevation", x, y) for x, y in xy]
        accumulation = np.array(
            [_sample(self.sample_accumulation, "accumulation", x, y) for x, y in xy], dtype=float
        )

        profile = pd.DataFrame({
            "x": xy[:, 0],
            "y": xy[:, 1],
            "dist_m": dist,
            "elevation": np.array(elevation, dtype=float),
            "accumulation": accumulation,
            "drainage_area_m2": accumulation * self.cell_area_m2,
        })
        profile["dist_km"] = profile["dist_m"] / 1000
        return profile[PROFILE_COLUMNS]


def profile_points(profile: pd.DataFrame) -> List[ProfilePoint]:
    """Rows of a profile frame as ``ProfilePoint`` records."""
    return [
        ProfilePoint(row.x, row.y, row.dist_m, row.elevation, row.drainage_area_m2)
        for row in profile.itertuples(index=False)
    ]
