import os
import sys

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

# Add parent directory to path to import dem2profile
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from dem2profile.segments import Segment, SegmentStore


def make_store(lines, precision=None):
    """Build a store from a {segment_id: [(x, y), ...]} mapping."""
    segments = [Segment(segment_id, coords) for segment_id, coords in lines.items()]
    return SegmentStore(precision=precision).ingest(segments)


@pytest.fixture
def chain_store():
    # A -> B -> C along the diagonal
    return make_store({
        "A": [(0, 0), (1, 1)],
        "B": [(1, 1), (2, 2)],
        "C": [(2, 2), (3, 3)],
    })


@pytest.fixture
def confluence_store():
    # 1 and 2 join at (5, 5) and continue as 3
    return make_store({
        1: [(0, 10), (2, 8), (5, 5)],
        2: [(10, 10), (5, 5)],
        3: [(5, 5), (5, 0)],
    })


@pytest.fixture
def cycle_store():
    # 7 and 8 point into each other; 6 drains into the loop
    return make_store({
        6: [(-1, 0), (0, 0)],
        7: [(0, 0), (1, 0)],
        8: [(1, 0), (0, 0)],
    })


def write_raster(path, data, nodata=-9999.0, res=2.0, west=0.0, north=20.0):
    """Write a single band GeoTIFF with square cells of size ``res``."""
    data = np.asarray(data, dtype="float32")
    with rasterio.open(
        path, "w",
        driver="GTiff",
        height=data.shape[0],
        width=data.shape[1],
        count=1,
        dtype="float32",
        crs="EPSG:32633",
        transform=from_origin(west, north, res, res),
        nodata=nodata,
    ) as dst:
        dst.write(data, 1)
    return str(path)


@pytest.fixture
def elevation_raster(tmp_path):
    # Elevation drops by 1 m per row going south; one nodata cell at row 0, col 9
    rows = np.arange(10, dtype=float)[:, None]
    data = np.repeat(100.0 - rows, 10, axis=1)
    data[0, 9] = -9999.0
    return write_raster(tmp_path / "dem_filled.tif", data)


@pytest.fixture
def accumulation_raster(tmp_path):
    # Cell (row, col) holds row * 10 + col upstream cells
    data = np.arange(100, dtype=float).reshape(10, 10)
    return write_raster(tmp_path / "flow_accumulation.tif", data)
