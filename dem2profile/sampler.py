import logging
from typing import List, Optional, Sequence

import numpy as np
import rasterio
from rasterio.transform import rowcol

logger = logging.getLogger(__name__)


class RasterSampler:
    """
    Point sampler for a single raster band.

    The band is read into memory once, so a sampler can be shared between
    worker threads. Calling the sampler with map coordinates returns the cell
    value, or None when the point falls outside the raster or on a nodata cell.
    """

    def __init__(self, raster_path: str, band: int = 1):
        """
        Arguments:
            raster_path (str): Path to a raster readable by rasterio (e.g. a GeoTIFF).
            band (int, optional): Band number to sample. Defaults to 1.
        """
        self.raster_path = raster_path
        self.band = band
        with rasterio.open(raster_path) as ds:
            self._data = ds.read(band)
            self.nodata = ds.nodata
            self.transform = ds.transform
            self.res = ds.res
            self.crs = ds.crs
        logger.debug("Loaded %s band %d with shape %s", raster_path, band, self._data.shape)

    @property
    def shape(self):
        return self._data.shape

    @property
    def cell_area_m2(self) -> float:
        """Area of one cell, the product of the two axis resolutions."""
        return abs(self.res[0] * self.res[1])

    def __call__(self, x: float, y: float) -> Optional[float]:
        row, col = rowcol(self.transform, x, y)
        if not (0 <= row < self._data.shape[0] and 0 <= col < self._data.shape[1]):
            return None
        value = float(self._data[row, col])
        if np.isnan(value) or (self.nodata is not None and value == self.nodata):
            return None
        return value

    def sample_many(self, xs: Sequence[float], ys: Sequence[float]) -> List[Optional[float]]:
        return [self(x, y) for x, y in zip(xs, ys)]

    def __repr__(self) -> str:
        return f"RasterSampler(raster_path='{self.raster_path}', band={self.band}, res={self.res})"


def cell_area_from_raster(raster_path: str) -> float:
    """Cell area of a raster in squared map units."""
    with rasterio.open(raster_path) as ds:
        return abs(ds.res[0] * ds.res[1])
