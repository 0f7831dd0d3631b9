import pytest

from dem2profile.sampler import RasterSampler, cell_area_from_raster


def test_sample_inside_raster(elevation_raster, accumulation_raster):
    elevation = RasterSampler(elevation_raster)
    accumulation = RasterSampler(accumulation_raster)

    # x=5 -> col 2, y=3 -> row 8
    assert elevation(5.0, 3.0) == 92.0
    assert accumulation(5.0, 3.0) == 82.0
    assert accumulation.sample_many([1.0, 19.0], [19.0, 1.0]) == [0.0, 99.0]


def test_off_raster_and_nodata(elevation_raster):
    elevation = RasterSampler(elevation_raster)

    assert elevation(-1.0, 5.0) is None
    assert elevation(5.0, 25.0) is None
    # row 0, col 9 holds the nodata value
    assert elevation(19.0, 19.0) is None


def test_cell_area(accumulation_raster):
    assert RasterSampler(accumulation_raster).cell_area_m2 == pytest.approx(4.0)
    assert cell_area_from_raster(accumulation_raster) == pytest.approx(4.0)
