import os
import warnings

import geopandas as gpd
import pandas as pd
import pytest
from shapely import LineString

from dem2profile.diagnostics import RunDiagnostics
from dem2profile.exceptions import AmbiguousTopology
from dem2profile.pipeline import build_profiles, load_config, output_dir_for, pipeline
from dem2profile.profile import ProfileBuilder
from dem2profile.topology import resolve_topology

from conftest import make_store


@pytest.fixture
def stream_path(tmp_path):
    gdf = gpd.GeoDataFrame(
        {"seg_id": [1, 2, 3, 4, 5]},
        geometry=[
            LineString([(1, 19), (5, 15)]),
            LineString([(9, 19), (5, 15)]),
            LineString([(5, 15), (5, 9), (5, 3)]),
            LineString([(15, 15), (17, 13)]),
            # lies east of the rasters
            LineString([(31, 5), (35, 5)]),
        ],
        crs="EPSG:32633",
    )
    path = tmp_path / "streams.gpkg"
    gdf.to_file(path, driver="GPKG")
    return str(path)


@pytest.fixture
def config(tmp_path, stream_path, elevation_raster, accumulation_raster):
    return {
        "home_dir": str(tmp_path / "out"),
        "stream_path": stream_path,
        "id_col": "seg_id",
        "elevation_raster": elevation_raster,
        "accumulation_raster": accumulation_raster,
        "min_catchment_cells": 100,
        "n_workers": 2,
    }


def constant_builder():
    return ProfileBuilder(lambda x, y: 10.0, lambda x, y: 1.0, cell_area_m2=1.0)


@pytest.mark.parametrize("dask_strategy", ["dask-delay", "sequential"])
def test_pipeline_extracts_every_head(config, dask_strategy):
    config["dask_strategy"] = dask_strategy
    rivers, diagnostics = pipeline(config)

    assert sorted(river.head_id for river in rivers) == [1, 2, 4, 5]
    assert diagnostics.n_segments == 5
    assert diagnostics.n_heads == 4
    assert diagnostics.n_profiles == 4
    assert diagnostics.n_failed == 0
    assert diagnostics.n_missing_elevation == 2
    assert diagnostics.n_missing_accumulation == 2

    out_dir = output_dir_for(load_config(config))
    assert out_dir.endswith("streams_100")
    assert sorted(os.listdir(out_dir)) == ["river_1.csv", "river_2.csv", "river_4.csv", "river_5.csv"]

    profile = pd.read_csv(os.path.join(out_dir, "river_1.csv"))
    assert profile["x"].tolist() == [1.0, 5.0, 5.0, 5.0]
    assert profile["y"].tolist() == [19.0, 15.0, 9.0, 3.0]
    assert profile["elevation"].tolist() == [100.0, 98.0, 95.0, 92.0]
    assert profile["accumulation"].tolist() == [0.0, 22.0, 52.0, 82.0]
    assert profile["drainage_area_m2"].tolist() == [0.0, 88.0, 208.0, 328.0]
    assert profile["dist_m"].iloc[-1] == pytest.approx(32 ** 0.5 + 12)


def test_pipeline_river_count_is_capped(config):
    config["n_rivers"] = 10
    config["seed"] = 3
    rivers, diagnostics = pipeline(config)

    assert len(rivers) == 4
    assert diagnostics.n_selected == 4


def test_pipeline_random_subset_is_reproducible(config):
    config["n_rivers"] = 2
    config["seed"] = 7
    first, _ = pipeline(config)
    second, _ = pipeline(config)

    assert len(first) == 2
    assert [r.head_id for r in first] == [r.head_id for r in second]


def test_configured_zero_cell_area_is_rejected(config):
    config["cell_area_m2"] = 0
    with pytest.raises(ValueError):
        pipeline(config)


def test_load_config():
    base = {
        "home_dir": "out",
        "stream_path": "streams.gpkg",
        "elevation_raster": "dem.tif",
        "accumulation_raster": "acc.tif",
        "min_catchment_cells": "500",
    }
    config = load_config(dict(base, n_rivers="all"))
    assert config["n_rivers"] is None
    assert config["min_catchment_cells"] == 500
    assert config["dask_strategy"] == "dask-delay"

    assert load_config(dict(base, n_rivers="3"))["n_rivers"] == 3

    with pytest.raises(ValueError):
        load_config({"home_dir": "out"})
    with pytest.raises(ValueError):
        load_config(dict(base, dask_strategy="processes"))
    with pytest.raises(ValueError):
        load_config(dict(base, n_rivers=2.7))


def test_cycle_is_reported_and_batch_continues(cycle_store):
    flow_link = resolve_topology(cycle_store)
    diagnostics = RunDiagnostics()

    rivers = build_profiles(flow_link, [6], constant_builder(), diagnostics=diagnostics,
                            dask_strategy="sequential")

    assert rivers == []
    assert diagnostics.n_cycles == 1
    assert 6 in diagnostics.failed_heads


def test_fail_fast_skips_remaining_rivers():
    store = make_store({
        6: [(-1, 0), (0, 0)],
        7: [(0, 0), (1, 0)],
        8: [(1, 0), (0, 0)],
        9: [(10, 10), (11, 11)],
    })
    flow_link = resolve_topology(store)

    diagnostics = RunDiagnostics()
    rivers = build_profiles(flow_link, [6, 9], constant_builder(), diagnostics=diagnostics,
                            dask_strategy="sequential", fail_fast=True)
    assert rivers == []
    assert diagnostics.n_skipped == 1

    diagnostics = RunDiagnostics()
    rivers = build_profiles(flow_link, [6, 9], constant_builder(), diagnostics=diagnostics,
                            dask_strategy="sequential")
    assert [river.head_id for river in rivers] == [9]
    assert diagnostics.n_profiles == 1
    assert diagnostics.n_cycles == 1


def test_sampler_failure_is_scoped_to_one_river(confluence_store):
    def flaky_elevation(x, y):
        if x == 10:
            raise RuntimeError("raster read failed")
        return 1.0

    builder = ProfileBuilder(flaky_elevation, lambda x, y: 1.0, cell_area_m2=1.0)
    diagnostics = RunDiagnostics()
    rivers = build_profiles(resolve_topology(confluence_store), [1, 2], builder,
                            diagnostics=diagnostics, n_workers=2)

    assert [river.head_id for river in rivers] == [1]
    assert diagnostics.n_cycles == 0
    assert list(diagnostics.failed_heads) == [2]
    assert diagnostics.as_dict()["n_failed"] == 1


def test_build_profiles_counts_ambiguous_links():
    store = make_store({
        10: [(0, 0), (1, 0)],
        11: [(1, 0), (1, 1)],
        12: [(1, 0), (2, 0)],
    })
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", AmbiguousTopology)
        flow_link = resolve_topology(store)

    diagnostics = RunDiagnostics()
    rivers = build_profiles(flow_link, [10], constant_builder(), diagnostics=diagnostics,
                            dask_strategy="sequential")

    assert [river.outlet_id for river in rivers] == [11]
    assert diagnostics.n_ambiguous == 1
    assert diagnostics.as_dict()["n_ambiguous"] == 1
