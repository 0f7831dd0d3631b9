#!/usr/bin/env python3
"""
DEM2Profile Pipeline Script

This script runs the complete pipeline to extract river long profiles from a
stream network derived from a DEM:
1. Load stream segments
2. Resolve flow topology between segments
3. Select head segments
4. Trace each head to its outlet and build its attributed profile
5. Export one CSV per river

Usage:
    # As a script:
    python -m dem2profile.pipeline --config config.json

    # As an imported function:
    import dem2profile
    dem2profile.pipeline(config={...})
"""

import os
import argparse
import json
import logging
import threading
import warnings
from typing import Hashable, List, Optional, Sequence, Tuple

from dask import delayed
from dask.diagnostics import ProgressBar
from tqdm import tqdm

from .diagnostics import RunDiagnostics
from .exceptions import AmbiguousTopology, CycleDetected
from .heads import select_heads
from .path import reconstruct_path
from .profile import ProfileBuilder
from .river import RiverProfile
from .sampler import RasterSampler
from .segments import SegmentStore
from .topology import FlowLink, TopologyResolver

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ["home_dir", "stream_path", "elevation_raster", "accumulation_raster", "min_catchment_cells"]

DEFAULT_CONFIG = {
    # General settings
    "home_dir": "./data",
    "stream_path": "./data/streams.gpkg",
    "id_col": None,
    # Rasters produced by the hydrological preprocessing
    "elevation_raster": "./data/dem_filled.tif",
    "accumulation_raster": "./data/flow_accumulation.tif",
    "min_catchment_cells": 1000,
    # River selection
    "n_rivers": None,
    "seed": None,
    # Profile settings
    "cell_area_m2": None,
    "coordinate_precision": None,
    "keep_channel_head": True,
    # Execution
    "n_workers": 4,
    "dask_strategy": "dask-delay",
    "fail_fast": False,
    "log_level": "INFO",
}

SUPPORTED_DASK_STRATEGIES = ["dask-delay", "sequential"]


def setup_logging(log_level="INFO"):
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    return logging.getLogger(__name__)


def load_config(config_dict):
    """Process configuration dictionary."""
    missing_keys = [key for key in REQUIRED_KEYS if config_dict.get(key) is None]
    if missing_keys:
        raise ValueError(f"Missing required configuration keys: {missing_keys}")

    config = DEFAULT_CONFIG.copy()
    config.update(config_dict)

    # "all" (or nothing) means every head
    n_rivers = config['n_rivers']
    if n_rivers is None or str(n_rivers).lower() == 'all':
        config['n_rivers'] = None
    else:
        n_rivers = float(n_rivers)
        if not n_rivers.is_integer():
            raise ValueError(f"n_rivers must be a whole number, got {config['n_rivers']}")
        config['n_rivers'] = int(n_rivers)

    if config['seed'] is not None:
        config['seed'] = int(config['seed'])
    if config['cell_area_m2'] is not None:
        config['cell_area_m2'] = float(config['cell_area_m2'])
    if config['coordinate_precision'] is not None:
        config['coordinate_precision'] = int(config['coordinate_precision'])

    config['min_catchment_cells'] = int(config['min_catchment_cells'])
    config['n_workers'] = max(1, int(config['n_workers']))

    if config['dask_strategy'] not in SUPPORTED_DASK_STRATEGIES:
        raise ValueError(f"dask_strategy '{config['dask_strategy']}' not supported. "
                         f"Available: {SUPPORTED_DASK_STRATEGIES}")

    return config


def output_dir_for(config):
    """Directory holding the profiles extracted at one catchment threshold."""
    return os.path.join(config['home_dir'], f"streams_{config['min_catchment_cells']}")


def build_profiles(flow_link: FlowLink,
                   heads: Sequence[Hashable],
                   builder: ProfileBuilder,
                   diagnostics: Optional[RunDiagnostics] = None,
                   threshold: Optional[int] = None,
                   n_workers: int = 4,
                   dask_strategy: str = "dask-delay",
                   fail_fast: bool = False) -> List[RiverProfile]:
    """
    Trace every head to its outlet and build its profile.

    Rivers are independent once the topology is resolved, so they are processed
    in parallel on a bounded thread pool. A river that fails is recorded in
    ``diagnostics`` and the others carry on; with ``fail_fast`` no new river is
    started after the first failure.

    Args:
        flow_link: Resolved topology, shared read-only by all workers.
        heads: Head segment ids to process.
        builder: Profile builder holding the samplers.
        diagnostics: Run counters to update. A new one is used if None.
        threshold: Catchment threshold recorded on each river.
        n_workers: Number of worker threads.
        dask_strategy: 'dask-delay' for parallel processing, 'sequential' otherwise.
        fail_fast: Stop starting new rivers after the first failure.

    Returns:
        List of RiverProfile, in the order of ``heads``, without the failed ones.
    """
    if diagnostics is None:
        diagnostics = RunDiagnostics()
    diagnostics.n_ambiguous = flow_link.n_ambiguous
    stop = threading.Event()

    def process_single_head(head_id):
        if stop.is_set():
            diagnostics.record_skipped()
            return None
        try:
            path = reconstruct_path(head_id, flow_link)
            profile_df = builder.build(path)
        except CycleDetected as e:
            logger.error(f"Skipping river {head_id!r}: {e}")
            diagnostics.record_cycle(head_id, e)
        except Exception as e:
            logger.exception(f"River {head_id!r} failed: {e}")
            diagnostics.record_failure(head_id, e)
        else:
            river = RiverProfile(path, profile_df, threshold=threshold)
            diagnostics.record_profile(river)
            return river

        if fail_fast:
            stop.set()
        return None

    if dask_strategy == "dask-delay":
        delayed_tasks = [delayed(process_single_head)(head_id) for head_id in heads]
        logger.info(f"Processing {len(heads)} rivers in parallel using Dask delayed ({n_workers} workers)...")
        with ProgressBar():
            results = delayed(list)(delayed_tasks).compute(scheduler="threads", num_workers=n_workers)
    else:
        results = []
        for head_id in tqdm(heads, desc="Processing rivers"):
            results.append(process_single_head(head_id))

    return [river for river in results if river is not None]


def step1_load_segments(config, logger):
    """Step 1: Load stream segments into a segment store."""
    logger.info("=== STEP 1: Loading stream segments ===")

    store = SegmentStore.from_file(
        config['stream_path'],
        id_col=config['id_col'],
        precision=config['coordinate_precision'],
    )
    store.classify()

    logger.info(f"Step 1 completed: {len(store)} segments loaded, "
                f"{len(store.heads())} heads, {len(store.outlets())} outlets")
    return store


def step2_resolve_topology(store, logger):
    """Step 2: Resolve which segment each segment flows into."""
    logger.info("=== STEP 2: Resolving flow topology ===")

    # Ambiguities are logged by the resolver and counted in the run summary
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", AmbiguousTopology)
        flow_link = TopologyResolver().resolve(store)

    logger.info(f"Step 2 completed: {flow_link}")
    return flow_link


def step3_select_heads(config, store, logger):
    """Step 3: Select the head segments to trace."""
    logger.info("=== STEP 3: Selecting head segments ===")

    heads = select_heads(store, limit=config['n_rivers'], seed=config['seed'])

    logger.info(f"Step 3 completed: {len(heads)} of {len(store.heads())} heads selected")
    return heads


def step4_build_profiles(config, flow_link, heads, diagnostics, logger):
    """Step 4: Trace each head to its outlet and sample its profile."""
    logger.info("=== STEP 4: Building river profiles ===")

    elevation_sampler = RasterSampler(config['elevation_raster'])
    accumulation_sampler = RasterSampler(config['accumulation_raster'])
    cell_area_m2 = config['cell_area_m2']
    if cell_area_m2 is None:
        cell_area_m2 = accumulation_sampler.cell_area_m2
    logger.info(f"Cell area: {cell_area_m2} m2")

    builder = ProfileBuilder(
        sample_elevation=elevation_sampler,
        sample_accumulation=accumulation_sampler,
        cell_area_m2=cell_area_m2,
        keep_channel_head=config['keep_channel_head'],
    )

    rivers = build_profiles(
        flow_link,
        heads,
        builder,
        diagnostics=diagnostics,
        threshold=config['min_catchment_cells'],
        n_workers=config['n_workers'],
        dask_strategy=config['dask_strategy'],
        fail_fast=config['fail_fast'],
    )

    logger.info(f"Step 4 completed: {len(rivers)} profiles built")
    return rivers


def step5_export_profiles(config, rivers, logger):
    """Step 5: Export one CSV file per river."""
    logger.info("=== STEP 5: Exporting river profiles ===")

    out_dir = output_dir_for(config)
    export_paths = [river.export_csv(out_dir) for river in rivers]

    logger.info(f"Step 5 completed: {len(export_paths)} profiles saved to {out_dir}")
    return export_paths


def run_pipeline(config) -> Tuple[List[RiverProfile], RunDiagnostics]:
    """Run the complete DEM2Profile pipeline."""
    logger = setup_logging(config.get('log_level', 'INFO'))

    logger.info(f"Starting DEM2Profile pipeline for streams: {config['stream_path']}")
    logger.info(f"Home directory: {config['home_dir']}")
    logger.info(f"Minimum catchment threshold: {config['min_catchment_cells']} cells")

    diagnostics = RunDiagnostics(n_requested=config['n_rivers'])
    try:
        store = step1_load_segments(config, logger)
        diagnostics.n_segments = len(store)
        diagnostics.n_heads = len(store.heads())

        flow_link = step2_resolve_topology(store, logger)

        heads = step3_select_heads(config, store, logger)
        diagnostics.n_selected = len(heads)

        rivers = step4_build_profiles(config, flow_link, heads, diagnostics, logger)
        step5_export_profiles(config, rivers, logger)

    except Exception as e:
        logger.error(f"Pipeline failed with error: {str(e)}")
        raise

    diagnostics.log_summary(logger)
    logger.info("Pipeline completed successfully!")
    return rivers, diagnostics


def pipeline(config=None):
    """Main pipeline function for importable use.

    Args:
        config (dict): Config dictionary

    Returns:
        tuple: List of RiverProfile and the RunDiagnostics of the run
    """
    if config is None:
        raise ValueError("Config dictionary must be provided")

    processed_config = load_config(config)
    return run_pipeline(processed_config)


def main():
    """Main function for command line usage."""
    parser = argparse.ArgumentParser(description='DEM2Profile Pipeline')
    parser.add_argument('--config', '-c', default='config.json',
                        help='Path to configuration JSON file')
    parser.add_argument('--create-config', action='store_true',
                        help='Create a default configuration file')

    # Command line overrides
    parser.add_argument('--home-dir', help='Base directory for output')
    parser.add_argument('--stream-path', help='Path to the stream vector file')
    parser.add_argument('--n-rivers', help='Number of rivers to extract ("all" for every head)')
    parser.add_argument('--seed', type=int, help='Random seed for river selection')
    parser.add_argument('--log-level', help='Logging level')

    args = parser.parse_args()

    if args.create_config:
        with open(args.config, 'w') as file:
            json.dump(DEFAULT_CONFIG, file, indent=2)
        print(f"Default configuration written to {args.config}")
        return

    if not os.path.exists(args.config):
        parser.error(f"Configuration file not found: {args.config}")

    # Load configuration from JSON file
    with open(args.config, 'r') as file:
        config = json.load(file)

    # Apply command line overrides
    if args.home_dir:
        config['home_dir'] = args.home_dir
    if args.stream_path:
        config['stream_path'] = args.stream_path
    if args.n_rivers:
        config['n_rivers'] = args.n_rivers
    if args.seed is not None:
        config['seed'] = args.seed
    if args.log_level:
        config['log_level'] = args.log_level

    # Process config and run pipeline
    processed_config = load_config(config)
    run_pipeline(processed_config)


if __name__ == "__main__":
    main()
