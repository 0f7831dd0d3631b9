# This is an example to run all steps in 1 pipeline
import pandas as pd

from dem2profile import pipeline

# Define configuration dictionary
config = {
  # General settings
  "home_dir":"/mnt/d/dem2profile/examples/data", # Root directory to save the profiles
  "stream_path":"/mnt/d/dem2profile/examples/data/streams.gpkg", # Stream segments from raster-to-vector extraction, digitised downstream
  "id_col":"cat", # Column holding the segment identifier; None uses the row index

  # Rasters from the hydrological preprocessing
  "elevation_raster":"/mnt/d/dem2profile/examples/data/dem_filled.tif", # Depression-filled DEM
  "accumulation_raster":"/mnt/d/dem2profile/examples/data/flow_accumulation.tif", # Upstream cell counts
  "min_catchment_cells":1000, # Threshold used when the streams were extracted

  # River selection
  "n_rivers":20, # Number of rivers to extract; "all" or None for every head
  "seed":42, # Random seed for reproducible selection

  # Profile settings
  "cell_area_m2":None, # None derives the cell area from the accumulation raster resolution
  "coordinate_precision":None, # None matches endpoints exactly; an integer rounds to that many decimals
  "keep_channel_head":True, # Keep the distance-0 vertex at the channel head

  # Execution
  "n_workers":4, # Number of rivers processed at once
  "dask_strategy":"dask-delay", # "dask-delay" or "sequential"
  "fail_fast":False,
  "log_level":"INFO"
}

# Run the full pipeline
rivers, diagnostics = pipeline(config)
print(diagnostics.as_dict())

# Profiles are saved as /mnt/d/dem2profile/examples/data/streams_1000/river_<head id>.csv
for river in rivers[:3]:
    print(river)
    print(pd.read_csv(river.export_path).head())
