"""
dem2profile: A Python package for extracting river long profiles from a stream network derived from a digital elevation model.

This package provides tools to:
- Load stream segments produced by raster-to-vector stream extraction
- Resolve which segment flows into which and find channel heads
- Trace rivers from their heads to their outlets
- Build per-vertex profiles with elevation, along-channel distance and drainage area
"""

__version__ = "0.1.0"

# Import main classes and functions
from .exceptions import AmbiguousTopology, CycleDetected, EmptyNetwork, NoDataAtVertex
from .segments import Segment, SegmentStore
from .topology import FlowLink, TopologyResolver, resolve_topology
from .heads import select_heads
from .path import RiverPath, reconstruct_path
from .profile import ProfileBuilder, ProfilePoint, cumulative_distance, flatten_path
from .sampler import RasterSampler
from .river import RiverProfile
from .diagnostics import RunDiagnostics
from .pipeline import build_profiles, pipeline

# Define what gets imported with "from dem2profile import *"
__all__ = [
    "AmbiguousTopology",
    "CycleDetected",
    "EmptyNetwork",
    "NoDataAtVertex",
    "Segment",
    "SegmentStore",
    "FlowLink",
    "TopologyResolver",
    "resolve_topology",
    "select_heads",
    "RiverPath",
    "reconstruct_path",
    "ProfileBuilder",
    "ProfilePoint",
    "cumulative_distance",
    "flatten_path",
    "RasterSampler",
    "RiverProfile",
    "RunDiagnostics",
    "build_profiles",
    "pipeline",
]
