import os
import re
from typing import Hashable, List, Optional

import numpy as np
import pandas as pd

from .path import RiverPath
from .profile import PROFILE_COLUMNS, ProfilePoint, profile_points


class RiverProfile:
    """
    One extracted river: its reconstructed path and its attributed profile.

    This class holds the result of a single head-to-outlet extraction and
    provides export and summary helpers.
    """

    def __init__(self,
                 path: RiverPath,
                 profile_df: pd.DataFrame,
                 threshold: Optional[int] = None):
        """
        Initialize a river profile.

        Arguments:
            path (RiverPath): Reconstructed path from head to outlet.
            profile_df (pd.DataFrame): Per-vertex profile with columns ``PROFILE_COLUMNS``.
            threshold (int, optional): Minimum catchment size (cells) used for stream extraction.
        """
        missing_cols = [col for col in PROFILE_COLUMNS if col not in profile_df.columns]
        if missing_cols:
            raise ValueError(f"Missing required profile columns: {missing_cols}")

        self.path = path
        self.profile_df = profile_df
        self.threshold = threshold

        # Path of the exported file
        self.export_path = None

    @property
    def head_id(self) -> Hashable:
        return self.path.head_id

    @property
    def outlet_id(self) -> Hashable:
        return self.path.outlet_id

    @property
    def n_segments(self) -> int:
        return len(self.path)

    @property
    def n_points(self) -> int:
        return len(self.profile_df)

    @property
    def total_length_m(self) -> float:
        """Along-channel distance of the last retained vertex."""
        if self.n_points == 0:
            return 0.0
        return float(self.profile_df["dist_m"].iloc[-1])

    @property
    def n_missing_elevation(self) -> int:
        return int(self.profile_df["elevation"].isna().sum())

    @property
    def n_missing_accumulation(self) -> int:
        return int(self.profile_df["accumulation"].isna().sum())

    @property
    def file_name(self) -> str:
        # ids may hold path separators; keep the file inside the export dir
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", str(self.head_id))
        return f"river_{safe_id}.csv"

    def points(self) -> List[ProfilePoint]:
        return profile_points(self.profile_df)

    def export_csv(self, out_dir: str) -> str:
        """
        Export the profile as a CSV file named after the head segment.

        Arguments:
            out_dir (str): Directory to write into; created if needed.

        Returns:
            str: Path to the exported file.
        """
        os.makedirs(out_dir, exist_ok=True)
        self.export_path = os.path.join(out_dir, self.file_name)
        self.profile_df.to_csv(self.export_path, index=False)
        return self.export_path

    def get_summary_stats(self) -> dict:
        """
        Get summary statistics about the extracted river.

        Returns:
            dict: Dictionary containing summary statistics.
        """
        stats = {
            'head_id': self.head_id,
            'outlet_id': self.outlet_id,
            'threshold': self.threshold,
            'n_segments': self.n_segments,
            'n_points': self.n_points,
            'total_length_m': self.total_length_m,
            'n_missing_elevation': self.n_missing_elevation,
            'n_missing_accumulation': self.n_missing_accumulation,
            'export_path': self.export_path,
        }

        if self.n_points > 0:
            elevation = self.profile_df["elevation"]
            stats['elevation_range_m'] = {
                'min': float(np.nanmin(elevation)) if elevation.notna().any() else None,
                'max': float(np.nanmax(elevation)) if elevation.notna().any() else None,
            }
            stats['max_drainage_area_m2'] = (
                float(self.profile_df["drainage_area_m2"].max())
                if self.profile_df["drainage_area_m2"].notna().any() else None
            )

        return stats

    def __repr__(self) -> str:
        """String representation of the RiverProfile object."""
        return (f"RiverProfile(head_id={self.head_id!r}, "
                f"outlet_id={self.outlet_id!r}, "
                f"n_segments={self.n_segments}, "
                f"n_points={self.n_points}, "
                f"length={self.total_length_m:.1f}m)")
