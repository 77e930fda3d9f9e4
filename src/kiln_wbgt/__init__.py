"""
Kiln WBGT Toolkit

Wet bulb globe temperature projections for the brick kilns of the Indian
brick belt from ISIMIP3b climate data, with heat-stress summaries and plots.
"""

from kiln_wbgt._version import __version__

# Public API exports
from kiln_wbgt.wbgt_config import (
    WBGTConfig,
    GCMConfig,
    StudyPeriod,
    ModelRunConfig,
    OutputConfig,
    get_config,
)
from kiln_wbgt.coordinates import create_land_coordinates, load_coordinates
from kiln_wbgt.climate_stacks import create_climate_stack, build_climate_stacks
from kiln_wbgt.climate_frames import create_wbgt_frames
from kiln_wbgt.model_runner import run_wbgt
from kiln_wbgt.summaries import create_heatstress_summary, create_master_results_df
from kiln_wbgt.pipeline import run_pipeline

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "WBGTConfig",
    "GCMConfig",
    "StudyPeriod",
    "ModelRunConfig",
    "OutputConfig",
    "get_config",
    # Core functions
    "create_land_coordinates",
    "load_coordinates",
    "create_climate_stack",
    "build_climate_stacks",
    "create_wbgt_frames",
    "run_wbgt",
    "create_heatstress_summary",
    "create_master_results_df",
    "run_pipeline",
]
