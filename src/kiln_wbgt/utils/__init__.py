"""
Utility modules for WBGT processing.

This package provides psychrometric formulas, spatial masking,
file discovery, memory monitoring and output helpers.
"""

from .spatial_utils import (
    create_study_mask,
    crop_and_mask,
    extract_points,
    valid_cells,
)
from .data_utils import convert_units
from .psychrometrics import (
    dewpoint_from_relative_humidity,
    stull_wet_bulb,
    psychrometric_wet_bulb,
    cos_solar_zenith_angle,
)
from .output_utils import (
    OutputManager,
    get_output_manager,
)

__all__ = [
    # Spatial utilities
    "create_study_mask",
    "crop_and_mask",
    "extract_points",
    "valid_cells",
    # Data utilities
    "convert_units",
    # Psychrometrics
    "dewpoint_from_relative_humidity",
    "stull_wet_bulb",
    "psychrometric_wet_bulb",
    "cos_solar_zenith_angle",
    # Output utilities
    "OutputManager",
    "get_output_manager",
]
