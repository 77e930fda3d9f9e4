#!/usr/bin/env python
"""Per-cell daily climate tables for the WBGT models."""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import xarray as xr
from rich.console import Console

from kiln_wbgt.climate_stacks import load_climate_stack
from kiln_wbgt.utils.data_utils import convert_units
from kiln_wbgt.utils.psychrometrics import dewpoint_from_relative_humidity
from kiln_wbgt.utils.spatial_utils import extract_points
from kiln_wbgt.wbgt_config import WBGTConfig, get_config

console = Console()

FRAME_COLUMNS = ["date", "tasmean", "tasmax", "dewp", "hurs", "wind", "solar"]
CELSIUS_UNITS = ("C", "degC", "celsius", "degrees_Celsius")

# Stack role -> frame column
ROLE_COLUMNS = {
    "hurs": "hurs",
    "tas": "tasmean",
    "tasmax": "tasmax",
    "wind": "wind",
    "solar": "solar",
}


def load_stacks(gcm: str, scenario: str, config: Optional[WBGTConfig] = None) -> Dict[str, xr.DataArray]:
    """Load the five cropped stacks of one GCM and scenario, keyed by role."""
    config = config or get_config()
    scenario = config.validate_scenario(scenario)
    stacks = {}
    for role, variable in config.variables.items():
        path = config.climate_stack_path(gcm, scenario, role)
        stacks[role] = load_climate_stack(path, variable)
    return stacks


def _point_values(data: xr.DataArray, points: pd.DataFrame) -> np.ndarray:
    """Return a (cell, time) array of the values nearest to each point."""
    extracted = extract_points(data, points["x"].values, points["y"].values)
    return extracted.transpose("cell", "time").values.astype(float)


def create_wbgt_frames(
    gcm: str,
    scenario: str,
    points: pd.DataFrame,
    dewpoint_mode: str = "A",
    config: Optional[WBGTConfig] = None,
    stacks: Optional[Dict[str, xr.DataArray]] = None,
) -> List[pd.DataFrame]:
    """Build one daily climate table per land cell.

    Args:
        gcm: GCM short or directory name
        scenario: Emissions scenario
        points: Land cells with x and y columns
        dewpoint_mode: Dewpoint approximation mode (A, B or C)
        config: Study configuration
        stacks: Already loaded stacks keyed by role; read from disk when omitted

    Returns:
        List of DataFrames in point order with columns
        date, tasmean, tasmax, dewp, hurs, wind, solar
    """
    config = config or get_config()
    config.get_gcm(gcm)
    if stacks is None:
        console.print(f"[blue]Loading raster data for {gcm} {scenario}...[/blue]")
        stacks = load_stacks(gcm, scenario, config)

    missing = [role for role in ROLE_COLUMNS if role not in stacks]
    if missing:
        raise ValueError(f"Missing climate stacks: {missing}")

    days = config.period.days()

    console.print("[blue]Extracting values from rasters...[/blue]")
    values = {}
    for role, column in ROLE_COLUMNS.items():
        data = stacks[role]
        if data.sizes.get("time") != len(days):
            raise ValueError(
                f"{role} stack has {data.sizes.get('time')} layers but the study period "
                f"{config.period.start} to {config.period.end} has {len(days)} days"
            )
        array = _point_values(data, points)
        if role in ("tas", "tasmax") and data.attrs.get("units") not in CELSIUS_UNITS:
            array = convert_units(array, "K", "C")
        values[column] = array

    console.print("[blue]Building climate dataframes for WBGT analysis...[/blue]")
    frames = []
    for i in range(len(points)):
        frame = pd.DataFrame({"date": days})
        for column in ("tasmean", "tasmax", "hurs", "wind", "solar"):
            frame[column] = values[column][i]
        frame["dewp"] = dewpoint_from_relative_humidity(
            frame["hurs"].values, frame["tasmean"].values, dewpoint_mode
        )
        frames.append(frame[FRAME_COLUMNS])

    console.print(f"[green]Built {len(frames)} cell frames of {len(days)} days[/green]")
    return frames
