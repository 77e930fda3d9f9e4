#!/usr/bin/env python
"""Brick kiln locations snapped to the climate grid."""

import re
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import xarray as xr
from rich.console import Console

console = Console()

KILN_COLUMNS = ["x", "y", "kiln_count"]


def clean_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Lower-case column names and replace non-alphanumerics with underscores."""
    return df.rename(columns=lambda c: re.sub(r"[^0-9a-z]+", "_", str(c).strip().lower()).strip("_"))


def _key(values) -> np.ndarray:
    return np.round(np.asarray(values, dtype=float), 6)


def load_kilns(path: Path) -> pd.DataFrame:
    """Read a per-cell kiln count table.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If x, y or kiln_count is missing
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Kiln file not found: {path}")

    kilns = pd.read_csv(path)
    missing = [col for col in KILN_COLUMNS if col not in kilns.columns]
    if missing:
        raise ValueError(f"Kiln file {path} is missing columns: {missing}")

    kilns["kiln_count"] = kilns["kiln_count"].fillna(0)
    console.print(f"[blue]Loaded {int(kilns['kiln_count'].sum())} kilns in {len(kilns)} cells[/blue]")
    return kilns


def aggregate_kiln_points(
    raw: pd.DataFrame,
    lon_col: str = "longitude",
    lat_col: str = "latitude",
    resolution: float = 0.5,
    points: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Count kilns per grid cell.

    Args:
        raw: One row per kiln
        lon_col: Longitude column (matched after cleaning column names)
        lat_col: Latitude column (matched after cleaning column names)
        resolution: Grid resolution in degrees; cells are aligned to whole degrees
        points: Land cells; when given every cell is returned with a zero count
            where it holds no kilns, and kilns outside the land cells are dropped

    Returns:
        DataFrame with x, y (cell centres) and kiln_count
    """
    raw = clean_column_names(raw)
    lon_col, lat_col = lon_col.lower(), lat_col.lower()
    missing = [col for col in (lon_col, lat_col) if col not in raw.columns]
    if missing:
        raise ValueError(f"Kiln locations are missing columns: {missing}")

    located = raw[[lon_col, lat_col]].dropna()
    cells = pd.DataFrame({
        "x": _key(np.floor(located[lon_col] / resolution) * resolution + resolution / 2),
        "y": _key(np.floor(located[lat_col] / resolution) * resolution + resolution / 2),
    })
    counts = cells.groupby(["x", "y"]).size().rename("kiln_count").reset_index()

    if points is None:
        return counts

    cells_out = points.copy()
    cells_out["_x"], cells_out["_y"] = _key(cells_out["x"]), _key(cells_out["y"])
    merged = cells_out.merge(
        counts.rename(columns={"x": "_x", "y": "_y"}), on=["_x", "_y"], how="left"
    ).drop(columns=["_x", "_y"])
    merged["kiln_count"] = merged["kiln_count"].fillna(0).astype(int)

    dropped = len(located) - int(merged["kiln_count"].sum())
    if dropped:
        console.print(f"[yellow]{dropped} kilns fall outside the land cells and were dropped[/yellow]")
    return merged


def rasterize_kilns(kilns: pd.DataFrame, mask: xr.DataArray) -> xr.DataArray:
    """Place kiln counts on the study-mask grid.

    Cells without a kiln record are NaN.
    """
    res_x = float(abs(mask.x[1] - mask.x[0]))
    res_y = float(abs(mask.y[1] - mask.y[0]))
    x0 = float(mask.x.min()) - res_x / 2
    y_top = float(mask.y.max()) + res_y / 2

    col = np.floor((kilns["x"].values - x0) / res_x).astype(int)
    row = np.floor((y_top - kilns["y"].values) / res_y).astype(int)
    inside = (col >= 0) & (col < mask.sizes["x"]) & (row >= 0) & (row < mask.sizes["y"])

    grid = np.full((mask.sizes["y"], mask.sizes["x"]), np.nan)
    counts = kilns["kiln_count"].values.astype(float)
    for r, c, n in zip(row[inside], col[inside], counts[inside]):
        grid[r, c] = n if np.isnan(grid[r, c]) else grid[r, c] + n

    # Row 0 is the northernmost cell
    ys = np.sort(mask.y.values)[::-1]
    heatmap = xr.DataArray(grid, coords={"y": ys, "x": np.sort(mask.x.values)}, dims=("y", "x"), name="kiln_count")
    return heatmap.reindex(y=mask.y, x=mask.x)
