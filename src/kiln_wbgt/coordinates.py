#!/usr/bin/env python
"""Land-cell coordinates for the study area."""

from pathlib import Path
from typing import Optional

import geopandas as gpd
import pandas as pd
import xarray as xr
from rich.console import Console

from kiln_wbgt.utils.spatial_utils import create_study_mask, crop_and_mask, valid_cells

console = Console()

ADMIN_COLUMNS = {"NAME_0": "country", "NAME_1": "adm1", "NAME_2": "adm2", "NAME_3": "adm3"}
COORDINATE_COLUMNS = ["x", "y", "country", "adm1", "adm2", "adm3"]


def load_study_area(shapefile_path: Path, target_crs: str = "EPSG:4326") -> gpd.GeoDataFrame:
    """Load the study-area polygons.

    Args:
        shapefile_path: Path to a GADM level-3 style shapefile
        target_crs: Target coordinate reference system

    Returns:
        GeoDataFrame with NAME_0..NAME_3 columns in ``target_crs``
    """
    shapefile_path = Path(shapefile_path)
    if not shapefile_path.exists():
        raise FileNotFoundError(f"Shapefile not found: {shapefile_path}")

    console.print(f"[blue]Loading shapefile:[/blue] {shapefile_path}")
    gdf = gpd.read_file(shapefile_path)

    if gdf.crs is None:
        gdf = gdf.set_crs(target_crs)
    elif gdf.crs.to_string() != target_crs:
        console.print(f"[yellow]Converting CRS from {gdf.crs} to {target_crs}[/yellow]")
        gdf = gdf.to_crs(target_crs)

    missing = [col for col in ADMIN_COLUMNS if col not in gdf.columns]
    if missing:
        raise ValueError(f"Shapefile is missing admin columns: {missing}")

    return gdf


def _first_layer(reference: xr.DataArray) -> xr.DataArray:
    for dim in ("time", "band"):
        if dim in reference.dims:
            return reference.isel({dim: 0})
    return reference


def create_land_coordinates(
    gdf: gpd.GeoDataFrame,
    reference: xr.DataArray,
    resolution: float = 0.5,
    mask: Optional[xr.DataArray] = None,
) -> pd.DataFrame:
    """Find the land cells of the study area and label them with admin names.

    Any single day of any ISIMIP variable works as the reference, since
    they all share one grid. Ocean cells are missing in the reference and
    are dropped.

    Args:
        gdf: Study-area polygons with NAME_0..NAME_3
        reference: Climate layer (or stack, of which the first day is used)
        resolution: Mask resolution in degrees
        mask: Pre-built study mask; built from ``gdf`` when omitted

    Returns:
        DataFrame with columns x, y, country, adm1, adm2, adm3
    """
    if mask is None:
        mask = create_study_mask(gdf, resolution)

    layer = crop_and_mask(_first_layer(reference), mask)
    cells = valid_cells(layer)
    console.print(f"[cyan]Found {len(cells)} land cells in the study area[/cyan]")

    points = gpd.GeoDataFrame(
        cells,
        geometry=gpd.points_from_xy(cells["x"], cells["y"]),
        crs=gdf.crs or "EPSG:4326",
    )
    joined = gpd.sjoin(
        points,
        gdf[list(ADMIN_COLUMNS) + ["geometry"]],
        how="left",
        predicate="within",
    )
    # A centre on a shared border matches every neighbouring polygon
    joined = joined[~joined.index.duplicated(keep="first")].sort_index()

    coords = pd.DataFrame(joined.drop(columns=["geometry", "index_right"], errors="ignore"))
    coords = coords.rename(columns=ADMIN_COLUMNS)
    return coords[COORDINATE_COLUMNS].reset_index(drop=True)


def save_coordinates(coords: pd.DataFrame, path: Path) -> Path:
    """Write land-cell coordinates to CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    coords[COORDINATE_COLUMNS].to_csv(path, index=False)
    console.print(f"[green]Saved {len(coords)} coordinates to {path}[/green]")
    return path


def load_coordinates(path: Path) -> pd.DataFrame:
    """Read land-cell coordinates written by :func:`save_coordinates`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Coordinate file not found: {path}")

    coords = pd.read_csv(path)
    missing = [col for col in ("x", "y") if col not in coords.columns]
    if missing:
        raise ValueError(f"Coordinate file {path} is missing columns: {missing}")
    for col in COORDINATE_COLUMNS[2:]:
        if col not in coords.columns:
            coords[col] = None
    return coords[COORDINATE_COLUMNS]
