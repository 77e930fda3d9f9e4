#!/usr/bin/env python
"""Spatial processing utilities for gridded climate data."""

import warnings

import numpy as np
import pandas as pd
import geopandas as gpd
import xarray as xr
import rioxarray  # noqa: F401  registers the .rio accessor
from rasterio.features import rasterize
from rasterio.transform import from_origin
from rich.console import Console

console = Console()


def whole_degree_extent(gdf: gpd.GeoDataFrame) -> tuple[float, float, float, float]:
    """Return the shapefile extent widened to whole degrees as (xmin, ymin, xmax, ymax)."""
    minx, miny, maxx, maxy = gdf.total_bounds
    return (
        float(np.floor(minx)),
        float(np.floor(miny)),
        float(np.ceil(maxx)),
        float(np.ceil(maxy)),
    )


def create_study_mask(gdf: gpd.GeoDataFrame, resolution: float = 0.5) -> xr.DataArray:
    """Create a raster mask for the study area.

    Args:
        gdf: GeoDataFrame with study-area polygons
        resolution: Cell size in degrees

    Returns:
        DataArray on (y, x) holding 1 inside the study area and NaN outside
    """
    console.print("[cyan]Creating study-area raster mask...[/cyan]")

    xmin, ymin, xmax, ymax = whole_degree_extent(gdf)
    width = int(round((xmax - xmin) / resolution))
    height = int(round((ymax - ymin) / resolution))
    if width <= 0 or height <= 0:
        raise ValueError(
            f"Study area extent ({xmin}, {ymin}, {xmax}, {ymax}) is too small "
            f"for a {resolution} degree grid"
        )

    transform = from_origin(xmin, ymax, resolution, resolution)

    shapes = [(geom, 1) for geom in gdf.geometry if geom is not None and not geom.is_empty]
    burned = rasterize(
        shapes,
        out_shape=(height, width),
        transform=transform,
        fill=0,
        dtype="uint8",
    )

    xs = xmin + resolution * (np.arange(width) + 0.5)
    ys = ymax - resolution * (np.arange(height) + 0.5)
    mask = xr.DataArray(
        np.where(burned == 1, 1.0, np.nan),
        coords={"y": ys, "x": xs},
        dims=("y", "x"),
        name="mask",
    )
    mask = mask.rio.write_crs("EPSG:4326").rio.write_transform(transform)

    console.print(f"[cyan]Mask created with {int(np.sum(burned))} study cells[/cyan]")
    return mask


def standardize_coordinates(data: xr.DataArray) -> xr.DataArray:
    """Standardize coordinate names and spatial reference.

    Args:
        data: Input xarray DataArray

    Returns:
        DataArray with x/y dimensions, EPSG:4326 and longitudes in [-180, 180)
    """
    if "lon" in data.dims and "lat" in data.dims:
        data = data.rename({"lon": "x", "lat": "y"})
    elif "longitude" in data.dims and "latitude" in data.dims:
        data = data.rename({"longitude": "x", "latitude": "y"})

    data = data.rio.write_crs("EPSG:4326")

    if "x" in data.coords and float(data.x.max()) > 180:
        data = data.assign_coords(x=(data.x + 180) % 360 - 180)
        data = data.sortby("x")
        data = data.rio.write_crs("EPSG:4326")

    try:
        data = data.rio.write_transform()
    except Exception:
        from rasterio.errors import NotGeoreferencedWarning

        warnings.filterwarnings("ignore", category=NotGeoreferencedWarning)

    return data


def crop_to_mask(data: xr.DataArray, mask: xr.DataArray) -> xr.DataArray:
    """Crop data to the cells whose centres fall inside the mask extent."""
    half_x = float(abs(mask.x[1] - mask.x[0])) / 2 if mask.sizes["x"] > 1 else 0.0
    half_y = float(abs(mask.y[1] - mask.y[0])) / 2 if mask.sizes["y"] > 1 else 0.0
    xmin, xmax = float(mask.x.min()) - half_x, float(mask.x.max()) + half_x
    ymin, ymax = float(mask.y.min()) - half_y, float(mask.y.max()) + half_y

    x_idx = np.where((data.x.values > xmin) & (data.x.values < xmax))[0]
    y_idx = np.where((data.y.values > ymin) & (data.y.values < ymax))[0]
    if len(x_idx) == 0 or len(y_idx) == 0:
        raise ValueError("Climate data does not overlap the study-area mask")

    return data.isel(x=x_idx, y=y_idx)


def apply_mask(data: xr.DataArray, mask: xr.DataArray) -> xr.DataArray:
    """Set cells outside the mask to NaN.

    The mask is matched to the data grid by nearest cell centre.
    """
    tolerance = float(abs(mask.x[1] - mask.x[0])) / 2 if mask.sizes["x"] > 1 else None
    aligned = mask.reindex(
        x=data.x, y=data.y, method="nearest", tolerance=tolerance
    )
    return data.where(aligned.notnull())


def crop_and_mask(data: xr.DataArray, mask: xr.DataArray) -> xr.DataArray:
    """Crop data to the mask extent and mask out cells outside the study area."""
    data = standardize_coordinates(data)
    cropped = crop_to_mask(data, mask)
    masked = apply_mask(cropped, mask)
    return masked.rio.write_crs("EPSG:4326")


def extract_points(data: xr.DataArray, xs, ys) -> xr.DataArray:
    """Extract the nearest cell for each point.

    Args:
        data: DataArray with x and y dimensions
        xs: Point longitudes
        ys: Point latitudes

    Returns:
        DataArray with a ``cell`` dimension in point order
    """
    return data.sel(
        x=xr.DataArray(np.asarray(xs, dtype=float), dims="cell"),
        y=xr.DataArray(np.asarray(ys, dtype=float), dims="cell"),
        method="nearest",
    )


def valid_cells(layer: xr.DataArray) -> pd.DataFrame:
    """Return the x/y centres of the non-missing cells of a 2-D layer."""
    frame = layer.drop_vars("spatial_ref", errors="ignore").to_dataframe(name="value").reset_index()
    frame = frame.dropna(subset=["value"])
    return frame[["x", "y"]].reset_index(drop=True)
