#!/usr/bin/env python
"""Trend panels and maps of heat-stress days."""

from pathlib import Path
from typing import Optional

import geopandas as gpd
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
from matplotlib.colors import CenteredNorm
import numpy as np
import pandas as pd
import xarray as xr
from rich.console import Console
from scipy import stats

console = Console()

BOUNDARY_TOLERANCE = 0.05


def _year_numbers(values: pd.Series) -> np.ndarray:
    if np.issubdtype(values.dtype, np.datetime64):
        return pd.to_datetime(values).dt.year.values.astype(float)
    return values.values.astype(float)


def trend_statistics(df: pd.DataFrame, y: str, x: str = "year") -> pd.DataFrame:
    """Linear trend of ``y`` against year for each ``src``.

    Returns:
        DataFrame with src, slope, intercept, adj_r2, p_value and n
    """
    rows = []
    for src, group in df.groupby("src", sort=False):
        xs = _year_numbers(group[x])
        ys = group[y].values.astype(float)
        n = len(xs)
        if n < 3 or np.unique(xs).size < 2:
            rows.append({"src": src, "slope": np.nan, "intercept": np.nan,
                         "adj_r2": np.nan, "p_value": np.nan, "n": n})
            continue
        fit = stats.linregress(xs, ys)
        r2 = fit.rvalue ** 2
        rows.append({
            "src": src,
            "slope": fit.slope,
            "intercept": fit.intercept,
            "adj_r2": 1 - (1 - r2) * (n - 1) / (n - 2),
            "p_value": fit.pvalue,
            "n": n,
        })
    return pd.DataFrame(rows, columns=["src", "slope", "intercept", "adj_r2", "p_value", "n"])


def plot_annual_trend(df: pd.DataFrame, y: str, ylabel: str, ax=None, x: str = "year"):
    """Scatter of an annual series per run with a linear fit and 95% band.

    Each run's adjusted R² and p-value is written in the upper-left corner.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 6))

    fits = trend_statistics(df, y, x).set_index("src")
    colours = plt.rcParams['axes.prop_cycle'].by_key()['color']

    labels = []
    for i, (src, group) in enumerate(df.groupby("src", sort=False)):
        colour = colours[i % len(colours)]
        xs = _year_numbers(group[x])
        ys = group[y].values.astype(float)
        ax.scatter(xs, ys, alpha=0.6, s=20, color=colour, label=src)

        fit = fits.loc[src]
        if np.isnan(fit["slope"]):
            continue

        n = len(xs)
        grid = np.linspace(xs.min(), xs.max(), 100)
        predicted = fit["intercept"] + fit["slope"] * grid
        residuals = ys - (fit["intercept"] + fit["slope"] * xs)
        s_err = np.sqrt(np.sum(residuals ** 2) / (n - 2))
        sxx = np.sum((xs - xs.mean()) ** 2)
        half_width = stats.t.ppf(0.975, n - 2) * s_err * np.sqrt(1 / n + (grid - xs.mean()) ** 2 / sxx)

        ax.plot(grid, predicted, color=colour, linewidth=1.5)
        ax.fill_between(grid, predicted - half_width, predicted + half_width, color=colour, alpha=0.1)
        labels.append((colour, f"adj. R² = {fit['adj_r2']:.2f}, p = {fit['p_value']:.3g}"))

    for i, (colour, text) in enumerate(labels):
        ax.text(0.02, 0.97 - 0.06 * i, text, transform=ax.transAxes,
                color=colour, fontsize=9, va='top')

    ax.set_xlabel("Year")
    ax.set_ylabel(ylabel)
    ax.ticklabel_format(axis='y', style='sci', scilimits=(0, 0))
    ax.legend(loc='lower right', fontsize=8)
    return ax


def change_grid(change_df: pd.DataFrame) -> xr.DataArray:
    """Grid of ``end - start`` on the cell centres of the change table."""
    diff = change_df.assign(change=change_df["end"] - change_df["start"])
    return diff.set_index(["y", "x"])["change"].to_xarray()


def simplify_boundary(boundary: gpd.GeoDataFrame, tolerance: float = BOUNDARY_TOLERANCE) -> gpd.GeoSeries:
    """Simplify boundary polygons for faster plotting."""
    return boundary.geometry.simplify(tolerance, preserve_topology=True)


def plot_period_change_map(
    change_df: pd.DataFrame,
    boundary: Optional[gpd.GeoDataFrame],
    scenario: str,
    ax=None,
    threshold: float = 30.0,
):
    """Map the change in mean annual heat-stress days between two periods.

    The diverging palette is centred on zero; the simplified boundary is
    drawn dashed and the scenario is labelled in upper case.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    grid = change_grid(change_df)
    mesh = ax.pcolormesh(
        grid.x.values, grid.y.values, grid.values,
        shading='nearest', cmap='bwr', norm=CenteredNorm(vcenter=0), alpha=0.9,
    )
    plt.colorbar(mesh, ax=ax, shrink=0.7, label=f"Change in days per year > WBGT {threshold:g}°C")

    if boundary is not None:
        simplify_boundary(boundary).boundary.plot(
            ax=ax, color='black', linestyle='--', linewidth=0.3
        )

    ax.set_facecolor('#d9d9d9')
    ax.text(float(change_df["x"].min()) + 1, float(change_df["y"].min()), scenario.upper(),
            fontsize=12, fontweight='bold')
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    return ax


def plot_kiln_heatmap(heatmap: xr.DataArray, boundary: Optional[gpd.GeoDataFrame] = None, ax=None):
    """Map kiln counts per grid cell."""
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    mesh = ax.pcolormesh(heatmap.x.values, heatmap.y.values, heatmap.values,
                         shading='nearest', cmap='inferno_r')
    plt.colorbar(mesh, ax=ax, shrink=0.7, label="Kilns per cell")

    if boundary is not None:
        simplify_boundary(boundary).boundary.plot(ax=ax, color='black', linewidth=0.3)

    ax.set_title("Brick kilns per grid cell")
    return ax


def create_plots(
    heatstress_bound: pd.DataFrame,
    kilndays_bound: pd.DataFrame,
    change_df: pd.DataFrame,
    boundary: Optional[gpd.GeoDataFrame],
    map_scenario: str,
    threshold: float = 30.0,
    title: Optional[str] = None,
):
    """Three-panel figure: heat-stress days, kiln days and the change map."""
    fig, axes = plt.subplots(1, 3, figsize=(24, 7))

    plot_annual_trend(heatstress_bound, "days_over", f"No. days per year > WBGT {threshold:g}c", ax=axes[0])
    plot_annual_trend(kilndays_bound, "kiln_days", f"Kiln days per year > WBGT {threshold:g}c", ax=axes[1])
    plot_period_change_map(change_df, boundary, map_scenario, ax=axes[2], threshold=threshold)

    if title:
        fig.suptitle(title, fontsize=16, fontweight='bold')
    fig.tight_layout()
    return fig


def save_figure(fig, path: Path, dpi: int = 300) -> Path:
    """Save a figure to disk and close it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)
    console.print(f"[green]Saved figure to {path}[/green]")
    return path
