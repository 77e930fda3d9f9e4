#!/usr/bin/env python
"""Tests for trend panels and maps."""

import pytest
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from kiln_wbgt.kilns import rasterize_kilns
from kiln_wbgt.plotting import (
    change_grid,
    create_plots,
    plot_annual_trend,
    plot_kiln_heatmap,
    plot_period_change_map,
    save_figure,
    simplify_boundary,
    trend_statistics,
)
from kiln_wbgt.utils.spatial_utils import create_study_mask


@pytest.fixture
def annual_days():
    years = pd.to_datetime([f"{y}-01-01" for y in range(2021, 2031)])
    frames = []
    for src, slope in (("gfdl_ssp126", 2.0), ("gfdl_ssp585", 5.0)):
        noise = np.random.default_rng(0).normal(0, 1, len(years))
        frames.append(pd.DataFrame({
            "year": years,
            "days_over": 100 + slope * np.arange(len(years)) + noise,
            "kiln_days": 1000 + 10 * slope * np.arange(len(years)),
            "src": src,
        }))
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def change_df():
    xs, ys = np.meshgrid([80.25, 80.75, 81.25], [25.25, 25.75])
    return pd.DataFrame({
        "x": xs.ravel(),
        "y": ys.ravel(),
        "start": np.full(6, 10.0),
        "end": np.array([12.0, 8.0, 15.0, 10.0, 9.0, 20.0]),
    })


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


class TestTrendStatistics:
    """Test linear trend fits."""

    def test_exact_line(self):
        df = pd.DataFrame({"year": np.arange(2021, 2031), "src": "a"})
        df["days_over"] = 2.0 * df["year"] + 1.0
        fit = trend_statistics(df, "days_over").iloc[0]
        assert fit["slope"] == pytest.approx(2.0)
        assert fit["intercept"] == pytest.approx(1.0)
        assert fit["adj_r2"] == pytest.approx(1.0)
        assert fit["n"] == 10

    def test_datetime_years(self, annual_days):
        fits = trend_statistics(annual_days, "kiln_days").set_index("src")
        assert fits.loc["gfdl_ssp126", "slope"] == pytest.approx(20.0)
        assert fits.loc["gfdl_ssp585", "slope"] == pytest.approx(50.0)

    def test_too_few_points(self):
        df = pd.DataFrame({"year": [2021, 2022], "days_over": [1.0, 2.0], "src": "a"})
        assert np.isnan(trend_statistics(df, "days_over").iloc[0]["slope"])


class TestPlots:
    """Test figure construction."""

    def test_annual_trend(self, annual_days):
        ax = plot_annual_trend(annual_days, "days_over", "No. days")
        assert ax.get_ylabel() == "No. days"
        assert len(ax.collections) >= 2
        # One fit annotation per run
        assert len(ax.texts) == 2

    def test_change_grid(self, change_df):
        grid = change_grid(change_df)
        assert grid.shape == (2, 3)
        assert float(grid.sel(x=81.25, y=25.75)) == 10.0

    def test_change_map_with_boundary(self, change_df, study_area_gdf):
        ax = plot_period_change_map(change_df, study_area_gdf, "ssp585")
        assert any(text.get_text() == "SSP585" for text in ax.texts)

    def test_change_map_label_uses_threshold(self, change_df):
        ax = plot_period_change_map(change_df, None, "ssp585", threshold=32.5)
        colorbar_ax = ax.figure.axes[-1]
        assert colorbar_ax.get_ylabel() == "Change in days per year > WBGT 32.5°C"

    def test_create_plots_passes_threshold(self, annual_days, change_df):
        fig = create_plots(
            annual_days[["year", "days_over", "src"]],
            annual_days[["year", "kiln_days", "src"]],
            change_df, None, "ssp126", threshold=28.0,
        )
        labels = [ax.get_ylabel() for ax in fig.axes]
        assert "Change in days per year > WBGT 28°C" in labels

    def test_simplify_boundary(self, study_area_gdf):
        simplified = simplify_boundary(study_area_gdf)
        assert len(simplified) == len(study_area_gdf)

    def test_kiln_heatmap(self, study_area_gdf):
        mask = create_study_mask(study_area_gdf, 0.5)
        heatmap = rasterize_kilns(pd.DataFrame({"x": [80.25], "y": [26.75], "kiln_count": [3]}), mask)
        ax = plot_kiln_heatmap(heatmap, study_area_gdf)
        assert ax.get_title() == "Brick kilns per grid cell"

    def test_create_and_save(self, annual_days, change_df, tmp_path):
        fig = create_plots(
            annual_days[["year", "days_over", "src"]],
            annual_days[["year", "kiln_days", "src"]],
            change_df, None, "ssp585", title="GFDL-ESM4 (stull)",
        )
        assert len(fig.axes) >= 3
        assert fig.axes[0].get_ylabel() == "No. days per year > WBGT 30c"

        path = save_figure(fig, tmp_path / "figures" / "gfdl_stull_ssp585.png", dpi=50)
        assert path.exists()
        assert path.stat().st_size > 0
