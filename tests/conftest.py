#!/usr/bin/env python
"""Pytest configuration and shared fixtures for kiln-wbgt tests."""

from datetime import date
from pathlib import Path

import pytest
import numpy as np
import pandas as pd
import geopandas as gpd
import xarray as xr
from shapely.geometry import box

from kiln_wbgt.wbgt_config import (
    OutputConfig,
    StudyPeriod,
    WBGTConfig,
    get_config,
    set_config,
)

# 0.5 degree grid around the synthetic study area, latitudes north to south as in ISIMIP
GRID_LONS = np.arange(79.25, 83.0, 0.5)
GRID_LATS = np.arange(27.75, 24.0, -0.5)
OCEAN_CELL = (80.25, 25.25)

# Daily values per stack role; temperatures in Kelvin
DEFAULT_CLIMATE = {
    "hurs": 60.0,
    "tas": 303.15,
    "tasmax": 308.15,
    "wind": 2.0,
    "solar": 250.0,
}


@pytest.fixture
def study_area_gdf():
    """Two districts; together they cover 12 cells of a 4 x 4 half-degree grid."""
    districts = [
        {
            "NAME_0": "India",
            "NAME_1": "Uttar Pradesh",
            "NAME_2": "Agra",
            "NAME_3": "Agra",
            "geometry": box(80.0, 25.0, 81.0, 27.0),
        },
        {
            "NAME_0": "India",
            "NAME_1": "Bihar",
            "NAME_2": "Patna",
            "NAME_3": "Patna Rural",
            "geometry": box(81.0, 25.0, 82.0, 26.0),
        },
    ]
    return gpd.GeoDataFrame(districts, crs="EPSG:4326")


@pytest.fixture
def study_area_shapefile(study_area_gdf, tmp_path):
    """Write the study area to a shapefile."""
    shapefile_path = tmp_path / "study_area" / "study_area_adm3.shp"
    shapefile_path.parent.mkdir(parents=True)
    study_area_gdf.to_file(shapefile_path)
    return shapefile_path


def make_climate_grid(days, value, name="tasAdjust", units="K"):
    """Daily grid on (time, lat, lon) with one ocean cell set to NaN.

    ``value`` is a scalar or one value per day.
    """
    series = np.broadcast_to(np.asarray(value, dtype=float), (len(days),))
    data = series[:, None, None] * np.ones((1, len(GRID_LATS), len(GRID_LONS)))

    i_lat = int(np.argmin(np.abs(GRID_LATS - OCEAN_CELL[1])))
    i_lon = int(np.argmin(np.abs(GRID_LONS - OCEAN_CELL[0])))
    data[:, i_lat, i_lon] = np.nan

    da = xr.DataArray(
        data,
        coords={"time": pd.DatetimeIndex(days), "lat": GRID_LATS, "lon": GRID_LONS},
        dims=["time", "lat", "lon"],
        name=name,
    )
    da.attrs["units"] = units
    return da


@pytest.fixture
def climate_grid():
    """Factory for synthetic ISIMIP-like grids."""
    return make_climate_grid


@pytest.fixture
def test_config(tmp_path):
    """Ten-day study configuration writing under a temporary directory."""
    original = get_config()
    config = WBGTConfig(
        period=StudyPeriod(start=date(2021, 1, 1), end=date(2021, 1, 10)),
        output=OutputConfig(base_output_dir=tmp_path / "output"),
    )
    set_config(config)
    yield config
    set_config(original)


def write_stacks(config, gcm, scenario, values=None):
    """Write one stack per role where the pipeline expects to find it."""
    values = {**DEFAULT_CLIMATE, **(values or {})}
    days = config.period.days()
    paths = {}
    for role, variable in config.variables.items():
        units = "K" if role in ("tas", "tasmax") else ""
        da = make_climate_grid(days, values[role], name=variable, units=units)
        path = config.climate_stack_path(gcm, scenario, role)
        path.parent.mkdir(parents=True, exist_ok=True)
        da.to_dataset().to_netcdf(path)
        paths[role] = path
    return paths


@pytest.fixture
def stack_writer():
    return write_stacks


@pytest.fixture
def sample_points():
    """Three land cells with admin names."""
    return pd.DataFrame({
        "x": [80.25, 80.75, 81.25],
        "y": [26.75, 25.75, 25.25],
        "country": ["India", "India", "India"],
        "adm1": ["Uttar Pradesh", "Uttar Pradesh", "Bihar"],
        "adm2": ["Agra", "Agra", "Patna"],
        "adm3": ["Agra", "Agra", "Patna Rural"],
    })


@pytest.fixture
def sample_frame():
    """Ten days of hot, humid pre-monsoon weather for one cell (Celsius)."""
    days = pd.date_range("2021-06-01", periods=10, freq="D")
    return pd.DataFrame({
        "date": days,
        "tasmean": np.full(10, 32.0),
        "tasmax": np.linspace(34.0, 43.0, 10),
        "dewp": np.full(10, 22.0),
        "hurs": np.linspace(70.0, 25.0, 10),
        "wind": np.full(10, 2.5),
        "solar": np.full(10, 300.0),
    })


@pytest.fixture
def sample_wbgt_long():
    """Two years of daily WBGT for two cells: one always above 30 °C, one always below."""
    days = pd.date_range("2021-01-01", "2022-12-31", freq="D")
    frames = []
    for x, y, adm2, value in ((80.25, 26.75, "Agra", 31.0), (81.25, 25.25, "Patna", 29.0)):
        frames.append(pd.DataFrame({
            "x": x,
            "y": y,
            "date": days,
            "country": "India",
            "adm1": "Uttar Pradesh" if adm2 == "Agra" else "Bihar",
            "adm2": adm2,
            "adm3": adm2,
            "wbgt": value,
            "src": "gfdl_ssp126",
        }))
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def sample_kilns():
    """Kiln counts for the hot cell only."""
    return pd.DataFrame({"x": [80.25], "y": [26.75], "kiln_count": [5]})


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "unit: mark test as unit test")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add integration marker to integration tests
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)

        # Add slow marker to end-to-end tests
        if "end_to_end" in item.nodeid:
            item.add_marker(pytest.mark.slow)

        # Add unit marker to unit tests
        if any(
            name in item.nodeid
            for name in ["test_psychrometrics", "test_models", "test_summaries", "test_utils"]
        ):
            item.add_marker(pytest.mark.unit)


# Skip slow tests by default
def pytest_addoption(parser):
    """Add command line options for test selection."""
    parser.addoption(
        "--runslow", action="store_true", default=False, help="run slow tests"
    )
    parser.addoption(
        "--runintegration",
        action="store_true",
        default=False,
        help="run integration tests",
    )


def pytest_runtest_setup(item):
    """Setup function to skip tests based on markers."""
    if "slow" in item.keywords and not item.config.getoption("--runslow"):
        pytest.skip("need --runslow option to run")

    if "integration" in item.keywords and not item.config.getoption("--runintegration"):
        pytest.skip("need --runintegration option to run")
