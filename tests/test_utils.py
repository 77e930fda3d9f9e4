#!/usr/bin/env python
"""Tests for utility modules."""

import json

import pytest
import numpy as np
import pandas as pd
import xarray as xr
from shapely.geometry import box
import geopandas as gpd

from kiln_wbgt.utils.data_utils import convert_units
from kiln_wbgt.utils.spatial_utils import (
    apply_mask,
    create_study_mask,
    crop_and_mask,
    crop_to_mask,
    extract_points,
    standardize_coordinates,
    valid_cells,
    whole_degree_extent,
)
from kiln_wbgt.utils.file_discovery import discover_netcdf_files, should_exclude_file
from kiln_wbgt.utils.output_utils import OutputManager
from kiln_wbgt.utils.memory_utils import MemoryMonitor


@pytest.fixture
def study_mask(study_area_gdf):
    return create_study_mask(study_area_gdf, 0.5)


@pytest.fixture
def sample_grid(climate_grid):
    days = pd.date_range("2021-01-01", periods=5, freq="D")
    return climate_grid(days, np.arange(5) + 300.0)


class TestUnitConversion:
    """Test unit conversion utilities."""

    def test_temperature_conversion_kelvin_to_celsius(self):
        data = np.array([273.15, 283.15, 293.15])
        converted = convert_units(data, "K", "C")
        np.testing.assert_array_almost_equal(converted, [0.0, 10.0, 20.0])

    def test_temperature_conversion_celsius_to_kelvin(self):
        converted = convert_units(np.array([0.0, 30.0]), "C", "K")
        np.testing.assert_array_almost_equal(converted, [273.15, 303.15])

    def test_unsupported_conversion(self):
        """Unsupported conversions return the original data."""
        data = np.array([1.0, 2.0, 3.0])
        np.testing.assert_array_equal(convert_units(data, "invalid_from", "invalid_to"), data)


class TestStudyMask:
    """Test study-area rasterization."""

    def test_whole_degree_extent(self, study_area_gdf):
        assert whole_degree_extent(study_area_gdf) == (80.0, 25.0, 82.0, 27.0)

    def test_extent_widens_outward(self):
        gdf = gpd.GeoDataFrame({"geometry": [box(80.2, 25.2, 81.7, 26.6)]}, crs="EPSG:4326")
        assert whole_degree_extent(gdf) == (80.0, 25.0, 82.0, 27.0)

    def test_mask_grid(self, study_mask):
        assert study_mask.dims == ("y", "x")
        assert study_mask.shape == (4, 4)
        np.testing.assert_array_almost_equal(study_mask.x.values, [80.25, 80.75, 81.25, 81.75])
        np.testing.assert_array_almost_equal(study_mask.y.values, [26.75, 26.25, 25.75, 25.25])
        assert study_mask.rio.crs.to_epsg() == 4326

    def test_mask_cells(self, study_mask):
        assert int(study_mask.notnull().sum()) == 12
        assert np.isnan(float(study_mask.sel(x=81.75, y=26.75)))
        assert float(study_mask.sel(x=81.25, y=25.25)) == 1.0

    def test_sub_degree_polygon(self):
        gdf = gpd.GeoDataFrame({"geometry": [box(80.1, 25.1, 80.4, 25.4)]}, crs="EPSG:4326")
        mask = create_study_mask(gdf, 0.5)
        assert mask.shape == (2, 2)
        assert int(mask.notnull().sum()) == 1
        assert float(mask.sel(x=80.25, y=25.25)) == 1.0

    def test_north_east_cells_kept(self):
        gdf = gpd.GeoDataFrame({"geometry": [box(80.2, 25.2, 81.7, 26.6)]}, crs="EPSG:4326")
        mask = create_study_mask(gdf, 0.5)
        np.testing.assert_array_almost_equal(mask.x.values, [80.25, 80.75, 81.25, 81.75])
        np.testing.assert_array_almost_equal(mask.y.values, [26.75, 26.25, 25.75, 25.25])
        # Wholly inside the polygon at its north-east corner
        assert float(mask.sel(x=81.25, y=26.25)) == 1.0
        # Centre lies east of the polygon
        assert np.isnan(float(mask.sel(x=81.75, y=26.25)))

    def test_empty_extent(self):
        gdf = gpd.GeoDataFrame({"geometry": [box(80.0, 25.0, 80.0, 26.0)]}, crs="EPSG:4326")
        with pytest.raises(ValueError, match="too small"):
            create_study_mask(gdf, 0.5)


class TestSpatialOperations:
    """Test cropping, masking and point extraction."""

    def test_standardize_renames_and_wraps(self):
        da = xr.DataArray(
            np.arange(4.0).reshape(1, 4),
            coords={"lat": [0.25], "lon": [0.25, 90.25, 180.25, 270.25]},
            dims=["lat", "lon"],
        )
        result = standardize_coordinates(da)
        assert set(result.dims) == {"y", "x"}
        np.testing.assert_array_almost_equal(result.x.values, [-179.75, -89.75, 0.25, 90.25])
        # Values move with their longitudes
        assert float(result.sel(x=-89.75, y=0.25)) == 3.0
        assert result.rio.crs.to_epsg() == 4326

    def test_crop_to_mask(self, sample_grid, study_mask):
        cropped = crop_to_mask(standardize_coordinates(sample_grid), study_mask)
        assert cropped.sizes["x"] == 4
        assert cropped.sizes["y"] == 4

    def test_crop_without_overlap(self, climate_grid, study_mask):
        days = pd.date_range("2021-01-01", periods=1, freq="D")
        far_away = climate_grid(days, 300.0).assign_coords(lon=np.arange(8) * 0.5 + 10.25)
        with pytest.raises(ValueError, match="does not overlap"):
            crop_to_mask(standardize_coordinates(far_away), study_mask)

    def test_apply_mask(self, sample_grid, study_mask):
        cropped = crop_to_mask(standardize_coordinates(sample_grid), study_mask)
        masked = apply_mask(cropped, study_mask)
        assert np.isnan(float(masked.isel(time=0).sel(x=81.75, y=26.75)))
        assert float(masked.isel(time=0).sel(x=80.25, y=26.75)) == 300.0

    def test_crop_and_mask_drops_ocean(self, sample_grid, study_mask):
        masked = crop_and_mask(sample_grid, study_mask)
        first_day = masked.isel(time=0)
        # 12 study cells minus the ocean cell
        assert int(first_day.notnull().sum()) == 11
        assert masked.sizes["time"] == 5

    def test_valid_cells(self, sample_grid, study_mask):
        cells = valid_cells(crop_and_mask(sample_grid, study_mask).isel(time=0))
        assert list(cells.columns) == ["x", "y"]
        assert len(cells) == 11
        assert not ((cells["x"] == 80.25) & (cells["y"] == 25.25)).any()

    def test_extract_points(self, sample_grid):
        data = standardize_coordinates(sample_grid)
        extracted = extract_points(data, [80.3, 81.2], [26.7, 25.3])
        assert extracted.sizes["cell"] == 2
        np.testing.assert_array_almost_equal(extracted.x.values, [80.25, 81.25])
        np.testing.assert_array_almost_equal(extracted.isel(cell=0).values, np.arange(5) + 300.0)


class TestFileDiscovery:
    """Test NetCDF discovery."""

    def test_sorted_and_filtered(self, tmp_path):
        for name in ["b_2031_2040.nc", "a_2021_2030.nc", "._a_2021_2030.nc", ".hidden.nc", "old.bak.nc"]:
            (tmp_path / name).write_bytes(b"")
        files = discover_netcdf_files(tmp_path, verbose=False)
        assert [f.name for f in files] == ["a_2021_2030.nc", "b_2031_2040.nc"]

    def test_exclusion_reasons(self, tmp_path):
        assert should_exclude_file(tmp_path / "._x.nc") == (True, "macOS resource fork file")
        assert should_exclude_file(tmp_path / "x.nc~")[0]
        assert should_exclude_file(tmp_path / "x.nc") == (False, None)

    def test_invalid_files(self, tmp_path):
        (tmp_path / "broken.nc").write_text("not a netcdf file")
        with pytest.raises(ValueError, match="invalid NetCDF"):
            discover_netcdf_files(tmp_path, validate=True, verbose=False)
        assert discover_netcdf_files(tmp_path, validate=True, verbose=False, fail_on_invalid=False) == []

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            discover_netcdf_files(tmp_path / "missing")


class TestOutputManager:
    """Test output files and metadata."""

    def test_save_csv_with_metadata(self, test_config):
        manager = OutputManager(test_config)
        table = pd.DataFrame({"year": [2021], "days_over": [12]})
        path = manager.summary_output_path("annual_heatstress_days", "gfdl", "stull", 30.0)

        saved = manager.save_with_metadata(table, path, metadata={"scenarios": ["ssp126"]})

        assert saved.exists()
        assert saved.name == "gfdl_stull_annual_heatstress_days_threshold30c.csv"
        sidecar = saved.with_suffix(".metadata.json")
        metadata = json.loads(sidecar.read_text())
        assert metadata["scenarios"] == ["ssp126"]
        assert metadata["processing_config"]["resolution"] == 0.5

    def test_save_json_without_metadata(self, test_config, tmp_path):
        manager = OutputManager(test_config)
        path = manager.save_with_metadata({"a": 1}, tmp_path / "out" / "x.json")
        assert json.loads(path.read_text()) == {"a": 1}
        assert not path.with_suffix(".metadata.json").exists()

    def test_unsupported_extension(self, test_config, tmp_path):
        with pytest.raises(ValueError, match="Unsupported file extension"):
            OutputManager(test_config).save_with_metadata(pd.DataFrame(), tmp_path / "x.txt")

    def test_summary_report(self, test_config):
        manager = OutputManager(test_config)
        saved = manager.save_with_metadata(
            pd.DataFrame({"a": [1]}), manager.summary_output_path("t", "gfdl", "stull")
        )

        report = manager.create_summary_report([saved], {"gcm": "gfdl"})
        assert report.parent == test_config.output.base_output_dir / "reports"
        assert json.loads(report.read_text())["output_files"] == [str(saved)]


class TestMemoryMonitor:
    """Test memory pressure levels."""

    def test_levels(self):
        assert MemoryMonitor(warning_threshold=101.0, critical_threshold=102.0).report() == "normal"
        assert MemoryMonitor(warning_threshold=0.0, critical_threshold=101.0).check_memory_pressure() == "warning"
        assert MemoryMonitor(warning_threshold=0.0, critical_threshold=0.0).report() == "critical"

    def test_status(self):
        status = MemoryMonitor().get_memory_status()
        assert 0 <= status["percent_used"] <= 100
        assert status["total_gb"] > 0
