#!/usr/bin/env python
"""Tests for study configuration."""

from datetime import date
from pathlib import Path

import pytest
from pydantic import ValidationError

from kiln_wbgt.wbgt_config import (
    ModelRunConfig,
    OutputConfig,
    StudyPeriod,
    WBGTConfig,
)


class TestDefaults:
    """Test the default study setup."""

    def test_gcms_and_scenarios(self):
        config = WBGTConfig()
        assert list(config.gcms) == ["gfdl", "ipsl", "mpi", "mri", "ukes"]
        assert config.scenarios == ["ssp126", "ssp370", "ssp585"]
        assert config.variables["tasmax"] == "tasmaxAdjust"
        assert config.resolution == 0.5
        assert config.models.threshold_c == 30.0

    def test_study_period_days(self):
        days = StudyPeriod().days()
        # 30 years with 7 leap days
        assert len(days) == 10957
        assert days[0].strftime("%Y-%m-%d") == "2021-01-01"
        assert days[-1].strftime("%Y-%m-%d") == "2050-12-31"
        assert StudyPeriod().label == "2021_2050"

    def test_period_order(self):
        with pytest.raises(ValidationError):
            StudyPeriod(start=date(2050, 1, 1), end=date(2021, 1, 1))


class TestLookups:
    """Test GCM and scenario lookups."""

    def test_get_gcm_by_short_or_directory_name(self):
        config = WBGTConfig()
        assert config.get_gcm("UKES").name == "UKESM1-0-LL"
        assert config.get_gcm("mpi-esm1-2-hr").short_name == "mpi"

    def test_unknown_gcm(self):
        with pytest.raises(ValueError, match="Unknown GCM"):
            WBGTConfig().get_gcm("canesm5")

    def test_validate_scenario(self):
        config = WBGTConfig()
        assert config.validate_scenario("SSP585") == "ssp585"
        with pytest.raises(ValueError, match="Unknown scenario"):
            config.validate_scenario("ssp245")


class TestPaths:
    """Test output path conventions."""

    def test_climate_stack_path(self):
        config = WBGTConfig(output=OutputConfig(base_output_dir="out"))
        path = config.climate_stack_path("gfdl", "ssp126", "hurs")
        assert path == Path("out/climate_data/gfdl-esm4/ssp126/hursAdjust_gfdl_2021_2050_ssp126.nc")

    def test_climate_stack_path_unknown_role(self):
        with pytest.raises(ValueError, match="Unknown climate variable"):
            WBGTConfig().climate_stack_path("gfdl", "ssp126", "pr")

    def test_output_paths(self):
        output = OutputConfig(base_output_dir="out")
        assert output.wbgt_path("gfdl", "ssp126", "stull") == Path("out/wbgt/gfdl/gfdl_ssp126_stull.csv")
        assert output.summary_path("annual_heatstress_days", "gfdl", "stull", 30) == Path(
            "out/summaries/gfdl_stull_annual_heatstress_days_threshold30c.csv"
        )
        assert output.figure_path("gfdl", "stull", "ssp585") == Path("out/figures/gfdl_stull_ssp585.png")
        assert output.coordinates_path() == Path("out/india_pts.csv")

    def test_setup_directories(self, tmp_path):
        config = WBGTConfig(output=OutputConfig(base_output_dir=tmp_path / "out"))
        config.setup_directories()
        for sub in ("climate_data", "wbgt", "summaries", "figures"):
            assert (tmp_path / "out" / sub).is_dir()


class TestModelRunConfig:
    """Test model settings validation."""

    def test_dewpoint_mode_normalized(self):
        assert ModelRunConfig(dewpoint_mode="c").dewpoint_mode == "C"

    def test_invalid_dewpoint_mode(self):
        with pytest.raises(ValidationError):
            ModelRunConfig(dewpoint_mode="X")

    def test_invalid_workers(self):
        with pytest.raises(ValidationError):
            ModelRunConfig(n_workers=0)


class TestPersistence:
    """Test environment and file configuration."""

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WBGT_WORKERS", "2")
        monkeypatch.setenv("WBGT_THRESHOLD", "32")
        monkeypatch.setenv("WBGT_DEWPOINT_MODE", "b")
        monkeypatch.setenv("WBGT_OUTPUT_DIR", str(tmp_path))
        config = WBGTConfig.from_env()
        assert config.models.n_workers == 2
        assert config.models.threshold_c == 32.0
        assert config.models.dewpoint_mode == "B"
        assert config.output.base_output_dir == tmp_path

    def test_save_and_load(self, tmp_path):
        config = WBGTConfig(resolution=0.25, scenarios=["ssp585"])
        path = tmp_path / "config.json"
        config.save_config(path)
        loaded = WBGTConfig.load_config(path)
        assert loaded.resolution == 0.25
        assert loaded.scenarios == ["ssp585"]
        assert loaded.period.end == date(2050, 12, 31)
