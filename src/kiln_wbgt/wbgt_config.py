#!/usr/bin/env python
"""Configuration management for WBGT heat-stress processing."""

from datetime import date
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
import os

import pandas as pd


SUPPORTED_MODELS = ("stull", "bernard", "liljegren")
DEWPOINT_MODES = ("A", "B", "C")


class GCMConfig(BaseModel):
    """A global climate model used in ISIMIP3b."""

    short_name: str = Field(description="Short identifier used in file names (e.g. gfdl)")
    name: str = Field(description="Full model name")
    directory: str = Field(description="ISIMIP directory name (e.g. gfdl-esm4)")


class StudyPeriod(BaseModel):
    """Daily study period, inclusive at both ends."""

    start: date = Field(default=date(2021, 1, 1), description="First day of the study")
    end: date = Field(default=date(2050, 12, 31), description="Last day of the study")

    @model_validator(mode="after")
    def validate_order(self) -> "StudyPeriod":
        if self.start > self.end:
            raise ValueError(f"Study period start {self.start} is after end {self.end}")
        return self

    def days(self) -> pd.DatetimeIndex:
        """Return every day in the study period."""
        return pd.date_range(self.start, self.end, freq="D")

    @property
    def label(self) -> str:
        return f"{self.start.year}_{self.end.year}"


class ModelRunConfig(BaseModel):
    """Settings for running WBGT models."""

    threshold_c: float = Field(default=30.0, description="WBGT above which a day counts as a heat-stress day")
    dewpoint_mode: str = Field(default="A", description="Dewpoint approximation mode (A, B or C)")
    n_workers: int = Field(default=4, ge=1, description="Worker processes for pooled models")
    pressure_hpa: float = Field(default=1010.0, gt=0, description="Surface pressure assumed by the models")
    wind_height_m: float = Field(default=10.0, gt=0, description="Height of the input wind speed")

    @field_validator("dewpoint_mode")
    def validate_dewpoint_mode(cls, v):
        if v.upper() not in DEWPOINT_MODES:
            raise ValueError(f"Dewpoint mode must be one of {list(DEWPOINT_MODES)}")
        return v.upper()


class OutputConfig(BaseModel):
    """Output file and directory configuration."""

    base_output_dir: Path = Field(default=Path("./output"), description="Base output directory")
    climate_data_dir: str = Field(default="climate_data", description="Sub-directory for cropped climate stacks")
    wbgt_dir: str = Field(default="wbgt", description="Sub-directory for per-cell WBGT outputs")
    summaries_dir: str = Field(default="summaries", description="Sub-directory for summary tables")
    figures_dir: str = Field(default="figures", description="Sub-directory for figures")
    coordinates_file: str = Field(default="india_pts.csv", description="Land cell coordinate CSV name")

    @field_validator("base_output_dir", mode="before")
    def validate_path(cls, v):
        return Path(v)

    def coordinates_path(self) -> Path:
        return self.base_output_dir / self.coordinates_file

    def wbgt_path(self, gcm: str, scenario: str, model: str) -> Path:
        """Path of the long-format WBGT table for one run."""
        return self.base_output_dir / self.wbgt_dir / gcm / f"{gcm}_{scenario}_{model}.csv"

    def summary_path(self, name: str, gcm: str, model: str, threshold: Optional[float] = None) -> Path:
        parts = [gcm, model, name]
        if threshold is not None:
            parts.append(f"threshold{threshold:g}c")
        return self.base_output_dir / self.summaries_dir / ("_".join(parts) + ".csv")

    def figure_path(self, gcm: str, model: str, scenario: str, suffix: str = "png") -> Path:
        return self.base_output_dir / self.figures_dir / f"{gcm}_{model}_{scenario}.{suffix}"


class WBGTConfig(BaseModel):
    """Main configuration for the kiln heat-stress study."""

    period: StudyPeriod = Field(default_factory=StudyPeriod)
    models: ModelRunConfig = Field(default_factory=ModelRunConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    resolution: float = Field(default=0.5, gt=0, description="Grid resolution in degrees")

    gcms: Dict[str, GCMConfig] = Field(default_factory=lambda: {
        'gfdl': GCMConfig(short_name='gfdl', name='GFDL-ESM4', directory='gfdl-esm4'),
        'ipsl': GCMConfig(short_name='ipsl', name='IPSL-CM6A-LR', directory='ipsl-cm6a-lr'),
        'mpi': GCMConfig(short_name='mpi', name='MPI-ESM1-2-HR', directory='mpi-esm1-2-hr'),
        'mri': GCMConfig(short_name='mri', name='MRI-ESM2-0', directory='mri-esm2-0'),
        'ukes': GCMConfig(short_name='ukes', name='UKESM1-0-LL', directory='ukesm1-0-ll'),
    })

    scenarios: List[str] = Field(default_factory=lambda: ["ssp126", "ssp370", "ssp585"])

    # Column role -> ISIMIP3b bias-adjusted variable name
    variables: Dict[str, str] = Field(default_factory=lambda: {
        'hurs': 'hursAdjust',
        'tas': 'tasAdjust',
        'tasmax': 'tasmaxAdjust',
        'wind': 'windAdjust',
        'solar': 'rsdsAdjust',
    })

    # Input data locations
    original_data_dir: Path = Field(default=Path('./original_climate_data'), description="Raw ISIMIP3b downloads")
    study_area_shapefile: Path = Field(default=Path('input/study_area/study_area_adm3_noPAK.shp'))
    boundary_shapefile: Path = Field(default=Path('input/brickbelt_shp/india_belt.shp'))
    kilns_file: Path = Field(default=Path('input/kiln_locations_processed.csv'))

    @field_validator('original_data_dir', 'study_area_shapefile', 'boundary_shapefile', 'kilns_file', mode='before')
    def validate_paths(cls, v):
        return Path(v)

    def get_gcm(self, name: str) -> GCMConfig:
        """Look up a GCM by short name or ISIMIP directory name."""
        key = name.lower()
        if key in self.gcms:
            return self.gcms[key]
        for gcm in self.gcms.values():
            if gcm.directory == key:
                return gcm
        raise ValueError(f"Unknown GCM: {name}. Available: {list(self.gcms.keys())}")

    def validate_scenario(self, scenario: str) -> str:
        if scenario.lower() not in self.scenarios:
            raise ValueError(f"Unknown scenario: {scenario}. Available: {self.scenarios}")
        return scenario.lower()

    def source_label(self, gcm: str, scenario: str) -> str:
        """Run label such as ``gfdl_ssp126``, always built from the GCM short name."""
        return f"{self.get_gcm(gcm).short_name}_{scenario.lower()}"

    def climate_stack_path(self, gcm: str, scenario: str, role: str) -> Path:
        """Location of a cropped climate stack for one variable."""
        gcm_config = self.get_gcm(gcm)
        if role not in self.variables:
            raise ValueError(f"Unknown climate variable: {role}. Available: {list(self.variables.keys())}")
        variable = self.variables[role]
        filename = f"{variable}_{gcm_config.short_name}_{self.period.label}_{scenario}.nc"
        return (self.output.base_output_dir / self.output.climate_data_dir
                / gcm_config.directory / scenario / filename)

    def setup_directories(self):
        """Create necessary directories."""
        base = self.output.base_output_dir
        base.mkdir(parents=True, exist_ok=True)
        for sub in (self.output.climate_data_dir, self.output.wbgt_dir,
                    self.output.summaries_dir, self.output.figures_dir):
            (base / sub).mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls) -> 'WBGTConfig':
        """Create config from environment variables."""
        config_data = {}

        if workers := os.getenv('WBGT_WORKERS'):
            config_data.setdefault('models', {})['n_workers'] = int(workers)

        if threshold := os.getenv('WBGT_THRESHOLD'):
            config_data.setdefault('models', {})['threshold_c'] = float(threshold)

        if mode := os.getenv('WBGT_DEWPOINT_MODE'):
            config_data.setdefault('models', {})['dewpoint_mode'] = mode

        if output_dir := os.getenv('WBGT_OUTPUT_DIR'):
            config_data.setdefault('output', {})['base_output_dir'] = output_dir

        if data_dir := os.getenv('WBGT_DATA_DIR'):
            config_data['original_data_dir'] = data_dir

        if resolution := os.getenv('WBGT_RESOLUTION'):
            config_data['resolution'] = float(resolution)

        return cls(**config_data)

    def save_config(self, path: Path):
        """Save configuration to file."""
        import json
        with open(path, 'w') as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    @classmethod
    def load_config(cls, path: Path) -> 'WBGTConfig':
        """Load configuration from file."""
        import json
        with open(path, 'r') as f:
            data = json.load(f)
        return cls(**data)


# Global configuration instance
DEFAULT_CONFIG = WBGTConfig()

def get_config() -> WBGTConfig:
    """Get the global configuration instance."""
    return DEFAULT_CONFIG

def set_config(config: WBGTConfig):
    """Set the global configuration instance."""
    global DEFAULT_CONFIG
    DEFAULT_CONFIG = config
