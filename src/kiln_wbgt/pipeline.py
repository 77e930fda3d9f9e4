"""Core pipeline: climate stacks -> cell frames -> WBGT -> summaries -> plots.

Provides a single ``run_pipeline()`` function that runs every stage for
one GCM without interactive prompts.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import geopandas as gpd
import pandas as pd
from pydantic import BaseModel, Field, field_validator, model_validator
from rich.console import Console

from kiln_wbgt.climate_frames import create_wbgt_frames
from kiln_wbgt.climate_stacks import build_climate_stacks, load_climate_stack
from kiln_wbgt.coordinates import (
    create_land_coordinates,
    load_coordinates,
    load_study_area,
    save_coordinates,
)
from kiln_wbgt.kilns import load_kilns
from kiln_wbgt.model_runner import bind_cell_outputs, run_wbgt, source_label
from kiln_wbgt.plotting import create_plots, save_figure
from kiln_wbgt.summaries import (
    HeatstressSummary,
    bind_summaries,
    create_heatstress_summary,
    create_master_results_df,
    period_change,
)
from kiln_wbgt.utils.output_utils import OutputManager
from kiln_wbgt.utils.spatial_utils import create_study_mask
from kiln_wbgt.wbgt_config import (
    DEWPOINT_MODES,
    SUPPORTED_MODELS,
    ModelRunConfig,
    OutputConfig,
    WBGTConfig,
    get_config,
)

console = Console()


class PipelineConfig(BaseModel):
    """Validated configuration for one GCM's heat-stress pipeline."""

    gcm: str = Field(default="gfdl", description="GCM short or directory name.")
    scenarios: tuple = Field(
        default=("ssp126", "ssp370", "ssp585"),
        description="Emissions scenarios to run.",
    )
    wbgt_model: str = Field(default="stull", description="WBGT model.")
    threshold_c: float = Field(default=30.0, description="Heat-stress threshold (°C).")
    dewpoint_mode: str = Field(default="A", description="Dewpoint approximation mode.")
    method: str = Field(default="year", description="Master table period: year or month.")
    map_scenario: Optional[str] = Field(
        default=None,
        description="Scenario drawn on the change map. Defaults to the last scenario.",
    )
    original_data_dir: Optional[Path] = Field(
        default=None,
        description="Raw ISIMIP3b directory. None to use existing climate stacks.",
    )
    study_area_shapefile: Optional[Path] = Field(default=None, description="Study-area polygons.")
    boundary_shapefile: Optional[Path] = Field(default=None, description="Boundary drawn on maps.")
    kilns_file: Optional[Path] = Field(default=None, description="Per-cell kiln counts.")
    output_dir: Path = Field(default=Path("output"), description="Base output directory.")
    make_plots: bool = Field(default=True, description="Write the three-panel figure.")
    n_workers: int = Field(default=4, ge=1, description="Number of workers.")

    @field_validator("gcm")
    @classmethod
    def validate_gcm(cls, gcm_value: str) -> str:
        return get_config().get_gcm(gcm_value).short_name

    @field_validator("scenarios", mode="before")
    @classmethod
    def validate_scenarios(cls, scenarios_value) -> tuple:
        if isinstance(scenarios_value, str):
            scenarios_value = [scenarios_value]
        config = get_config()
        return tuple(config.validate_scenario(s) for s in scenarios_value)

    @field_validator("wbgt_model")
    @classmethod
    def validate_model(cls, model_value: str) -> str:
        if model_value.lower() not in SUPPORTED_MODELS:
            raise ValueError(f"Unsupported WBGT model '{model_value}'. Supported: {SUPPORTED_MODELS}")
        return model_value.lower()

    @field_validator("dewpoint_mode")
    @classmethod
    def validate_dewpoint_mode(cls, mode_value: str) -> str:
        if mode_value.upper() not in DEWPOINT_MODES:
            raise ValueError(f"Dewpoint mode must be one of {list(DEWPOINT_MODES)}")
        return mode_value.upper()

    @field_validator("method")
    @classmethod
    def validate_method(cls, method_value: str) -> str:
        if method_value not in ("year", "month"):
            raise ValueError("Method must be 'year' or 'month'")
        return method_value

    @model_validator(mode="after")
    def set_defaults(self) -> "PipelineConfig":
        defaults = get_config()
        if self.map_scenario is None:
            self.map_scenario = self.scenarios[-1]
        elif self.map_scenario not in self.scenarios:
            raise ValueError(f"Map scenario {self.map_scenario} is not in {self.scenarios}")
        if self.study_area_shapefile is None:
            self.study_area_shapefile = defaults.study_area_shapefile
        if self.boundary_shapefile is None:
            self.boundary_shapefile = defaults.boundary_shapefile
        if self.kilns_file is None:
            self.kilns_file = defaults.kilns_file
        return self

    def to_wbgt_config(self) -> WBGTConfig:
        """Study configuration pointing at this pipeline's inputs and outputs."""
        base = get_config()
        return base.model_copy(update={
            "output": OutputConfig(base_output_dir=self.output_dir),
            "models": ModelRunConfig(
                threshold_c=self.threshold_c,
                dewpoint_mode=self.dewpoint_mode,
                n_workers=self.n_workers,
            ),
            "study_area_shapefile": self.study_area_shapefile,
            "boundary_shapefile": self.boundary_shapefile,
            "kilns_file": self.kilns_file,
            "original_data_dir": self.original_data_dir or base.original_data_dir,
        })


class PipelineResult(BaseModel):
    """Result returned by ``run_pipeline``."""

    model_config = {"arbitrary_types_allowed": True}

    master_df: pd.DataFrame = Field(description="Per-cell, per-period heat-stress days.")
    summaries: Dict[str, HeatstressSummary] = Field(
        default_factory=dict, description="Annual summaries keyed by scenario."
    )
    bound: Optional[HeatstressSummary] = Field(
        default=None, description="Summaries of all scenarios stacked together."
    )
    wbgt_outputs: Dict[str, pd.DataFrame] = Field(
        default_factory=dict, description="Long WBGT tables keyed by scenario."
    )
    output_paths: List[Path] = Field(default_factory=list)
    figure_path: Optional[Path] = Field(default=None)
    scenarios_processed: List[str] = Field(default_factory=list)
    scenarios_skipped: List[str] = Field(default_factory=list)


def _load_points(pipeline_config: PipelineConfig, config: WBGTConfig) -> pd.DataFrame:
    coords_path = config.output.coordinates_path()
    if coords_path.exists():
        console.print(f"[cyan]Using existing coordinates: {coords_path}[/cyan]")
        return load_coordinates(coords_path)

    gdf = load_study_area(pipeline_config.study_area_shapefile)
    reference_path = config.climate_stack_path(
        pipeline_config.gcm, pipeline_config.scenarios[0], "tasmax"
    )
    reference = load_climate_stack(reference_path, config.variables["tasmax"])
    points = create_land_coordinates(gdf, reference, config.resolution)
    save_coordinates(points, coords_path)
    return points


def run_pipeline(
    gcm: str = "gfdl",
    scenarios: Sequence[str] = ("ssp126", "ssp370", "ssp585"),
    wbgt_model: str = "stull",
    *,
    threshold_c: float = 30.0,
    dewpoint_mode: str = "A",
    method: str = "year",
    map_scenario: Optional[str] = None,
    original_data_dir: Optional[Path] = None,
    study_area_shapefile: Optional[Path] = None,
    boundary_shapefile: Optional[Path] = None,
    kilns_file: Optional[Path] = None,
    output_dir: Path = Path("output"),
    make_plots: bool = True,
    n_workers: int = 4,
) -> PipelineResult:
    """Run the full heat-stress pipeline for one GCM.

    Parameters
    ----------
    gcm : str
        GCM short or directory name.
    scenarios : sequence of str
        Emissions scenarios to run.
    wbgt_model : str
        ``stull``, ``bernard`` or ``liljegren``.
    threshold_c : float
        WBGT above which a day counts as a heat-stress day.
    dewpoint_mode : str
        Dewpoint approximation mode (A, B or C).
    method : str
        Period of the master results table, ``year`` or ``month``.
    map_scenario : str, optional
        Scenario drawn on the change map.
    original_data_dir : Path, optional
        Raw ISIMIP3b downloads. ``None`` to use existing climate stacks.
    study_area_shapefile, boundary_shapefile, kilns_file : Path, optional
        Input locations; default to the study configuration.
    output_dir : Path
        Base output directory.
    make_plots : bool
        Whether to write the three-panel figure.
    n_workers : int
        Worker processes for pooled models.

    Returns
    -------
    PipelineResult
        Master table, per-scenario summaries and the files written.
    """
    pipeline_config = PipelineConfig(
        gcm=gcm,
        scenarios=tuple(scenarios),
        wbgt_model=wbgt_model,
        threshold_c=threshold_c,
        dewpoint_mode=dewpoint_mode,
        method=method,
        map_scenario=map_scenario,
        original_data_dir=original_data_dir,
        study_area_shapefile=study_area_shapefile,
        boundary_shapefile=boundary_shapefile,
        kilns_file=kilns_file,
        output_dir=output_dir,
        make_plots=make_plots,
        n_workers=n_workers,
    )
    config = pipeline_config.to_wbgt_config()
    manager = OutputManager(config)

    console.print(f"[bold]Pipeline: gcm={pipeline_config.gcm}, "
                  f"scenarios={pipeline_config.scenarios}, "
                  f"model={pipeline_config.wbgt_model}[/bold]")

    output_paths: List[Path] = []

    # ------------------------------------------------------------------
    # Stage 1: ISIMIP downloads -> cropped climate stacks (optional)
    # ------------------------------------------------------------------
    if pipeline_config.original_data_dir is not None:
        console.print("[bold cyan]Stage 1: Building climate stacks[/bold cyan]")
        gdf = load_study_area(pipeline_config.study_area_shapefile)
        mask = create_study_mask(gdf, config.resolution)
        written, _ = build_climate_stacks(
            pipeline_config.original_data_dir,
            mask,
            gcms=[pipeline_config.gcm],
            scenarios=pipeline_config.scenarios,
            config=config,
        )
        output_paths.extend(written.values())
    else:
        console.print("[bold cyan]Stage 1: Skipped (no original_data_dir provided)[/bold cyan]")

    # ------------------------------------------------------------------
    # Stage 2: Land-cell coordinates
    # ------------------------------------------------------------------
    console.print("[bold cyan]Stage 2: Land-cell coordinates[/bold cyan]")
    points = _load_points(pipeline_config, config)
    console.print(f"[green]{len(points)} land cells[/green]")

    # ------------------------------------------------------------------
    # Stage 3: Climate frames -> WBGT per scenario
    # ------------------------------------------------------------------
    console.print("[bold cyan]Stage 3: WBGT models[/bold cyan]")
    cell_outputs: Dict[str, List[pd.DataFrame]] = {}
    wbgt_outputs: Dict[str, pd.DataFrame] = {}
    scenarios_processed: List[str] = []
    scenarios_skipped: List[str] = []

    for scenario in pipeline_config.scenarios:
        try:
            frames = create_wbgt_frames(
                pipeline_config.gcm, scenario, points,
                dewpoint_mode=pipeline_config.dewpoint_mode, config=config,
            )
        except FileNotFoundError as e:
            console.print(f"[yellow]Skipping {scenario}: {e}[/yellow]")
            scenarios_skipped.append(scenario)
            continue

        outputs = run_wbgt(
            frames, points, pipeline_config.gcm, scenario,
            pipeline_config.wbgt_model, pipeline_config.n_workers, config=config,
        )
        cell_outputs[scenario] = outputs
        wbgt_outputs[scenario] = bind_cell_outputs(outputs)

        wbgt_path = manager.save_with_metadata(
            wbgt_outputs[scenario],
            manager.wbgt_output_path(pipeline_config.gcm, scenario, pipeline_config.wbgt_model),
            metadata={
                "src": source_label(pipeline_config.gcm, scenario, config),
                "wbgt_model": pipeline_config.wbgt_model,
                "dewpoint_mode": pipeline_config.dewpoint_mode,
                "n_cells": len(outputs),
            },
        )
        output_paths.append(wbgt_path)
        scenarios_processed.append(scenario)

    if not cell_outputs:
        console.print("[red]No scenarios produced results. Returning empty result.[/red]")
        return PipelineResult(
            master_df=pd.DataFrame(),
            output_paths=output_paths,
            scenarios_skipped=scenarios_skipped,
        )

    # ------------------------------------------------------------------
    # Stage 4: Summaries
    # ------------------------------------------------------------------
    console.print("[bold cyan]Stage 4: Summaries[/bold cyan]")
    kilns = None
    if pipeline_config.kilns_file is not None and Path(pipeline_config.kilns_file).exists():
        kilns = load_kilns(pipeline_config.kilns_file)
    else:
        console.print(f"[yellow]Kiln file not found: {pipeline_config.kilns_file}, kiln days will be zero[/yellow]")

    summaries = {
        scenario: create_heatstress_summary(
            wbgt_outputs[scenario], points, kilns,
            pipeline_config.gcm, scenario, pipeline_config.threshold_c, config,
        )
        for scenario in scenarios_processed
    }
    bound = bind_summaries(list(summaries.values()))

    master = create_master_results_df(
        [cell_outputs[s] for s in scenarios_processed],
        method=pipeline_config.method,
        threshold=pipeline_config.threshold_c,
        kilns=kilns,
    )

    summary_tables = {f"{pipeline_config.method}ly_master": master, **bound.tables()}
    for name, table in summary_tables.items():
        path = manager.save_with_metadata(
            table,
            manager.summary_output_path(name, pipeline_config.gcm, pipeline_config.wbgt_model,
                                        pipeline_config.threshold_c),
            metadata={"scenarios": scenarios_processed, "threshold_c": pipeline_config.threshold_c},
        )
        output_paths.append(path)

    # ------------------------------------------------------------------
    # Stage 5: Plots
    # ------------------------------------------------------------------
    figure_path = None
    if pipeline_config.make_plots and pipeline_config.map_scenario in cell_outputs:
        console.print("[bold cyan]Stage 5: Plots[/bold cyan]")
        years = config.period.days().year
        first_year, last_year = int(years.min()), int(years.max())
        change = period_change(
            cell_outputs[pipeline_config.map_scenario],
            start_years=(first_year, min(first_year + 4, last_year)),
            end_years=(max(last_year - 4, first_year), last_year),
            threshold=pipeline_config.threshold_c,
        )

        boundary = None
        if pipeline_config.boundary_shapefile is not None and Path(pipeline_config.boundary_shapefile).exists():
            boundary = gpd.read_file(pipeline_config.boundary_shapefile)

        fig = create_plots(
            bound.annual_heatstress_days,
            bound.annual_heatstress_kiln_days,
            change,
            boundary,
            pipeline_config.map_scenario,
            threshold=pipeline_config.threshold_c,
            title=f"{config.get_gcm(pipeline_config.gcm).name} ({pipeline_config.wbgt_model})",
        )
        figure_path = save_figure(
            fig,
            config.output.figure_path(pipeline_config.gcm, pipeline_config.wbgt_model,
                                      pipeline_config.map_scenario),
        )
        output_paths.append(figure_path)

    manager.create_summary_report(
        output_paths,
        {
            "gcm": pipeline_config.gcm,
            "wbgt_model": pipeline_config.wbgt_model,
            "scenarios_processed": scenarios_processed,
            "scenarios_skipped": scenarios_skipped,
        },
    )

    return PipelineResult(
        master_df=master,
        summaries=summaries,
        bound=bound,
        wbgt_outputs=wbgt_outputs,
        output_paths=output_paths,
        figure_path=figure_path,
        scenarios_processed=scenarios_processed,
        scenarios_skipped=scenarios_skipped,
    )
