#!/usr/bin/env python
"""
Kiln WBGT CLI

Heat-stress projections for brick kilns from ISIMIP3b climate data.

Features:
- Crop global ISIMIP3b rasters to the study area
- Extract land-cell coordinates with admin names
- Run the Stull, Bernard and Liljegren WBGT models on every cell
- Summarise heat-stress days and kiln days, and plot the trends
"""

from pathlib import Path
from typing import Optional, List
import warnings

import typer
import questionary
import geopandas as gpd
import xarray as xr
from rich import print as rprint
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.layout import Layout
from typing_extensions import Annotated

warnings.filterwarnings('ignore', category=RuntimeWarning)

from kiln_wbgt.climate_frames import create_wbgt_frames
from kiln_wbgt.climate_stacks import build_climate_stacks, select_data_variable
from kiln_wbgt.coordinates import (
    create_land_coordinates,
    load_coordinates,
    load_study_area,
    save_coordinates,
)
from kiln_wbgt.kilns import load_kilns
from kiln_wbgt.model_runner import (
    bind_cell_outputs,
    load_wbgt_output,
    run_wbgt,
    save_wbgt_output,
)
from kiln_wbgt.pipeline import run_pipeline
from kiln_wbgt.plotting import create_plots, save_figure
from kiln_wbgt.summaries import (
    bind_summaries,
    create_heatstress_summary,
    create_master_results_df,
    period_change,
)
from kiln_wbgt.utils.output_utils import get_output_manager
from kiln_wbgt.utils.spatial_utils import create_study_mask
from kiln_wbgt.wbgt_config import (
    DEWPOINT_MODES,
    SUPPORTED_MODELS,
    OutputConfig,
    WBGTConfig,
    get_config,
)

console = Console(highlight=False)
app = typer.Typer(
    name="kiln-wbgt",
    help="🌡️ WBGT heat-stress projections for brick kilns",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

CONFIG = get_config()

PROMPT_STYLE = questionary.Style([
    ('question', 'bold blue'),
    ('answer', 'bold green'),
    ('pointer', 'bold yellow'),
    ('highlighted', 'bold cyan'),
])

MODEL_DESCRIPTIONS = {
    'stull': 'Stull (2011) - wet bulb from Tmax and RH, fast',
    'bernard': 'Bernard (1999) - shade WBGT from the psychrometric wet bulb',
    'liljegren': 'Liljegren (2008) - outdoor WBGT with sun and wind',
}


def print_banner():
    """Display the banner."""
    banner = Panel.fit(
        "[bold blue]🌡️ Kiln WBGT Toolkit[/bold blue]\n"
        "[dim]ISIMIP3b climate → WBGT heat stress at brick kilns[/dim]",
        border_style="blue",
    )
    console.print(banner)


def interactive_gcm_selection() -> str:
    """Interactive GCM selection."""
    choices = [
        questionary.Choice(title=f"{gcm.name} ({gcm.directory})", value=key)
        for key, gcm in CONFIG.gcms.items()
    ]
    return questionary.select("🌍 Select a GCM:", choices=choices, style=PROMPT_STYLE).ask()


def interactive_scenario_selection() -> str:
    """Interactive emissions scenario selection."""
    return questionary.select(
        "📈 Select an emissions scenario:",
        choices=CONFIG.scenarios,
        style=PROMPT_STYLE,
    ).ask()


def interactive_model_selection() -> str:
    """Interactive WBGT model selection."""
    choices = [
        questionary.Choice(title=description, value=key)
        for key, description in MODEL_DESCRIPTIONS.items()
    ]
    return questionary.select("🔬 Select a WBGT model:", choices=choices, style=PROMPT_STYLE).ask()


def resolve_option(value, interactive: bool, prompt, name: str, default=None):
    """Fill a missing option from a prompt, a default or fail."""
    if value:
        return value
    if interactive:
        return prompt()
    if default is not None:
        return default
    rprint(f"[red]❌ {name} is required[/red]")
    raise typer.Exit(1)


def config_for(output_dir: Optional[Path]) -> WBGTConfig:
    """Global configuration, pointed at another output directory if given."""
    if output_dir is None:
        return CONFIG
    return CONFIG.model_copy(update={"output": OutputConfig(base_output_dir=output_dir)})


def validate_choice(value: str, choices, name: str) -> str:
    if value.lower() not in choices:
        rprint(f"[red]❌ Unknown {name}: {value}[/red]")
        rprint(f"[yellow]Available:[/yellow] {', '.join(choices)}")
        raise typer.Exit(1)
    return value.lower()


def show_settings(title: str, settings: dict):
    table = Table(title=title, show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in settings.items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("coordinates")
def coordinates(
    reference: Annotated[Optional[Path], typer.Argument(help="Any ISIMIP NetCDF file on the study grid")] = None,
    shapefile: Annotated[Optional[Path], typer.Option("--shapefile", "-s", help="Study-area shapefile with NAME_0..NAME_3")] = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output CSV")] = None,
    resolution: Annotated[float, typer.Option("--resolution", "-r", help="Grid resolution in degrees")] = 0.5,
    interactive: Annotated[bool, typer.Option("--interactive", "-i", help="Use interactive prompts for missing options")] = False,
):
    """
    📍 Extract the land cells of the study area.

    Examples:
        kiln-wbgt coordinates hursAdjust_2021_2030.nc -s input/study_area/study_area_adm3_noPAK.shp
    """
    print_banner()

    reference = resolve_option(
        reference, interactive,
        lambda: Path(questionary.path("📁 Reference NetCDF file:", style=PROMPT_STYLE).ask()),
        "Reference NetCDF file",
    )
    shapefile = shapefile or CONFIG.study_area_shapefile
    output = output or CONFIG.output.coordinates_path()

    try:
        gdf = load_study_area(shapefile)
        with xr.open_dataset(reference) as ds:
            data = select_data_variable(ds).load()
        points = create_land_coordinates(gdf, data, resolution)
        save_coordinates(points, output)
        console.print(Panel(
            f"[green]✅ {len(points)} land cells written to {output}[/green]",
            border_style="green",
        ))
    except Exception as e:
        rprint(f"[red]❌ Error creating coordinates: {e}[/red]")
        raise typer.Exit(1)


@app.command("stacks")
def stacks(
    input_root: Annotated[Optional[Path], typer.Argument(help="Root of the ISIMIP3b downloads")] = None,
    shapefile: Annotated[Optional[Path], typer.Option("--shapefile", "-s", help="Study-area shapefile")] = None,
    gcm: Annotated[Optional[List[str]], typer.Option("--gcm", "-g", help="GCM(s) to process")] = None,
    scenario: Annotated[Optional[List[str]], typer.Option("--scenario", help="Scenario(s) to process")] = None,
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", "-o", help="Base output directory")] = None,
    interactive: Annotated[bool, typer.Option("--interactive", "-i", help="Use interactive prompts for missing options")] = False,
):
    """
    🗂️ Stack decadal ISIMIP files and crop them to the study area.

    Examples:
        kiln-wbgt stacks original_climate_data -g gfdl --scenario ssp126
    """
    print_banner()
    config = config_for(output_dir)

    input_root = resolve_option(input_root, interactive,
                                lambda: Path(questionary.path("📁 ISIMIP download root:", style=PROMPT_STYLE).ask()),
                                "Input root", default=config.original_data_dir)
    if gcm and not interactive:
        gcm = [validate_choice(g, list(config.gcms.keys()), "GCM") for g in gcm]
    elif not gcm and interactive:
        gcm = [interactive_gcm_selection()]

    try:
        gdf = load_study_area(shapefile or config.study_area_shapefile)
        mask = create_study_mask(gdf, config.resolution)
        written, skipped = build_climate_stacks(input_root, mask, gcm or None, scenario or None, config=config)
    except Exception as e:
        rprint(f"[red]❌ Error building climate stacks: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="🗂️ Climate stacks")
    table.add_column("GCM", style="cyan")
    table.add_column("Scenario", style="green")
    table.add_column("Variable", style="yellow")
    table.add_column("Status")
    for (g, s, v), path in written.items():
        table.add_row(g, s, v, f"[green]{path.name}[/green]")
    for g, s, v in skipped:
        table.add_row(g, s, v, "[yellow]missing input[/yellow]")
    console.print(table)


@app.command("run-models")
def run_models(
    gcm: Annotated[Optional[str], typer.Option("--gcm", "-g", help="GCM short name")] = None,
    scenario: Annotated[Optional[str], typer.Option("--scenario", help="Emissions scenario")] = None,
    model: Annotated[Optional[str], typer.Option("--model", "-m", help="WBGT model")] = None,
    workers: Annotated[int, typer.Option("--workers", "-w", help="Number of worker processes")] = 4,
    dewpoint_mode: Annotated[str, typer.Option("--dewpoint-mode", "-d", help="Dewpoint mode (A, B or C)")] = "A",
    coordinates_file: Annotated[Optional[Path], typer.Option("--coordinates", "-c", help="Land-cell CSV")] = None,
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", "-o", help="Base output directory")] = None,
    interactive: Annotated[bool, typer.Option("--interactive", "-i", help="Use interactive prompts for missing options")] = False,
):
    """
    🔥 Run a WBGT model on every land cell for one GCM and scenario.

    Examples:
        kiln-wbgt run-models -g gfdl --scenario ssp126 -m stull
        kiln-wbgt run-models -g mpi --scenario ssp585 -m liljegren -w 6
    """
    print_banner()
    config = config_for(output_dir)

    gcm = validate_choice(resolve_option(gcm, interactive, interactive_gcm_selection, "GCM"),
                          list(config.gcms.keys()), "GCM")
    scenario = validate_choice(resolve_option(scenario, interactive, interactive_scenario_selection, "Scenario"),
                               config.scenarios, "scenario")
    model = validate_choice(resolve_option(model, interactive, interactive_model_selection, "Model", default="stull"),
                            list(SUPPORTED_MODELS), "model")
    dewpoint_mode = validate_choice(dewpoint_mode.lower(), [m.lower() for m in DEWPOINT_MODES], "dewpoint mode").upper()

    show_settings("📊 Model run", {
        "GCM": config.get_gcm(gcm).name,
        "Scenario": scenario,
        "Model": MODEL_DESCRIPTIONS[model],
        "Workers": workers,
        "Dewpoint mode": dewpoint_mode,
    })

    try:
        points = load_coordinates(coordinates_file or config.output.coordinates_path())
        frames = create_wbgt_frames(gcm, scenario, points, dewpoint_mode, config=config)
        outputs = run_wbgt(frames, points, gcm, scenario, model, workers, config=config)
        path = save_wbgt_output(bind_cell_outputs(outputs), config.output.wbgt_path(gcm, scenario, model))
        console.print(Panel(f"[green]✅ WBGT written to {path}[/green]", border_style="green"))
    except Exception as e:
        rprint(f"[red]❌ Error running {model} model: {e}[/red]")
        raise typer.Exit(1)


def _load_runs(config: WBGTConfig, gcm: str, model: str, scenarios: List[str]):
    runs = {}
    for scenario in scenarios:
        path = config.output.wbgt_path(gcm, scenario, model)
        if not path.exists():
            console.print(f"[yellow]No WBGT output for {gcm} {scenario} {model}, skipping[/yellow]")
            continue
        runs[scenario] = load_wbgt_output(path)
    if not runs:
        raise FileNotFoundError(f"No WBGT outputs found for {gcm} {model}. Run 'kiln-wbgt run-models' first.")
    return runs


@app.command("summarise")
def summarise(
    gcm: Annotated[Optional[str], typer.Option("--gcm", "-g", help="GCM short name")] = None,
    model: Annotated[str, typer.Option("--model", "-m", help="WBGT model")] = "stull",
    scenario: Annotated[Optional[List[str]], typer.Option("--scenario", help="Scenario(s) to include")] = None,
    threshold: Annotated[float, typer.Option("--threshold", "-t", help="WBGT threshold (°C)")] = 30.0,
    method: Annotated[str, typer.Option("--method", help="Master table period: year or month")] = "year",
    kilns_file: Annotated[Optional[Path], typer.Option("--kilns", "-k", help="Per-cell kiln counts CSV")] = None,
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", "-o", help="Base output directory")] = None,
    interactive: Annotated[bool, typer.Option("--interactive", "-i", help="Use interactive prompts for missing options")] = False,
):
    """
    📈 Count heat-stress days and kiln days from saved WBGT outputs.

    Examples:
        kiln-wbgt summarise -g gfdl -m stull
        kiln-wbgt summarise -g gfdl --method month -t 32
    """
    print_banner()
    config = config_for(output_dir)
    gcm = validate_choice(resolve_option(gcm, interactive, interactive_gcm_selection, "GCM"),
                          list(config.gcms.keys()), "GCM")
    model = validate_choice(model, list(SUPPORTED_MODELS), "model")
    method = validate_choice(method, ["year", "month"], "method")
    scenarios = [validate_choice(s, config.scenarios, "scenario") for s in (scenario or config.scenarios)]

    try:
        runs = _load_runs(config, gcm, model, scenarios)
        kilns_path = kilns_file or config.kilns_file
        kilns = load_kilns(kilns_path) if Path(kilns_path).exists() else None
        points_path = config.output.coordinates_path()
        points = load_coordinates(points_path) if points_path.exists() else None

        summaries = [
            create_heatstress_summary(long, points, kilns, gcm, s, threshold, config)
            for s, long in runs.items()
        ]
        bound = bind_summaries(summaries)
        master = create_master_results_df(list(runs.values()), method, threshold, kilns)

        manager = get_output_manager(config)
        tables = {f"{method}ly_master": master, **bound.tables()}
        for name, table in tables.items():
            manager.save_with_metadata(
                table,
                manager.summary_output_path(name, gcm, model, threshold),
                metadata={"scenarios": list(runs.keys()), "threshold_c": threshold},
            )
    except Exception as e:
        rprint(f"[red]❌ Error creating summaries: {e}[/red]")
        raise typer.Exit(1)

    annual = bound.annual_heatstress_days
    table = Table(title=f"🔥 Heat-stress days > {threshold:g}°C")
    table.add_column("Run", style="cyan")
    table.add_column("Years", style="green")
    table.add_column("Mean cell-days per year", style="yellow")
    for src, group in annual.groupby("src", sort=False):
        table.add_row(src, str(len(group)), f"{group['days_over'].mean():,.0f}")
    console.print(table)


@app.command("plots")
def plots(
    gcm: Annotated[Optional[str], typer.Option("--gcm", "-g", help="GCM short name")] = None,
    model: Annotated[str, typer.Option("--model", "-m", help="WBGT model")] = "stull",
    map_scenario: Annotated[str, typer.Option("--map-scenario", help="Scenario drawn on the change map")] = "ssp585",
    scenario: Annotated[Optional[List[str]], typer.Option("--scenario", help="Scenario(s) in the trend panels")] = None,
    threshold: Annotated[float, typer.Option("--threshold", "-t", help="WBGT threshold (°C)")] = 30.0,
    boundary: Annotated[Optional[Path], typer.Option("--boundary", "-b", help="Boundary shapefile for the map")] = None,
    kilns_file: Annotated[Optional[Path], typer.Option("--kilns", "-k", help="Per-cell kiln counts CSV")] = None,
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", "-o", help="Base output directory")] = None,
    interactive: Annotated[bool, typer.Option("--interactive", "-i", help="Use interactive prompts for missing options")] = False,
):
    """
    🗺️ Plot heat-stress trends and the change map for one GCM.

    Examples:
        kiln-wbgt plots -g gfdl -m stull --map-scenario ssp585
    """
    print_banner()
    config = config_for(output_dir)
    gcm = validate_choice(resolve_option(gcm, interactive, interactive_gcm_selection, "GCM"),
                          list(config.gcms.keys()), "GCM")
    model = validate_choice(model, list(SUPPORTED_MODELS), "model")
    map_scenario = validate_choice(map_scenario, config.scenarios, "scenario")
    scenarios = [validate_choice(s, config.scenarios, "scenario") for s in (scenario or config.scenarios)]
    if map_scenario not in scenarios:
        scenarios.append(map_scenario)

    try:
        runs = _load_runs(config, gcm, model, scenarios)
        if map_scenario not in runs:
            raise FileNotFoundError(f"No WBGT output for map scenario {map_scenario}")

        kilns_path = kilns_file or config.kilns_file
        kilns = load_kilns(kilns_path) if Path(kilns_path).exists() else None
        bound = bind_summaries([
            create_heatstress_summary(long, None, kilns, gcm, s, threshold, config)
            for s, long in runs.items()
        ])

        years = config.period.days().year
        first, last = int(years.min()), int(years.max())
        change = period_change(runs[map_scenario], (first, first + 4), (last - 4, last), threshold)

        boundary_path = boundary or config.boundary_shapefile
        boundary_gdf = gpd.read_file(boundary_path) if Path(boundary_path).exists() else None

        fig = create_plots(
            bound.annual_heatstress_days, bound.annual_heatstress_kiln_days,
            change, boundary_gdf, map_scenario, threshold,
            title=f"{config.get_gcm(gcm).name} ({model})",
        )
        path = save_figure(fig, config.output.figure_path(gcm, model, map_scenario))
        console.print(Panel(f"[green]✅ Figure written to {path}[/green]", border_style="green"))
    except Exception as e:
        rprint(f"[red]❌ Error creating plots: {e}[/red]")
        raise typer.Exit(1)


@app.command("pipeline")
def pipeline(
    gcm: Annotated[Optional[str], typer.Option("--gcm", "-g", help="GCM short name")] = None,
    scenario: Annotated[Optional[List[str]], typer.Option("--scenario", help="Scenario(s) to run")] = None,
    model: Annotated[Optional[str], typer.Option("--model", "-m", help="WBGT model")] = None,
    threshold: Annotated[float, typer.Option("--threshold", "-t", help="WBGT threshold (°C)")] = 30.0,
    dewpoint_mode: Annotated[str, typer.Option("--dewpoint-mode", "-d", help="Dewpoint mode (A, B or C)")] = "A",
    method: Annotated[str, typer.Option("--method", help="Master table period: year or month")] = "year",
    data_dir: Annotated[Optional[Path], typer.Option("--data-dir", help="Raw ISIMIP3b downloads; omit to reuse stacks")] = None,
    output_dir: Annotated[Path, typer.Option("--output-dir", "-o", help="Base output directory")] = Path("output"),
    no_plots: Annotated[bool, typer.Option("--no-plots", help="Skip the figure")] = False,
    workers: Annotated[int, typer.Option("--workers", "-w", help="Number of worker processes")] = 4,
    interactive: Annotated[bool, typer.Option("--interactive", "-i", help="Use interactive prompts for missing options")] = False,
):
    """
    🚀 Run every stage for one GCM: stacks, coordinates, models, summaries and plots.

    Examples:
        kiln-wbgt pipeline -g gfdl -m stull
        kiln-wbgt pipeline -g ukes -m bernard --scenario ssp585 --data-dir original_climate_data
    """
    print_banner()
    gcm = validate_choice(resolve_option(gcm, interactive, interactive_gcm_selection, "GCM"),
                          list(CONFIG.gcms.keys()), "GCM")
    model = validate_choice(resolve_option(model, interactive, interactive_model_selection, "Model", default="stull"),
                            list(SUPPORTED_MODELS), "model")

    try:
        result = run_pipeline(
            gcm=gcm,
            scenarios=scenario or CONFIG.scenarios,
            wbgt_model=model,
            threshold_c=threshold,
            dewpoint_mode=dewpoint_mode,
            method=method,
            original_data_dir=data_dir,
            output_dir=output_dir,
            make_plots=not no_plots,
            n_workers=workers,
        )
    except Exception as e:
        rprint(f"[red]❌ Pipeline failed: {e}[/red]")
        raise typer.Exit(1)

    show_settings("✅ Pipeline complete", {
        "Scenarios processed": ", ".join(result.scenarios_processed) or "none",
        "Scenarios skipped": ", ".join(result.scenarios_skipped) or "none",
        "Files written": len(result.output_paths),
        "Figure": result.figure_path or "not created",
    })


@app.command("list-gcms")
def list_gcms():
    """🌍 List the configured GCMs and scenarios."""
    print_banner()

    gcms_table = Table(title="🌍 Available GCMs")
    gcms_table.add_column("Short name", style="cyan")
    gcms_table.add_column("Model", style="green")
    gcms_table.add_column("ISIMIP directory", style="yellow")

    for key, gcm in CONFIG.gcms.items():
        gcms_table.add_row(key, gcm.name, gcm.directory)

    console.print(gcms_table)
    console.print(f"[dim]Scenarios: {', '.join(CONFIG.scenarios)}[/dim]")


@app.command("info")
def info():
    """ℹ️ Display the study configuration and available data."""
    print_banner()

    data_dir = CONFIG.original_data_dir
    nc_files = list(data_dir.rglob("*.nc")) if data_dir.exists() else []
    stack_dir = CONFIG.output.base_output_dir / CONFIG.output.climate_data_dir
    stack_files = list(stack_dir.rglob("*.nc")) if stack_dir.exists() else []
    wbgt_dir = CONFIG.output.base_output_dir / CONFIG.output.wbgt_dir
    wbgt_files = list(wbgt_dir.rglob("*.csv")) if wbgt_dir.exists() else []

    info_layout = Layout()
    info_layout.split_column(
        Layout(name="data"),
        Layout(name="study")
    )

    data_table = Table(title="📁 Available Data")
    data_table.add_column("Type", style="cyan")
    data_table.add_column("Count", style="green")
    data_table.add_column("Location", style="yellow")
    data_table.add_row("ISIMIP NetCDF files", str(len(nc_files)), str(data_dir))
    data_table.add_row("Climate stacks", str(len(stack_files)), str(stack_dir))
    data_table.add_row("WBGT outputs", str(len(wbgt_files)), str(wbgt_dir))

    study_table = Table(title="🔬 Study")
    study_table.add_column("Setting", style="cyan")
    study_table.add_column("Value", style="green")
    study_table.add_row("Period", f"{CONFIG.period.start} to {CONFIG.period.end} ({len(CONFIG.period.days())} days)")
    study_table.add_row("Resolution", f"{CONFIG.resolution}°")
    study_table.add_row("Threshold", f"WBGT > {CONFIG.models.threshold_c:g}°C")
    study_table.add_row("Models", ", ".join(SUPPORTED_MODELS))
    study_table.add_row("Variables", ", ".join(CONFIG.variables.values()))

    info_layout["data"].update(Panel(data_table, border_style="blue"))
    info_layout["study"].update(Panel(study_table, border_style="green"))

    console.print(info_layout)


if __name__ == "__main__":
    app()
