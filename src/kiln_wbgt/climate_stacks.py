#!/usr/bin/env python
"""Cropped multi-decade climate stacks from ISIMIP3b downloads."""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import xarray as xr
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn

from kiln_wbgt.utils.file_discovery import discover_netcdf_files
from kiln_wbgt.utils.spatial_utils import apply_mask, crop_to_mask, standardize_coordinates
from kiln_wbgt.wbgt_config import WBGTConfig, get_config

console = Console()

TIME_CHUNK = 365


def select_data_variable(ds: xr.Dataset, variable: Optional[str] = None) -> xr.DataArray:
    """Pick the climate variable out of a dataset.

    Tries the exact name, then the ISIMIP ``Adjust`` name, then falls back
    to the only data variable present.
    """
    if variable is not None:
        for candidate in (variable, f"{variable}Adjust"):
            if candidate in ds.data_vars:
                return ds[candidate]

    data_vars = [name for name in ds.data_vars if name != "spatial_ref"]
    if len(data_vars) == 1:
        return ds[data_vars[0]]

    raise ValueError(f"Variable {variable!r} not found. Available: {data_vars}")


def resolve_role(config: WBGTConfig, variable: str) -> str:
    """Map an ISIMIP variable name or a column role onto the column role."""
    if variable in config.variables:
        return variable
    for role, name in config.variables.items():
        if name == variable:
            return role
    raise ValueError(
        f"Unknown climate variable: {variable}. "
        f"Available: {list(config.variables.keys()) + list(config.variables.values())}"
    )


def stack_path(config: WBGTConfig, gcm: str, scenario: str, variable: str) -> Path:
    """Canonical location of the cropped stack for one GCM, scenario and variable."""
    return config.climate_stack_path(gcm, scenario, resolve_role(config, variable))


def create_climate_stack(
    input_dir: Path,
    mask: xr.DataArray,
    output_path: Optional[Path] = None,
    variable: Optional[str] = None,
) -> xr.DataArray:
    """Stack every NetCDF file of a directory along time and clip it to the study area.

    Args:
        input_dir: Directory of decadal ISIMIP files for one variable
        mask: Study-area mask from :func:`create_study_mask`
        output_path: Where to write the stack; nothing is written when omitted
        variable: Variable name inside the files

    Returns:
        Cropped and masked DataArray on (time, y, x)
    """
    files = discover_netcdf_files(Path(input_dir), validate=True, verbose=False)
    if not files:
        raise FileNotFoundError(f"No NetCDF files found in {input_dir}")

    console.print(f"[blue]Stacking {len(files)} files from[/blue] {input_dir}")

    layers = []
    for file_path in files:
        # Global files are read lazily; only the study extent is loaded
        with xr.open_dataset(file_path, chunks={"time": TIME_CHUNK}) as ds:
            data = standardize_coordinates(select_data_variable(ds, variable))
            cropped = crop_to_mask(data, mask).load()
        layers.append(apply_mask(cropped, mask).rio.write_crs("EPSG:4326"))

    stack = xr.concat(layers, dim="time") if len(layers) > 1 else layers[0]
    stack = stack.rio.write_crs("EPSG:4326")

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        stack.to_netcdf(output_path)
        console.print(f"[green]Saved climate stack to {output_path}[/green]")

    return stack


def load_climate_stack(path: Path, variable: Optional[str] = None) -> xr.DataArray:
    """Open a cropped stack written by :func:`create_climate_stack`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Climate stack not found: {path}")

    with xr.open_dataset(path) as ds:
        data = select_data_variable(ds, variable).load()

    if "lon" in data.dims and "lat" in data.dims:
        data = data.rename({"lon": "x", "lat": "y"})
    return data


def build_climate_stacks(
    input_root: Path,
    mask: xr.DataArray,
    gcms: Optional[Iterable[str]] = None,
    scenarios: Optional[Iterable[str]] = None,
    variables: Optional[Iterable[str]] = None,
    config: Optional[WBGTConfig] = None,
) -> Tuple[Dict[Tuple[str, str, str], Path], List[Tuple[str, str, str]]]:
    """Build stacks for every GCM, scenario and variable combination.

    Inputs are read from ``{input_root}/{gcm_dir}/{scenario}/{variable}/``.

    Returns:
        Tuple of (written paths keyed by (gcm, scenario, variable), skipped combinations)
    """
    config = config or get_config()
    gcms = list(gcms or config.gcms.keys())
    scenarios = [config.validate_scenario(s) for s in (scenarios or config.scenarios)]
    variables = list(variables or config.variables.values())

    written = {}
    skipped = []
    combos = [(g, s, v) for g in gcms for s in scenarios for v in variables]

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Building climate stacks", total=len(combos))

        for gcm, scenario, variable in combos:
            gcm_config = config.get_gcm(gcm)
            input_dir = Path(input_root) / gcm_config.directory / scenario / variable
            progress.update(task, description=f"{gcm_config.short_name} {scenario} {variable}")

            if not input_dir.exists():
                console.print(f"[yellow]Skipping missing input directory {input_dir}[/yellow]")
                skipped.append((gcm, scenario, variable))
                progress.advance(task)
                continue

            output_path = stack_path(config, gcm, scenario, variable)
            create_climate_stack(input_dir, mask, output_path, variable=variable)
            written[(gcm, scenario, variable)] = output_path
            progress.advance(task)

    console.print(f"[green]Built {len(written)} stacks, skipped {len(skipped)}[/green]")
    return written, skipped
