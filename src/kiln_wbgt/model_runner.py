#!/usr/bin/env python
"""Run a WBGT model over every land cell of one GCM and scenario."""

from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd
import psutil
from rich.console import Console

from kiln_wbgt.models import get_model, get_execution_strategy
from kiln_wbgt.wbgt_config import WBGTConfig, get_config

console = Console()

ADMIN_COLUMNS = ["country", "adm1", "adm2", "adm3"]


def check_workers(n_workers: int) -> int:
    """Reject worker counts above the machine's core count."""
    cores = psutil.cpu_count(logical=True) or 1
    if n_workers > cores:
        raise ValueError(
            f"You have specified {n_workers} workers but this machine has {cores} cores. "
            f"Run with {max(cores - 2, 1)} workers to leave some CPU for other work."
        )
    return n_workers


def source_label(gcm: str, scenario: str, config: Optional[WBGTConfig] = None) -> str:
    """Run label such as ``gfdl_ssp126``."""
    return (config or get_config()).source_label(gcm, scenario)


def run_wbgt(
    frames: Sequence[pd.DataFrame],
    points: pd.DataFrame,
    gcm: str,
    scenario: str,
    wbgt_model: str,
    n_workers: int = 4,
    config: Optional[WBGTConfig] = None,
    **model_kwargs,
) -> List[pd.DataFrame]:
    """Run one WBGT model on every cell frame.

    Args:
        frames: Daily climate tables from :func:`create_wbgt_frames`, in point order
        points: Land cells with x, y and admin columns
        gcm: GCM short or directory name
        scenario: Emissions scenario
        wbgt_model: ``stull``, ``bernard`` or ``liljegren``
        n_workers: Worker processes for pooled models
        config: Study configuration
        **model_kwargs: Extra model settings, e.g. ``pressure_hpa``

    Returns:
        One DataFrame per cell with columns
        x, y, date, country, adm1, adm2, adm3, <intermediates>, wbgt, src
    """
    check_workers(n_workers)
    config = config or get_config()
    src = source_label(gcm, scenario, config)

    if len(frames) != len(points):
        raise ValueError(f"Got {len(frames)} climate frames for {len(points)} points")

    points = points.reset_index(drop=True)
    for col in ADMIN_COLUMNS:
        if col not in points.columns:
            points[col] = None

    model = get_model(wbgt_model, n_workers=n_workers, **model_kwargs)
    strategy = get_execution_strategy(model)

    console.print(f"[blue]Running {model.name} model for {src} on {len(frames)} cells...[/blue]")
    if model.name == "stull":
        console.print("[dim]Not running in parallel due to the fast execution time of the Stull model.[/dim]")

    with model:
        results = strategy.run(model, frames, points["x"].tolist(), points["y"].tolist(), n_workers)

    outputs = []
    for i, (frame, result) in enumerate(zip(frames, results)):
        cell = points.iloc[i]
        output = pd.DataFrame({
            "x": cell["x"],
            "y": cell["y"],
            "date": pd.to_datetime(frame["date"]).values,
            "country": cell["country"],
            "adm1": cell["adm1"],
            "adm2": cell["adm2"],
            "adm3": cell["adm3"],
        })
        for col in model.output_columns:
            output[col] = result[col].values
        output["src"] = src
        outputs.append(output)

    console.print(f"[green]{model.name} complete for {src}[/green]")
    return outputs


def bind_cell_outputs(outputs: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """Concatenate per-cell outputs into one long table."""
    if len(outputs) == 0:
        raise ValueError("No cell outputs to bind")
    return pd.concat(outputs, ignore_index=True)


def split_cell_outputs(long_table: pd.DataFrame) -> List[pd.DataFrame]:
    """Split a long table back into per-cell frames, in first-appearance order."""
    return [
        group.reset_index(drop=True)
        for _, group in long_table.groupby(["x", "y"], sort=False)
    ]


def save_wbgt_output(long_table: pd.DataFrame, path: Path) -> Path:
    """Write a long WBGT table to CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    long_table.to_csv(path, index=False)
    console.print(f"[green]Saved {len(long_table)} rows to {path}[/green]")
    return path


def load_wbgt_output(path: Path) -> pd.DataFrame:
    """Read a long WBGT table written by :func:`save_wbgt_output`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"WBGT output not found: {path}")
    return pd.read_csv(path, parse_dates=["date"])
