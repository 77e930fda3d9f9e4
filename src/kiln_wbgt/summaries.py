#!/usr/bin/env python
"""Heat-stress day counts and kiln-day summaries from daily WBGT."""

from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field
from rich.console import Console

from kiln_wbgt.wbgt_config import WBGTConfig, get_config

console = Console()

CellOutputs = Union[pd.DataFrame, Sequence[pd.DataFrame]]

PERIOD_FREQUENCIES = {"year": "Y", "month": "M"}
MASTER_COLUMNS = ["x", "y", "country", "adm1", "adm2", "adm3", "src", "date", "days_over", "kiln_count"]
CELL_KEYS = ["x", "y", "country", "adm1", "adm2", "adm3", "src"]


class HeatstressSummary(BaseModel):
    """Annual heat-stress tables for one GCM and scenario."""

    model_config = {"arbitrary_types_allowed": True}

    src: str = Field(description="Run label, e.g. gfdl_ssp126")
    threshold_c: float = Field(default=30.0, description="WBGT threshold in Celsius")
    annual_heatstress_days: pd.DataFrame = Field(description="year, days_over, n, src")
    annual_heatstress_kiln_days: pd.DataFrame = Field(description="year, kiln_days, src")
    country_annual_heatstress_days: pd.DataFrame = Field(description="year, country, days_over, n")

    def tables(self) -> Dict[str, pd.DataFrame]:
        return {
            "annual_heatstress_days": self.annual_heatstress_days,
            "annual_heatstress_kiln_days": self.annual_heatstress_kiln_days,
            "country_annual_heatstress_days": self.country_annual_heatstress_days,
        }


def floor_dates(dates: pd.Series, method: str) -> pd.Series:
    """Floor dates to the first day of their year or month."""
    if method not in PERIOD_FREQUENCIES:
        raise ValueError(f"Unknown summary method: {method}. Available: {list(PERIOD_FREQUENCIES.keys())}")
    return pd.to_datetime(dates).dt.to_period(PERIOD_FREQUENCIES[method]).dt.start_time


def _as_long(outputs: CellOutputs) -> pd.DataFrame:
    if isinstance(outputs, pd.DataFrame):
        return outputs
    if len(outputs) == 0:
        return pd.DataFrame()
    return pd.concat(outputs, ignore_index=True)


def _xy_key(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df["x"] = np.round(df["x"].astype(float), 6)
    df["y"] = np.round(df["y"].astype(float), 6)
    return df


def summarise_days_over(cell_frame: pd.DataFrame, method: str = "year", threshold: float = 30.0) -> pd.DataFrame:
    """Count days above the threshold per year or month for one cell.

    Returns:
        DataFrame with the period start ``date`` and ``days_over``
    """
    period = floor_dates(cell_frame["date"], method)
    over = (cell_frame["wbgt"] > threshold).astype(int)
    counts = over.groupby(period.values).sum()
    return pd.DataFrame({"date": counts.index, "days_over": counts.values.astype(int)})


def create_master_results_df(
    runs: Sequence[CellOutputs],
    method: str = "year",
    threshold: float = 30.0,
    kilns: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Per-cell, per-period heat-stress day counts for several runs.

    Args:
        runs: Model outputs, each a list of per-cell frames or a long table
        method: ``year`` or ``month``
        threshold: WBGT threshold in Celsius
        kilns: Per-cell kiln counts with x, y and kiln_count

    Returns:
        DataFrame with columns
        x, y, country, adm1, adm2, adm3, src, date, days_over, kiln_count
    """
    if method not in PERIOD_FREQUENCIES:
        raise ValueError(f"Unknown summary method: {method}. Available: {list(PERIOD_FREQUENCIES.keys())}")

    summaries = []
    for run in runs:
        long = _as_long(run)
        if long.empty:
            continue
        long = long.assign(
            date=floor_dates(long["date"], method),
            days_over=(long["wbgt"] > threshold).astype(int),
        )
        for col in CELL_KEYS:
            if col not in long.columns:
                long[col] = None
        summaries.append(
            long.groupby(CELL_KEYS + ["date"], sort=False, dropna=False)["days_over"].sum().reset_index()
        )

    if not summaries:
        raise ValueError("No model outputs to summarise")

    master = _xy_key(pd.concat(summaries, ignore_index=True))

    if kilns is not None:
        kiln_counts = _xy_key(kilns[["x", "y", "kiln_count"]]).groupby(["x", "y"], as_index=False)["kiln_count"].sum()
        master = master.merge(kiln_counts, on=["x", "y"], how="left")
    else:
        master["kiln_count"] = np.nan

    return master[MASTER_COLUMNS]


def aggregate_master_results(master: pd.DataFrame) -> pd.DataFrame:
    """Sum heat-stress days over all cells per year and run."""
    year = floor_dates(master["date"], "year")
    grouped = master.assign(year=year).groupby(["year", "src"], sort=True)
    return grouped["days_over"].agg(days_over="sum", n="size").reset_index()


def create_heatstress_summary(
    wbgt_long: pd.DataFrame,
    points: Optional[pd.DataFrame],
    kilns: Optional[pd.DataFrame],
    gcm: str,
    scenario: str,
    threshold: float = 30.0,
    config: Optional[WBGTConfig] = None,
) -> HeatstressSummary:
    """Annual heat-stress days, kiln days and per-country counts for one run.

    A kiln day is one kiln exposed to one day above the threshold; cells
    without a kiln count contribute nothing.

    Raises:
        ValueError: If the WBGT table is empty or the GCM is unknown
    """
    src = (config or get_config()).source_label(gcm, scenario)
    if wbgt_long is None or len(wbgt_long) == 0:
        raise ValueError(f"No WBGT data for {src}")

    data = _xy_key(wbgt_long)
    data["year"] = floor_dates(data["date"], "year")
    data["over"] = (data["wbgt"] > threshold).astype(int)

    annual = (
        data.groupby("year")["over"].agg(days_over="sum", n="size").reset_index()
    )
    annual["src"] = src

    if kilns is not None:
        kiln_counts = _xy_key(kilns[["x", "y", "kiln_count"]]).groupby(["x", "y"], as_index=False)["kiln_count"].sum()
        with_kilns = data.merge(kiln_counts, on=["x", "y"], how="left")
        with_kilns["kiln_count"] = with_kilns["kiln_count"].fillna(0)
    else:
        with_kilns = data.assign(kiln_count=0)
    with_kilns["kiln_days"] = with_kilns["kiln_count"] * with_kilns["over"]
    kiln_days = with_kilns.groupby("year")["kiln_days"].sum().reset_index()
    kiln_days["src"] = src

    if points is not None:
        regions = _xy_key(points[["x", "y", "country"]]).drop_duplicates(["x", "y"])
        data = data.drop(columns=["country"], errors="ignore").merge(regions, on=["x", "y"], how="left")
    elif "country" not in data.columns:
        data["country"] = None
    country = (
        data.groupby(["year", "country"], dropna=False)["over"]
        .agg(days_over="sum", n="size")
        .reset_index()
    )

    console.print(
        f"[cyan]{src}: {int(annual['days_over'].sum())} cell-days above {threshold:g}°C "
        f"across {len(annual)} years[/cyan]"
    )

    return HeatstressSummary(
        src=src,
        threshold_c=threshold,
        annual_heatstress_days=annual[["year", "days_over", "n", "src"]],
        annual_heatstress_kiln_days=kiln_days[["year", "kiln_days", "src"]],
        country_annual_heatstress_days=country[["year", "country", "days_over", "n"]],
    )


def period_change(
    cell_outputs: CellOutputs,
    start_years: Tuple[int, int] = (2021, 2025),
    end_years: Tuple[int, int] = (2046, 2050),
    threshold: float = 30.0,
) -> pd.DataFrame:
    """Mean annual heat-stress days per cell in an early and a late period.

    Both year ranges are inclusive and cover whole calendar years,
    31 December included, so every year in a range counts all its days.

    Returns:
        DataFrame with x, y, start and end in cell order
    """
    long = _as_long(cell_outputs)
    if long.empty:
        raise ValueError("No model outputs for the period comparison")

    long = long.assign(
        year=pd.to_datetime(long["date"]).dt.year,
        over=(long["wbgt"] > threshold).astype(int),
    )
    annual = long.groupby(["x", "y", "year"], sort=False)["over"].sum().reset_index()

    cells = long[["x", "y"]].drop_duplicates().reset_index(drop=True)
    for name, (first, last) in (("start", start_years), ("end", end_years)):
        in_period = annual[(annual["year"] >= first) & (annual["year"] <= last)]
        means = in_period.groupby(["x", "y"])["over"].mean().rename(name).reset_index()
        cells = cells.merge(means, on=["x", "y"], how="left")

    return cells[["x", "y", "start", "end"]]


def bind_summaries(summaries: Sequence[HeatstressSummary]) -> HeatstressSummary:
    """Stack the tables of several runs so they can share one plot."""
    if len(summaries) == 0:
        raise ValueError("No summaries to bind")

    def stack(name: str) -> pd.DataFrame:
        return pd.concat([getattr(s, name) for s in summaries], ignore_index=True)

    return HeatstressSummary(
        src="+".join(s.src for s in summaries),
        threshold_c=summaries[0].threshold_c,
        annual_heatstress_days=stack("annual_heatstress_days"),
        annual_heatstress_kiln_days=stack("annual_heatstress_kiln_days"),
        country_annual_heatstress_days=stack("country_annual_heatstress_days"),
    )
