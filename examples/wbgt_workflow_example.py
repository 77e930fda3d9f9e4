#!/usr/bin/env python
"""
Example: Kiln Heat-Stress Workflow

This example walks through the stages of the kiln-wbgt pipeline for one
GCM: land cells, climate stacks, per-cell frames, WBGT models and summaries.
"""

import numpy as np
import pandas as pd

from kiln_wbgt import (
    build_climate_stacks,
    create_heatstress_summary,
    create_land_coordinates,
    create_master_results_df,
    create_wbgt_frames,
    get_config,
    run_pipeline,
    run_wbgt,
)
from kiln_wbgt.coordinates import load_study_area
from kiln_wbgt.climate_stacks import load_climate_stack
from kiln_wbgt.models import get_model
from kiln_wbgt.utils import convert_units
from kiln_wbgt.utils.psychrometrics import dewpoint_from_relative_humidity
from kiln_wbgt.utils.spatial_utils import create_study_mask


def example_full_pipeline():
    """Example 1: Run every stage with one call"""
    print("🔄 Example 1: Full Pipeline")

    result = run_pipeline(
        gcm="gfdl",
        scenarios=["ssp126", "ssp585"],
        wbgt_model="stull",
        output_dir="output",
        n_workers=4,
    )

    print(f"✅ Processed {result.scenarios_processed}, master table has {len(result.master_df)} rows")
    return result


def example_stage_by_stage():
    """Example 2: Run the stages one at a time"""
    print("\n🚀 Example 2: Stage by Stage")

    config = get_config()

    # Mask and stacks
    study_area = load_study_area(config.study_area_shapefile)
    mask = create_study_mask(study_area, config.resolution)
    written, missing = build_climate_stacks(
        config.original_data_dir, mask, gcms=["gfdl"], scenarios=["ssp370"], config=config
    )
    print(f"  Wrote {len(written)} stacks, {len(missing)} inputs missing")

    # Land cells from any stack
    reference = load_climate_stack(config.climate_stack_path("gfdl", "ssp370", "hurs"))
    points = create_land_coordinates(study_area, reference, config.resolution, mask=mask)

    # Frames and the Bernard model on a worker pool
    frames = create_wbgt_frames("gfdl", "ssp370", points, dewpoint_mode="A", config=config)
    outputs = run_wbgt(frames, points, "gfdl", "ssp370", "bernard", n_workers=4, config=config)

    summary = create_heatstress_summary(pd.concat(outputs, ignore_index=True), points, None, "gfdl", "ssp370")
    print(summary.annual_heatstress_days.head())

    monthly = create_master_results_df([outputs], "month", config.models.threshold_c)
    print(f"✅ Monthly master table has {len(monthly)} rows")
    return monthly


def example_single_cell():
    """Example 3: Compare the models on one cell"""
    print("\n⚡ Example 3: Models on One Cell")

    days = pd.date_range("2021-05-01", periods=31, freq="D")
    tasmax = np.linspace(36.0, 44.0, len(days))
    hurs = np.linspace(55.0, 20.0, len(days))
    frame = pd.DataFrame({
        "date": days,
        "tasmean": tasmax - 8.0,
        "tasmax": tasmax,
        "hurs": hurs,
        "dewp": dewpoint_from_relative_humidity(hurs, tasmax - 8.0),
        "wind": np.full(len(days), 2.0),
        "solar": np.full(len(days), 320.0),
    })

    for name in ("stull", "bernard", "liljegren"):
        with get_model(name, n_workers=1) as model:
            wbgt = model.compute(frame, x=80.25, y=26.75)["wbgt"]
            print(f"  {name:<10} mean WBGT {wbgt.mean():.1f} °C, {(wbgt > 30).sum()} days over 30 °C")


def example_utilities():
    """Example 4: Using individual utilities"""
    print("\n🛠️ Example 4: Using Individual Utilities")

    temp_kelvin = np.array([293.15, 303.15, 313.15])
    temp_celsius = convert_units(temp_kelvin, "K", "C")
    print(f"Converted {temp_kelvin} K to {temp_celsius} °C")

    rh = np.array([30.0, 60.0, 90.0])
    dewpoints = {mode: dewpoint_from_relative_humidity(rh, 35.0, mode) for mode in ("A", "B", "C")}
    for mode, values in dewpoints.items():
        print(f"📊 Dewpoint mode {mode}: {np.round(values, 2)} °C")
    return dewpoints


def main():
    """Run all examples."""
    print("🏗️ Kiln WBGT Workflow Examples")
    print("=" * 50)

    example_single_cell()
    example_utilities()

    # These need ISIMIP3b inputs and the study-area shapefiles on disk
    try:
        example_stage_by_stage()
        example_full_pipeline()
    except FileNotFoundError as e:
        print(f"\n❌ Skipping data examples: {e}")

    print("\n✨ Examples complete")


if __name__ == "__main__":
    main()
