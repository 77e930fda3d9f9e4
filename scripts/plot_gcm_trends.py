#!/usr/bin/env python
"""Plot annual heat-stress days for every GCM under one scenario."""

import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt

from kiln_wbgt.model_runner import load_wbgt_output
from kiln_wbgt.plotting import plot_annual_trend, save_figure
from kiln_wbgt.summaries import aggregate_master_results, create_master_results_df
from kiln_wbgt.wbgt_config import WBGTConfig

SCENARIO = sys.argv[1] if len(sys.argv) > 1 else "ssp126"
MODEL = sys.argv[2] if len(sys.argv) > 2 else "stull"
OUTPUT_DIR = Path(sys.argv[3]) if len(sys.argv) > 3 else Path("output")

config = WBGTConfig(output={"base_output_dir": OUTPUT_DIR})

print(f"Loading {MODEL} outputs for {SCENARIO}...")
runs = []
for short_name in config.gcms:
    path = config.output.wbgt_path(short_name, SCENARIO, MODEL)
    if not path.exists():
        print(f"  {short_name}: no output at {path}, skipping")
        continue
    runs.append(load_wbgt_output(path))
    print(f"  {short_name}: {len(runs[-1])} rows")

if not runs:
    print("No model outputs found")
    sys.exit(1)

print("Building master table...")
master = create_master_results_df(runs, "year", config.models.threshold_c)
annual = aggregate_master_results(master)

# Mean days per cell so GCMs with different land masks stay comparable
annual["days_per_cell"] = annual["days_over"] / annual["n"]
print(annual.groupby("src")["days_per_cell"].describe())

fig, ax = plt.subplots(1, 1, figsize=(12, 7))
plot_annual_trend(annual, "days_per_cell",
                  f"Mean days per cell > WBGT {config.models.threshold_c:g}c", ax=ax)
ax.set_title(f"{SCENARIO.upper()} ({MODEL})", fontsize=14, fontweight='bold')

output_path = config.output.base_output_dir / config.output.figures_dir / f"all_gcms_{MODEL}_{SCENARIO}.png"
save_figure(fig, output_path)

summary_path = config.output.summary_path(f"{SCENARIO}_annual_by_gcm", "all", MODEL, config.models.threshold_c)
summary_path.parent.mkdir(parents=True, exist_ok=True)
annual.to_csv(summary_path, index=False)
print(f"Saved annual table to {summary_path}")
