#!/usr/bin/env python
"""Snap raw brick kiln locations to the land cells and map them."""

import sys
from pathlib import Path

import pandas as pd
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend

from kiln_wbgt.coordinates import load_coordinates, load_study_area
from kiln_wbgt.kilns import aggregate_kiln_points, rasterize_kilns
from kiln_wbgt.plotting import plot_kiln_heatmap, save_figure
from kiln_wbgt.utils.spatial_utils import create_study_mask
from kiln_wbgt.wbgt_config import get_config

config = get_config()

raw_path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("input/kiln_locations.csv")
output_path = Path(sys.argv[2]) if len(sys.argv) > 2 else config.kilns_file

print(f"Loading kiln locations from {raw_path}...")
raw = pd.read_csv(raw_path)
print("Kiln data columns:", raw.columns.tolist())

points = load_coordinates(config.output.coordinates_path())
print(f"Aggregating {len(raw)} kilns onto {len(points)} land cells...")
kilns = aggregate_kiln_points(raw, resolution=config.resolution, points=points)

output_path.parent.mkdir(parents=True, exist_ok=True)
kilns.to_csv(output_path, index=False)
print(f"Saved {int(kilns['kiln_count'].sum())} kilns in {int((kilns['kiln_count'] > 0).sum())} cells to {output_path}")

print("Creating kiln heatmap...")
study_area = load_study_area(config.study_area_shapefile)
mask = create_study_mask(study_area, config.resolution)
heatmap = rasterize_kilns(kilns[kilns["kiln_count"] > 0], mask)

boundary = load_study_area(config.boundary_shapefile) if config.boundary_shapefile.exists() else study_area
ax = plot_kiln_heatmap(heatmap, boundary)
save_figure(ax.figure, config.output.base_output_dir / config.output.figures_dir / "kiln_heatmap.png")
