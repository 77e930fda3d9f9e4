#!/usr/bin/env python
"""Data processing utilities for climate inputs."""

import numpy as np
from rich.console import Console

console = Console()


def convert_units(data: np.ndarray, from_unit: str, to_unit: str) -> np.ndarray:
    """Convert temperatures between Kelvin and Celsius.

    Args:
        data: Input data array
        from_unit: Source unit
        to_unit: Target unit

    Returns:
        Converted data array
    """
    if from_unit == "K" and to_unit == "C":
        console.print(
            "[yellow]Converting temperature units from Kelvin to Celsius[/yellow]"
        )
        return data - 273.15

    elif from_unit == "C" and to_unit == "K":
        return data + 273.15

    else:
        console.print(
            f"[yellow]No conversion needed from {from_unit} to {to_unit}[/yellow]"
        )
        return data
