#!/usr/bin/env python
"""Base class for daily WBGT models."""

from abc import ABC, abstractmethod
from typing import List
import warnings

import pandas as pd
from rich.console import Console

warnings.filterwarnings("ignore", category=RuntimeWarning)

console = Console()


class BaseWBGTModel(ABC):
    """Base class for models that turn one cell's daily climate into WBGT."""

    name: str = ""
    required_columns: List[str] = []
    intermediate_columns: List[str] = []

    def __init__(self, n_workers: int = 4):
        """Initialize the model.

        Args:
            n_workers: Number of worker processes used when the model runs on a pool
        """
        self.n_workers = n_workers

    def validate_frame(self, frame: pd.DataFrame) -> None:
        """Raise ValueError when the frame lacks a column the model needs."""
        missing = [col for col in self.required_columns if col not in frame.columns]
        if missing:
            raise ValueError(f"{self.name} model requires columns {missing}")

    @property
    def output_columns(self) -> List[str]:
        return self.intermediate_columns + ["wbgt"]

    @abstractmethod
    def compute(self, frame: pd.DataFrame, x: float, y: float) -> pd.DataFrame:
        """Compute daily WBGT for one grid cell.

        Args:
            frame: Daily climate table from :func:`create_wbgt_frames`
            x: Cell longitude
            y: Cell latitude

        Returns:
            DataFrame aligned with ``frame`` holding the intermediate columns and ``wbgt``
        """
        pass

    def close(self):
        """Clean up resources."""
        pass

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager."""
        self.close()
        return False
