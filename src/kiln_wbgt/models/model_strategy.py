#!/usr/bin/env python
"""Execution strategies for running a WBGT model over many grid cells."""

from abc import ABC, abstractmethod
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import List, Sequence

import pandas as pd
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn

from .base_model import BaseWBGTModel
from ..utils.memory_utils import MemoryMonitor

console = Console()


def _compute_cell(model: BaseWBGTModel, frame: pd.DataFrame, x: float, y: float) -> pd.DataFrame:
    """Top-level worker so that it can be pickled for the process pool."""
    return model.compute(frame, x, y)


class ExecutionStrategy(ABC):
    """Abstract base class for execution strategies."""

    @abstractmethod
    def run(
        self,
        model: BaseWBGTModel,
        frames: Sequence[pd.DataFrame],
        xs: Sequence[float],
        ys: Sequence[float],
        n_workers: int = 4,
    ) -> List[pd.DataFrame]:
        """Run the model on every cell.

        Returns:
            Model outputs in the same order as ``frames``
        """
        pass


class SequentialStrategy(ExecutionStrategy):
    """Run cells one after another in the current process."""

    def run(self, model, frames, xs, ys, n_workers=4):
        results = []
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=console
        ) as progress:
            task = progress.add_task(f"Running {model.name} on {len(frames)} cells...", total=len(frames))
            for frame, x, y in zip(frames, xs, ys):
                results.append(_compute_cell(model, frame, x, y))
                progress.advance(task)
        return results


class PoolStrategy(ExecutionStrategy):
    """Run cells on a process pool, keeping the input cell order."""

    def __init__(self, memory_check_every: int = 100):
        self.memory_check_every = memory_check_every

    def run(self, model, frames, xs, ys, n_workers=4):
        results: List[pd.DataFrame] = [None] * len(frames)
        monitor = MemoryMonitor(warning_threshold=85.0)

        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            future_to_cell = {
                executor.submit(_compute_cell, model, frame, x, y): i
                for i, (frame, x, y) in enumerate(zip(frames, xs, ys))
            }

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                console=console
            ) as progress:
                task = progress.add_task(
                    f"Running {model.name} on {len(frames)} cells with {n_workers} workers...",
                    total=len(frames),
                )

                for done, future in enumerate(as_completed(future_to_cell), start=1):
                    i = future_to_cell[future]
                    try:
                        results[i] = future.result()
                    except Exception as e:
                        console.print(f"[red]Cell {i} ({xs[i]}, {ys[i]}) failed: {str(e)}[/red]")
                        for pending in future_to_cell:
                            pending.cancel()
                        raise

                    if done % self.memory_check_every == 0:
                        monitor.report()
                    progress.advance(task)

        return results


def get_execution_strategy(model: BaseWBGTModel) -> ExecutionStrategy:
    """Stull is fast enough to run sequentially; the other models use a pool."""
    if model.name == "stull":
        return SequentialStrategy()
    return PoolStrategy()
