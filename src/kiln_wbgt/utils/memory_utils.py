#!/usr/bin/env python
"""Memory monitoring for long model runs."""

import gc
from typing import Dict

import psutil
from rich.console import Console

console = Console()


class MemoryMonitor:
    """Real-time memory monitoring while cells are processed."""

    def __init__(self, warning_threshold: float = 80.0, critical_threshold: float = 90.0):
        """Initialize memory monitor.

        Args:
            warning_threshold: Memory percentage to trigger warnings
            critical_threshold: Memory percentage to trigger critical alerts
        """
        self.warning_threshold = warning_threshold
        self.critical_threshold = critical_threshold
        self.initial_memory = psutil.virtual_memory().percent

    def get_memory_status(self) -> Dict[str, float]:
        """Get current memory status."""
        memory = psutil.virtual_memory()
        return {
            'percent_used': memory.percent,
            'available_gb': memory.available / (1024**3),
            'total_gb': memory.total / (1024**3),
            'used_gb': memory.used / (1024**3)
        }

    def check_memory_pressure(self) -> str:
        """Return 'normal', 'warning' or 'critical'."""
        current_percent = psutil.virtual_memory().percent

        if current_percent >= self.critical_threshold:
            return 'critical'
        elif current_percent >= self.warning_threshold:
            return 'warning'
        return 'normal'

    def report(self) -> str:
        """Print a warning when memory is under pressure and return the level."""
        level = self.check_memory_pressure()
        if level != 'normal':
            status = self.get_memory_status()
            colour = "red" if level == 'critical' else "yellow"
            console.print(
                f"[{colour}]High memory use: {status['percent_used']:.1f}% "
                f"({status['available_gb']:.1f} GB available)[/{colour}]"
            )
            if level == 'critical':
                gc.collect()
        return level
