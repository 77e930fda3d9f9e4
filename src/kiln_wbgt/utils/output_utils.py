#!/usr/bin/env python
"""Utilities for standardized output file and directory management."""

from pathlib import Path
from typing import Optional, Dict, Any
import json
import logging
from datetime import datetime

from kiln_wbgt.wbgt_config import get_config, WBGTConfig

logger = logging.getLogger(__name__)


class OutputManager:
    """Manages standardized output files and directories."""

    def __init__(self, config: Optional[WBGTConfig] = None):
        """Initialize output manager with configuration."""
        self.config = config or get_config()
        self.config.setup_directories()

    def wbgt_output_path(self, gcm: str, scenario: str, model: str) -> Path:
        """Path of the long-format WBGT table for one run."""
        return self.config.output.wbgt_path(gcm, scenario, model)

    def summary_output_path(self, name: str, gcm: str, model: str,
                            threshold: Optional[float] = None) -> Path:
        return self.config.output.summary_path(name, gcm, model, threshold)

    def create_output_directory(self, output_path: Path) -> Path:
        """Create output directory and return the path."""
        output_dir = output_path.parent
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created output directory: {output_dir}")
        return output_dir

    def save_with_metadata(self,
                           data: Any,
                           output_path: Path,
                           metadata: Optional[Dict] = None,
                           save_method: str = "auto") -> Path:
        """Save a table, dataset or dict with an optional metadata sidecar."""
        output_path = Path(output_path)
        self.create_output_directory(output_path)

        if save_method == "auto":
            save_method = {".csv": "csv", ".json": "json", ".nc": "netcdf"}.get(output_path.suffix)
            if save_method is None:
                raise ValueError(f"Unsupported file extension: {output_path.suffix}")

        if save_method == "csv":
            data.to_csv(output_path, index=False)
        elif save_method == "json":
            with open(output_path, 'w') as f:
                json.dump(data, f, indent=2, default=str)
        elif save_method == "netcdf":
            data.to_netcdf(output_path)
        else:
            raise ValueError(f"Unsupported save method: {save_method}. Available: ['auto', 'csv', 'json', 'netcdf']")

        logger.info(f"Saved data to: {output_path}")

        if metadata:
            metadata_path = output_path.with_suffix('.metadata.json')
            enhanced_metadata = {
                "file_info": {
                    "filename": output_path.name,
                    "created_at": datetime.now().isoformat(),
                    "file_size_bytes": output_path.stat().st_size if output_path.exists() else None
                },
                "processing_config": self.config.model_dump(mode="json"),
                **metadata
            }

            with open(metadata_path, 'w') as f:
                json.dump(enhanced_metadata, f, indent=2, default=str)

            logger.info(f"Saved metadata to: {metadata_path}")

        return output_path

    def create_summary_report(self,
                              output_files: list[Path],
                              summary_data: Dict,
                              report_name: str = "pipeline_summary") -> Path:
        """Create a JSON report listing the files produced by a run."""
        summary_dir = self.config.output.base_output_dir / "reports"
        summary_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        summary_path = summary_dir / f"{report_name}_{timestamp}.json"

        report_data = {
            "summary": summary_data,
            "output_files": [str(f) for f in output_files],
            "generated_at": datetime.now().isoformat(),
            "configuration": self.config.model_dump(mode="json")
        }

        with open(summary_path, 'w') as f:
            json.dump(report_data, f, indent=2, default=str)

        logger.info(f"Created summary report: {summary_path}")
        return summary_path


def get_output_manager(config: Optional[WBGTConfig] = None) -> OutputManager:
    """Get a configured output manager instance."""
    return OutputManager(config)
