"""
Artifact management for calibration runs.

All outputs of a run are written below one output directory:

    <output_dir>/
        matrices/   calibrated matrices (CSV)
        reports/    evaluation and stability reports (JSON), checkpoint history (CSV)
        configs/    optimizer config (JSON) and the config used (YAML)
        metadata.json
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any, List

import numpy as np
import pandas as pd
import yaml

from .data_loading.loaders import save_matrix
from .evaluation.metrics import EvaluationReport
from .optimization.local_search import OptimizerConfig

logger = logging.getLogger(__name__)

SUBDIRECTORIES = ["matrices", "reports", "configs"]


class ArtifactManager:
    """
    Writes calibration artifacts to a fixed directory layout.

    Attributes:
        output_dir: Root directory for all artifacts
    """

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)
        for sub in SUBDIRECTORIES:
            (self.output_dir / sub).mkdir(parents=True, exist_ok=True)
        logger.info(f"Writing artifacts to {self.output_dir}")

    def save_matrix(self, matrix: np.ndarray, name: str) -> Path:
        """Save a matrix as matrices/matrix_<name>.csv."""
        path = self.output_dir / "matrices" / f"matrix_{name}.csv"
        save_matrix(matrix, str(path))
        return path

    def save_evaluation_report(self, report: EvaluationReport, name: str) -> Path:
        """Save a report as reports/evaluation_<name>.json plus its diagnostics CSV."""
        path = self.output_dir / "reports" / f"evaluation_{name}.json"
        report.save(str(path))
        if not report.diagnostics.empty:
            report.diagnostics.to_csv(
                self.output_dir / "reports" / f"diagnostics_{name}.csv", index=False
            )
        return path

    def save_history(self, history: pd.DataFrame, name: str) -> Path:
        """Save optimizer checkpoint history as reports/history_<name>.csv."""
        path = self.output_dir / "reports" / f"history_{name}.csv"
        history.to_csv(path, index=False)
        logger.info(f"Saved checkpoint history to {path}")
        return path

    def save_stability_report(self, report: Dict[str, Any]) -> Path:
        """Save the multi-seed stability report."""
        path = self.output_dir / "reports" / "stability_report.json"
        self._write_json(path, report)
        logger.info(f"Saved stability report to {path}")
        return path

    def save_optimizer_config(self, config: OptimizerConfig) -> Path:
        path = self.output_dir / "configs" / "optimizer_config.json"
        config.save(str(path))
        return path

    def save_yaml_config(self, config: Dict[str, Any], name: str) -> Path:
        """Save a configuration dictionary as configs/<name>.yaml."""
        path = self.output_dir / "configs" / f"{name}.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, sort_keys=False, allow_unicode=True)
        logger.info(f"Saved config to {path}")
        return path

    def save_metadata(self, metadata: Dict[str, Any]) -> Path:
        path = self.output_dir / "metadata.json"
        self._write_json(path, metadata)
        logger.info(f"Saved run metadata to {path}")
        return path

    def list_artifacts(self) -> Dict[str, List[str]]:
        """List written files per subdirectory."""
        artifacts = {}
        for sub in SUBDIRECTORIES:
            files = sorted(p.name for p in (self.output_dir / sub).iterdir() if p.is_file())
            if files:
                artifacts[sub] = files
        return artifacts

    @staticmethod
    def _write_json(path: Path, data: Dict[str, Any]) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
