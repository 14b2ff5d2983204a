"""
Evaluation reports for calibrated matrices.

A report documents how a matrix classifies the labeled observations:
1. Total penalty and contradiction count
2. Distribution of predicted tiers
3. Labeled vs predicted tier table
4. Stability of the calibration across optimizer seeds

Penalty is the quantity the optimizer minimizes; the other figures exist
to inspect where the remaining contradictions sit.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Sequence
import json

import numpy as np
import pandas as pd
from scipy.stats import spearmanr

from ..data_loading.schema import Observation
from ..tiers.symbols import Tier
from .penalty import EvaluationResult, evaluate, observation_penalties

logger = logging.getLogger(__name__)


@dataclass
class StabilityMetrics:
    """Stability metrics across multiple optimizer runs."""
    n_runs: int
    penalty_mean: float
    penalty_std: float
    contradictions_mean: float
    drift_std_mean: float  # Mean per-cell std of final values across runs
    drift_spearman_mean: float  # Mean Spearman correlation of cell drifts between runs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_runs": int(self.n_runs),
            "penalty_mean": float(self.penalty_mean),
            "penalty_std": float(self.penalty_std),
            "contradictions_mean": float(self.contradictions_mean),
            "drift_std_mean": float(self.drift_std_mean),
            "drift_spearman_mean": float(self.drift_spearman_mean)
        }


@dataclass
class EvaluationReport:
    """
    Evaluation report for one matrix over one observation set.

    Attributes:
        name: Label for the evaluated matrix (e.g. "initial", "calibrated")
        evaluation: Aggregate penalty and contradictions
        n_observations: Number of observations evaluated
        n_skipped: Observations with an unknown label
        tier_distribution: Count of observations per predicted tier
        confusion: Labeled tier (rows) vs predicted tier (columns) counts
        diagnostics: Per-observation scores and penalties
    """
    name: str
    evaluation: EvaluationResult
    n_observations: int
    n_skipped: int
    tier_distribution: Dict[str, int]
    confusion: pd.DataFrame
    diagnostics: pd.DataFrame
    stability_metrics: Optional[StabilityMetrics] = None
    additional_metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def accuracy(self) -> float:
        """Share of labeled observations without contradiction."""
        n_labeled = self.n_observations - self.n_skipped
        if n_labeled == 0:
            return 1.0
        return 1.0 - self.evaluation.contradictions / n_labeled

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "evaluation": self.evaluation.to_dict(),
            "n_observations": self.n_observations,
            "n_skipped": self.n_skipped,
            "accuracy": self.accuracy,
            "tier_distribution": self.tier_distribution,
            "confusion": {
                str(label): {str(k): int(v) for k, v in row.items()}
                for label, row in self.confusion.to_dict(orient="index").items()
            },
            "additional_metrics": self.additional_metrics
        }
        if self.stability_metrics:
            result["stability_metrics"] = self.stability_metrics.to_dict()
        return result

    def save(self, filepath: str) -> None:
        """Save report to JSON file."""
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Saved evaluation report to {filepath}")

    def summary(self) -> str:
        """Generate text summary of the report."""
        lines = [
            f"Evaluation Report: {self.name}",
            "=" * 50,
            "",
            f"Observations: {self.n_observations} ({self.n_skipped} skipped)",
            f"Penalty:        {self.evaluation.penalty:.4f}",
            f"Contradictions: {self.evaluation.contradictions}",
            f"Accuracy:       {self.accuracy:.2%}",
            "",
            "Predicted Tiers:",
        ]

        for symbol, count in self.tier_distribution.items():
            lines.append(f"  {symbol}: {count}")

        if self.stability_metrics:
            lines.extend([
                "",
                f"Stability Metrics ({self.stability_metrics.n_runs} runs):",
                f"  Penalty: {self.stability_metrics.penalty_mean:.4f} "
                f"+/- {self.stability_metrics.penalty_std:.4f}",
                f"  Contradictions (mean): {self.stability_metrics.contradictions_mean:.2f}",
                f"  Cell drift std (mean): {self.stability_metrics.drift_std_mean:.4f}",
                f"  Drift Spearman: {self.stability_metrics.drift_spearman_mean:.4f}",
            ])

        return "\n".join(lines)


def compute_tier_distribution(diagnostics: pd.DataFrame) -> Dict[str, int]:
    """Count predicted tiers from highest to lowest, including empty tiers."""
    order = [tier.value for tier in sorted(Tier, key=lambda t: t.rank, reverse=True)]
    if diagnostics.empty:
        return {symbol: 0 for symbol in order}
    counts = diagnostics["predicted_symbol"].value_counts()
    return {symbol: int(counts.get(symbol, 0)) for symbol in order}


def compute_confusion(diagnostics: pd.DataFrame) -> pd.DataFrame:
    """Labeled vs predicted tier counts, for observations with known labels."""
    if diagnostics.empty:
        return pd.DataFrame()
    labeled = diagnostics[diagnostics["penalty"].notna()]
    return pd.crosstab(labeled["correctSymbol"], labeled["predicted_symbol"])


def compute_stability_metrics(
    run_matrices: List[np.ndarray],
    run_evaluations: List[EvaluationResult],
    base_matrix: np.ndarray
) -> StabilityMetrics:
    """
    Compute stability metrics across multiple optimizer runs.

    Args:
        run_matrices: Calibrated matrices from different seeds
        run_evaluations: Evaluation of each calibrated matrix
        base_matrix: Matrix every run started from

    Returns:
        StabilityMetrics instance
    """
    n_runs = len(run_matrices)
    penalties = np.array([e.penalty for e in run_evaluations], dtype=float)
    contradictions = np.array([e.contradictions for e in run_evaluations], dtype=float)

    if n_runs < 2:
        logger.warning("Need at least 2 runs for stability analysis")
        return StabilityMetrics(
            n_runs=n_runs,
            penalty_mean=float(penalties.mean()) if n_runs else 0.0,
            penalty_std=0.0,
            contradictions_mean=float(contradictions.mean()) if n_runs else 0.0,
            drift_std_mean=0.0,
            drift_spearman_mean=1.0
        )

    stacked = np.stack(run_matrices)  # (n_runs, rows, cols)
    drift_std_mean = float(np.std(stacked, axis=0).mean())

    # Pairwise rank agreement of how far each run moved each cell
    drifts = [(m - base_matrix).ravel() for m in run_matrices]
    spearman_scores = []
    for i in range(n_runs):
        for j in range(i + 1, n_runs):
            if np.ptp(drifts[i]) == 0 or np.ptp(drifts[j]) == 0:
                continue
            corr, _ = spearmanr(drifts[i], drifts[j])
            spearman_scores.append(corr)

    return StabilityMetrics(
        n_runs=n_runs,
        penalty_mean=float(penalties.mean()),
        penalty_std=float(penalties.std()),
        contradictions_mean=float(contradictions.mean()),
        drift_std_mean=drift_std_mean,
        drift_spearman_mean=float(np.mean(spearman_scores)) if spearman_scores else 0.0
    )


def create_evaluation_report(
    name: str,
    matrix,
    observations: Sequence[Observation],
    stability: Optional[StabilityMetrics] = None
) -> EvaluationReport:
    """
    Create a complete evaluation report.

    Args:
        name: Label for the evaluated matrix
        matrix: Compatibility matrix
        observations: Labeled observations
        stability: Optional stability metrics from multi-seed runs

    Returns:
        EvaluationReport instance
    """
    diagnostics = observation_penalties(matrix, observations)
    n_skipped = int(diagnostics["penalty"].isna().sum()) if not diagnostics.empty else 0

    return EvaluationReport(
        name=name,
        evaluation=evaluate(matrix, observations),
        n_observations=len(observations),
        n_skipped=n_skipped,
        tier_distribution=compute_tier_distribution(diagnostics),
        confusion=compute_confusion(diagnostics),
        diagnostics=diagnostics,
        stability_metrics=stability
    )
