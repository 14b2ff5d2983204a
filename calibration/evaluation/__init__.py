"""Penalty evaluation and reporting for calibrated matrices."""

from .penalty import (
    EvaluationResult,
    PenaltyEvaluator,
    evaluate,
    observation_penalty,
    observation_penalties
)
from .metrics import (
    compute_stability_metrics,
    EvaluationReport,
    StabilityMetrics,
    create_evaluation_report
)

__all__ = [
    "EvaluationResult",
    "PenaltyEvaluator",
    "evaluate",
    "observation_penalty",
    "observation_penalties",
    "compute_stability_metrics",
    "EvaluationReport",
    "StabilityMetrics",
    "create_evaluation_report"
]
