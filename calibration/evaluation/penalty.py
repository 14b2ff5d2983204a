"""
Penalty evaluation of a matrix against labeled observations.

For each observation the score is compared with the range of its labeled
tier:

    top tier:    penalty = (660 - score)^2 if score < 660 else 0
    other tiers: penalty = (min - score)^2 if score < min
                           (score - max)^2 if score > max
                           0 otherwise

Each penalized observation is one contradiction. Observations with an
unknown label are skipped entirely.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Sequence

import numpy as np
import pandas as pd

from ..data_loading.schema import Observation
from ..scoring.score_model import ObservationTable, score_batch, score_observation
from ..tiers.symbols import Tier, TOP_TIER_MIN, classify, get_range

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationResult:
    """Aggregate penalty of one matrix over an observation set."""
    penalty: float
    contradictions: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def observation_penalty(score: float, symbol: str):
    """
    Penalty of one score against a labeled symbol.

    Returns:
        Squared out-of-range distance, or None if the symbol is unknown
    """
    if symbol == Tier.CROWN.value:
        if score < TOP_TIER_MIN:
            return (TOP_TIER_MIN - score) ** 2
        return 0

    target_range = get_range(symbol)
    if target_range is None:
        return None

    return target_range.distance(score) ** 2


def evaluate(matrix, observations: Sequence[Observation]) -> EvaluationResult:
    """
    Evaluate a matrix against observations one at a time.

    Args:
        matrix: Compatibility matrix
        observations: Labeled observations

    Returns:
        EvaluationResult with total penalty and contradiction count
    """
    total_penalty = 0
    contradiction_count = 0

    for obs in observations:
        score = score_observation(matrix, obs)
        penalty = observation_penalty(score, obs.correct_symbol)
        if penalty is None:
            continue
        if penalty > 0:
            total_penalty += penalty
            contradiction_count += 1

    return EvaluationResult(penalty=float(total_penalty), contradictions=contradiction_count)


class PenaltyEvaluator:
    """
    Vectorized penalty evaluation over a fixed observation set.

    The lower and upper bound of every observation's tier are resolved once
    at construction. Observations with unknown labels get a NaN lower bound
    and are masked out.

    Attributes:
        table: ObservationTable of the observations
        known: Mask of observations whose label has a range
    """

    def __init__(self, observations: Sequence[Observation]):
        self.table = ObservationTable.from_observations(observations)

        n = len(self.table)
        self._lower = np.full(n, np.nan)
        self._upper = np.full(n, np.inf)
        for i, symbol in enumerate(self.table.symbols):
            if symbol == Tier.CROWN.value:
                self._lower[i] = TOP_TIER_MIN
                continue
            target_range = get_range(symbol)
            if target_range is not None:
                self._lower[i] = target_range.min
                self._upper[i] = target_range.max

        self.known = ~np.isnan(self._lower)
        n_unknown = int(n - self.known.sum())
        if n_unknown:
            logger.warning(f"Skipping {n_unknown} observations with unknown labels")

    def penalties(self, matrix: np.ndarray) -> np.ndarray:
        """Per-observation penalties (0 for skipped observations)."""
        scores = score_batch(matrix, self.table)
        lower = np.where(self.known, self._lower, 0.0)
        below = np.where(scores < lower, (lower - scores) ** 2, 0.0)
        above = np.where(scores > self._upper, (scores - self._upper) ** 2, 0.0)
        return np.where(self.known, below + above, 0.0)

    def evaluate(self, matrix: np.ndarray) -> EvaluationResult:
        """Evaluate a matrix against the fixed observation set."""
        penalties = self.penalties(matrix)
        # Observation order, matching evaluate()
        return EvaluationResult(
            penalty=float(sum(penalties.tolist())),
            contradictions=int(np.count_nonzero(penalties > 0))
        )


def observation_penalties(matrix, observations: Sequence[Observation]) -> pd.DataFrame:
    """
    Per-observation diagnostics.

    Returns:
        DataFrame with one row per observation: identities, label, score,
        predicted symbol, penalty (NaN for unknown labels) and a
        contradiction flag
    """
    rows = []
    for obs in observations:
        score = score_observation(matrix, obs)
        penalty = observation_penalty(score, obs.correct_symbol)
        rows.append({
            **obs.to_dict(),
            "score": float(score),
            "predicted_symbol": classify(score),
            "penalty": np.nan if penalty is None else float(penalty),
            "contradiction": bool(penalty),
        })
    return pd.DataFrame(rows)
