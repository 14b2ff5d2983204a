"""Score model for pairings."""

from .score_model import (
    BASE_SCORE,
    get_comb,
    calculate_score,
    score_observation,
    score_breakdown,
    score_batch,
    ObservationTable,
)

__all__ = [
    "BASE_SCORE",
    "get_comb",
    "calculate_score",
    "score_observation",
    "score_breakdown",
    "score_batch",
    "ObservationTable",
]
