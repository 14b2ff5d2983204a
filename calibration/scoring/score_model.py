"""
Compatibility score model.

The score of a pairing is built from matrix lookups between its seven
identities plus fixed and bonus terms:

    score = comb(child, f)
          + min(comb(f, ff), comb(child, ff))
          + min(comb(f, fm), comb(child, fm))
          + comb(child, m)
          + min(comb(m, mf), comb(child, mf))
          + min(comb(m, mm), comb(child, mm))
          + comb(f, m)
          + 224
          + (s2 * 5 + s3 * 12.5)
          + noble

comb(a, b) reads matrix[a][b] and yields 0 for unknown identities,
out-of-range indices or empty (NaN) cells. A pairing with any unknown
identity scores exactly 0.

The terms are summed left to right in this order. The optimizer relies on
the scalar and vectorized implementations producing identical floats, so
both keep that order.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..data_loading.schema import Observation, IDENTITY_FIELDS

logger = logging.getLogger(__name__)

BASE_SCORE = 224
S2_BONUS = 5
S3_BONUS = 12.5

TERM_NAMES = [
    "child_f",
    "paternal_grandsire",
    "paternal_granddam",
    "child_m",
    "maternal_grandsire",
    "maternal_granddam",
    "f_m",
]


def get_comb(matrix, younger: Optional[int], older: Optional[int]) -> float:
    """
    Read one matrix cell, tolerating missing identities and sparse matrices.

    Args:
        matrix: 2D array or nested sequence of compatibility values
        younger: Row index
        older: Column index

    Returns:
        Cell value, or 0 when either index is None or out of range,
        or when the cell is empty
    """
    if younger is None or older is None:
        return 0
    if younger < 0 or younger >= len(matrix):
        return 0
    row = matrix[younger]
    if row is None or older < 0 or older >= len(row):
        return 0
    value = row[older]
    if value is None or value != value:
        return 0
    return float(value)


def calculate_score(
    matrix,
    child_id: Optional[int],
    f: Optional[int],
    ff: Optional[int],
    fm: Optional[int],
    m: Optional[int],
    mf: Optional[int],
    mm: Optional[int],
    s3: int = 0,
    s2: int = 0,
    noble: Optional[float] = None
) -> float:
    """
    Compute the compatibility score of one pairing.

    Args:
        matrix: Compatibility matrix
        child_id, f, ff, fm, m, mf, mm: Identity indices (None if unknown)
        s3: Count of 12.5-point bonuses
        s2: Count of 5-point bonuses
        noble: Optional flat bonus

    Returns:
        Score, or 0 if any identity is unknown
    """
    if any(x is None for x in (child_id, f, ff, fm, m, mf, mm)):
        return 0

    term1 = get_comb(matrix, child_id, f)
    term2 = min(get_comb(matrix, f, ff), get_comb(matrix, child_id, ff))
    term3 = min(get_comb(matrix, f, fm), get_comb(matrix, child_id, fm))
    term4 = get_comb(matrix, child_id, m)
    term5 = min(get_comb(matrix, m, mf), get_comb(matrix, child_id, mf))
    term6 = min(get_comb(matrix, m, mm), get_comb(matrix, child_id, mm))
    term7 = get_comb(matrix, f, m)

    bonus = (s2 or 0) * S2_BONUS + (s3 or 0) * S3_BONUS
    noble_bonus = noble or 0

    return term1 + term2 + term3 + term4 + term5 + term6 + term7 + BASE_SCORE + bonus + noble_bonus


def score_observation(matrix, observation: Observation) -> float:
    """Compute the score of an Observation."""
    return calculate_score(
        matrix,
        observation.child_id, observation.f, observation.ff, observation.fm,
        observation.m, observation.mf, observation.mm,
        observation.s3, observation.s2, observation.noble
    )


def score_breakdown(matrix, observation: Observation) -> Dict[str, float]:
    """
    Break an observation's score into its named terms.

    Returns:
        Dictionary of the seven matrix terms plus 'base', 'bonus', 'noble'
        and 'total'. All terms are 0 for incomplete observations.
    """
    if not observation.is_complete():
        terms = {name: 0.0 for name in TERM_NAMES}
        terms.update({"base": 0.0, "bonus": 0.0, "noble": 0.0, "total": 0.0})
        return terms

    child, f, ff, fm, m, mf, mm = observation.identities
    values = [
        get_comb(matrix, child, f),
        min(get_comb(matrix, f, ff), get_comb(matrix, child, ff)),
        min(get_comb(matrix, f, fm), get_comb(matrix, child, fm)),
        get_comb(matrix, child, m),
        min(get_comb(matrix, m, mf), get_comb(matrix, child, mf)),
        min(get_comb(matrix, m, mm), get_comb(matrix, child, mm)),
        get_comb(matrix, f, m),
    ]
    terms = dict(zip(TERM_NAMES, values))
    terms["base"] = float(BASE_SCORE)
    terms["bonus"] = observation.s2 * S2_BONUS + observation.s3 * S3_BONUS
    terms["noble"] = observation.noble or 0.0
    terms["total"] = score_observation(matrix, observation)
    return terms


@dataclass
class ObservationTable:
    """
    Column-oriented view of a list of observations.

    Built once per optimization run so that every penalty evaluation is a
    handful of vectorized lookups instead of a Python loop.

    Attributes:
        identities: (N, 7) int array of identity indices, -1 where unknown
        complete: (N,) bool mask of observations with all identities known
        bonus: (N,) float array of s2 * 5 + s3 * 12.5
        noble: (N,) float array of noble bonuses (0 where absent)
        symbols: Label symbol of each observation
    """
    identities: np.ndarray
    complete: np.ndarray
    bonus: np.ndarray
    noble: np.ndarray
    symbols: List[str]

    def __len__(self) -> int:
        return len(self.symbols)

    @classmethod
    def from_observations(cls, observations: Sequence[Observation]) -> "ObservationTable":
        """Build the table from a sequence of observations."""
        n = len(observations)
        identities = np.full((n, len(IDENTITY_FIELDS)), -1, dtype=np.int64)
        complete = np.zeros(n, dtype=bool)
        bonus = np.zeros(n, dtype=np.float64)
        noble = np.zeros(n, dtype=np.float64)

        for i, obs in enumerate(observations):
            ids = obs.identities
            complete[i] = obs.is_complete()
            identities[i] = [-1 if x is None else x for x in ids]
            bonus[i] = obs.s2 * S2_BONUS + obs.s3 * S3_BONUS
            noble[i] = obs.noble or 0

        return cls(
            identities=identities,
            complete=complete,
            bonus=bonus,
            noble=noble,
            symbols=[obs.correct_symbol for obs in observations]
        )


def _comb_batch(matrix: np.ndarray, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
    """Vectorized get_comb over index arrays."""
    n_rows, n_cols = matrix.shape
    valid = (rows >= 0) & (rows < n_rows) & (cols >= 0) & (cols < n_cols)
    values = matrix[np.where(valid, rows, 0), np.where(valid, cols, 0)]
    values = np.where(valid, values, 0.0)
    return np.where(np.isnan(values), 0.0, values)


def score_batch(matrix: np.ndarray, table: ObservationTable) -> np.ndarray:
    """
    Compute scores for every observation in a table.

    Args:
        matrix: 2D float array
        table: ObservationTable built from the observations

    Returns:
        (N,) float array, identical to calculate_score() per observation
    """
    if len(table) == 0:
        return np.zeros(0, dtype=np.float64)

    child, f, ff, fm, m, mf, mm = table.identities.T

    term1 = _comb_batch(matrix, child, f)
    term2 = np.minimum(_comb_batch(matrix, f, ff), _comb_batch(matrix, child, ff))
    term3 = np.minimum(_comb_batch(matrix, f, fm), _comb_batch(matrix, child, fm))
    term4 = _comb_batch(matrix, child, m)
    term5 = np.minimum(_comb_batch(matrix, m, mf), _comb_batch(matrix, child, mf))
    term6 = np.minimum(_comb_batch(matrix, m, mm), _comb_batch(matrix, child, mm))
    term7 = _comb_batch(matrix, f, m)

    total = term1 + term2 + term3 + term4 + term5 + term6 + term7 + BASE_SCORE + table.bonus + table.noble
    return np.where(table.complete, total, 0.0)
