"""
Data loading functions for the calibration pipeline.

This module reads and writes compatibility matrices and imports labeled
observations from CSV files. Persistent observation storage is handled
by the store module.
"""

import logging
from pathlib import Path
from typing import List

import numpy as np
import pandas as pd

from .schema import Observation, IDENTITY_FIELDS

logger = logging.getLogger(__name__)

OBSERVATION_COLUMNS = list(IDENTITY_FIELDS) + ["s3", "s2", "correct_symbol"]


def load_matrix(filepath: str, delimiter: str = ",") -> np.ndarray:
    """
    Load a compatibility matrix from a headerless CSV file.

    Row i holds the values for younger identity i, column j for older
    identity j. Short rows are padded, and empty cells read as 0.

    Args:
        filepath: Path to the matrix file
        delimiter: Field delimiter (default: comma)

    Returns:
        2D float array

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Matrix file not found: {filepath}")

    logger.info(f"Loading matrix from {filepath} (delimiter: {repr(delimiter)})")
    try:
        df = pd.read_csv(filepath, sep=delimiter, header=None)
    except pd.errors.EmptyDataError:
        raise ValueError(f"Matrix file is empty: {filepath}")

    if df.empty:
        raise ValueError(f"Matrix file is empty: {filepath}")

    n_missing = int(df.isna().sum().sum())
    if n_missing:
        logger.warning(f"Matrix has {n_missing} empty cells, treating them as 0")

    matrix = df.fillna(0).to_numpy(dtype=np.float64)
    logger.info(f"Loaded matrix with shape {matrix.shape}")
    return matrix


def save_matrix(matrix: np.ndarray, filepath: str, delimiter: str = ",") -> None:
    """Write a matrix as a headerless CSV file."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(np.asarray(matrix)).to_csv(path, sep=delimiter, header=False, index=False)
    logger.info(f"Saved matrix with shape {np.asarray(matrix).shape} to {filepath}")


def load_observations_csv(filepath: str, delimiter: str = ",") -> List[Observation]:
    """
    Import labeled observations from CSV.

    The file needs a header with the identity columns (child_id or childId,
    f, ff, fm, m, mf, mm), s3, s2 and the label (correct_symbol or
    correctSymbol). A noble column is optional. Empty identity cells are
    read as unknown identities.

    Args:
        filepath: Path to the CSV file
        delimiter: Field delimiter (default: comma)

    Returns:
        List of observations in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If required columns are missing
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Observation file not found: {filepath}")

    logger.info(f"Loading observations from {filepath}")
    df = pd.read_csv(filepath, sep=delimiter, dtype={"correct_symbol": str, "correctSymbol": str})
    df = df.rename(columns={"childId": "child_id", "correctSymbol": "correct_symbol"})

    missing = validate_observation_columns(df)
    if missing:
        raise ValueError(f"Observation file is missing columns: {missing}")

    observations = [Observation.from_dict(record) for record in df.to_dict(orient="records")]
    logger.info(f"Loaded {len(observations)} observations")
    return observations


def validate_observation_columns(df: pd.DataFrame) -> List[str]:
    """
    Check that all required observation columns are present.

    Returns:
        List of missing column names (empty if all present)
    """
    return [col for col in OBSERVATION_COLUMNS if col not in df.columns]
