"""
Smoke test for calibration data.

This script validates that:
1. The configured matrix loads and is a usable compatibility table
2. The observation store and CSV import load
3. Every observation references identities inside the matrix
4. The initial matrix scores and evaluates without errors

Usage:
    python scripts/smoke_test.py [--config configs/config.yaml]
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import logging
import numpy as np

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def run_smoke_test(config_path: str) -> int:
    """Run smoke tests on the configured matrix and observations."""

    logger.info("=" * 60)
    logger.info("SMOKE TEST: Calibration Data")
    logger.info("=" * 60)

    from calibration.configs import load_config, validate_config
    from calibration.data_loading import (
        load_matrix,
        load_observations_csv,
        ObservationStore,
        JsonFileStorage,
        STORAGE_KEY,
    )
    from calibration.evaluation import create_evaluation_report

    config = load_config(config_path)
    for issue in validate_config(config):
        logger.warning(f"Config issue: {issue}")

    results = {"matrix": {}, "observations": {}, "evaluation": {}}
    matrix = None
    observations = []

    # =========================================================================
    # Test matrix
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 1: Compatibility Matrix")
    logger.info("=" * 60)

    try:
        matrix_config = config["data"]["matrix"]
        matrix = load_matrix(str(project_root / matrix_config["path"]),
                             delimiter=matrix_config.get("delimiter", ","))

        logger.info(f"  Shape: {matrix.shape}")
        logger.info(f"  Value range: [{matrix.min():.2f}, {matrix.max():.2f}]")
        if np.any(matrix < 0):
            results["matrix"]["status"] = "FAILED - negative entries"
        elif matrix.shape[0] != matrix.shape[1]:
            logger.warning("  Matrix is not square; identities are truncated to the shorter side")
            results["matrix"]["status"] = "PASSED"
        else:
            results["matrix"]["status"] = "PASSED"

    except Exception as e:
        logger.error(f"  MATRIX TEST FAILED: {e}")
        results["matrix"]["status"] = f"FAILED - {e}"

    # =========================================================================
    # Test observations
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 2: Observations")
    logger.info("=" * 60)

    try:
        obs_config = config["data"]["observations"]
        store = ObservationStore(
            JsonFileStorage(str(project_root / obs_config["storage_path"])),
            key=obs_config.get("storage_key", STORAGE_KEY)
        )
        observations = store.list()
        logger.info(f"  Stored observations: {len(observations)}")

        if obs_config.get("import_csv"):
            imported = load_observations_csv(str(project_root / obs_config["import_csv"]))
            logger.info(f"  CSV observations: {len(imported)}")
            observations = observations + imported

        incomplete = sum(1 for obs in observations if not obs.is_complete())
        logger.info(f"  Incomplete pairings (score 0): {incomplete}")

        if matrix is not None:
            n = min(matrix.shape)
            out_of_range = [
                obs for obs in observations
                if any(x is not None and not 0 <= x < n for x in obs.identities)
            ]
            if out_of_range:
                logger.warning(f"  {len(out_of_range)} observations reference identities "
                               f"outside the matrix")

        results["observations"]["status"] = "PASSED"

    except Exception as e:
        logger.error(f"  OBSERVATION TEST FAILED: {e}")
        results["observations"]["status"] = f"FAILED - {e}"

    # =========================================================================
    # Test evaluation
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 3: Initial Evaluation")
    logger.info("=" * 60)

    if matrix is None:
        results["evaluation"]["status"] = "NOT RUN"
    else:
        try:
            report = create_evaluation_report("smoke", matrix, observations)
            logger.info("\n" + report.summary())
            results["evaluation"]["status"] = "PASSED"
        except Exception as e:
            logger.error(f"  EVALUATION TEST FAILED: {e}")
            results["evaluation"]["status"] = f"FAILED - {e}"

    # =========================================================================
    # Summary
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("SMOKE TEST SUMMARY")
    logger.info("=" * 60)

    all_passed = True
    for name, result in results.items():
        status = result.get("status", "UNKNOWN")
        logger.info(f"  {name.upper()}: {status}")
        if status != "PASSED":
            all_passed = False

    if all_passed:
        logger.info("\n  ALL TESTS PASSED")
        return 0
    else:
        logger.error("\n  SOME TESTS FAILED")
        return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Smoke test calibration data")
    parser.add_argument("--config", type=str, default=str(project_root / "configs" / "config.yaml"))
    args = parser.parse_args()
    sys.exit(run_smoke_test(args.config))
