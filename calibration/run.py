"""
Main runner for compatibility matrix calibration.

This is the single entrypoint for running a calibration.

Usage:
    python -m calibration.run --config configs/config.yaml

The runner performs the following steps:
1. Load the hand-authored matrix
2. Load labeled observations (store plus optional CSV import)
3. Evaluate the initial matrix
4. Run the local search optimizer (once per seed)
5. Evaluate the calibrated matrix and the stability across seeds
6. Save all artifacts
"""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple

import numpy as np

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging level from config."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def run_calibration(
    config_path: str,
    single_seed: Optional[int] = None,
    iterations: Optional[int] = None,
    output_dir: Optional[str] = None
) -> Dict[str, Any]:
    """
    Run a complete calibration.

    Args:
        config_path: Path to the configuration YAML file
        single_seed: If provided, run only with this seed (skip stability analysis)
        iterations: If provided, overrides optimization.iterations
        output_dir: If provided, write artifacts to this directory instead of config default

    Returns:
        Dictionary with run results and paths to artifacts
    """
    from .configs import load_config, validate_config
    from .data_loading import (
        load_matrix,
        load_observations_csv,
        ObservationStore,
        JsonFileStorage,
        STORAGE_KEY,
    )
    from .optimization import CompatibilityOptimizer, OptimizerConfig
    from .evaluation import create_evaluation_report, compute_stability_metrics
    from .artifacts import ArtifactManager

    # =========================================================================
    # 1. Load and validate configuration
    # =========================================================================
    logger.info("=" * 60)
    logger.info("COMPATIBILITY MATRIX CALIBRATION")
    logger.info("=" * 60)

    config = load_config(config_path)
    issues = validate_config(config)
    if issues:
        for issue in issues:
            logger.warning(f"Config issue: {issue}")

    setup_logging(config.get("global", {}).get("log_level", "INFO"))

    base_seed = config.get("global", {}).get("random_seed", 42)
    if single_seed is not None:
        seeds = [single_seed]
        logger.info(f"Running with single seed: {single_seed}")
    else:
        seeds = config.get("evaluation", {}).get("stability_seeds") or [base_seed]
        logger.info(f"Running stability analysis with seeds: {seeds}")

    optimizer_config = OptimizerConfig.from_config(config)
    if iterations is not None:
        optimizer_config = replace(optimizer_config, iterations=iterations)
    optimizer_config.validate()
    priority_indices = config.get("optimization", {}).get("priority_indices", []) or []

    effective_output_dir = output_dir or config.get("global", {}).get("output_dir", "artifacts")
    artifact_manager = ArtifactManager(effective_output_dir)

    # =========================================================================
    # 2. Load data
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("STEP 1: Loading Data")
    logger.info("=" * 60)

    matrix_config = config.get("data", {}).get("matrix", {})
    observation_config = config.get("data", {}).get("observations", {})

    try:
        matrix = load_matrix(matrix_config["path"], delimiter=matrix_config.get("delimiter", ","))
        store = ObservationStore(
            JsonFileStorage(observation_config.get("storage_path", "data/observations.json")),
            key=observation_config.get("storage_key", STORAGE_KEY)
        )
        import_path = observation_config.get("import_csv")
        if import_path:
            try:
                store.add_many(load_observations_csv(import_path))
            except FileNotFoundError as e:
                logger.warning(f"Observation import skipped: {e}")
        observations = store.list()
    except (KeyError, FileNotFoundError) as e:
        logger.error(f"Matrix data not found: {e}")
        logger.info("Creating synthetic matrix and observations for demonstration...")
        matrix, observations = _create_synthetic_data(base_seed)

    logger.info(f"Matrix shape: {matrix.shape}, observations: {len(observations)}")
    if not observations:
        logger.warning("No observations available; the matrix will be left unchanged")

    # =========================================================================
    # 3. Initial evaluation
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("STEP 2: Initial Evaluation")
    logger.info("=" * 60)

    initial_report = create_evaluation_report("initial", matrix, observations)
    artifact_manager.save_evaluation_report(initial_report, "initial")
    logger.info("\n" + initial_report.summary())

    # =========================================================================
    # 4. Optimize for each seed
    # =========================================================================
    run_results = []

    for seed_idx, seed in enumerate(seeds):
        logger.info("\n" + "=" * 60)
        logger.info(f"OPTIMIZATION RUN {seed_idx + 1}/{len(seeds)} (seed={seed})")
        logger.info("=" * 60)

        optimizer = CompatibilityOptimizer(matrix, config=replace(optimizer_config, random_seed=seed))
        result = optimizer.optimize(
            observations,
            priority_indices=priority_indices,
            on_progress=_log_progress
        )
        run_results.append(result)
        artifact_manager.save_history(result.history, f"seed_{seed}")

    # =========================================================================
    # 5. Evaluation and stability analysis
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("STEP 3: Evaluation and Stability Analysis")
    logger.info("=" * 60)

    best_idx = int(np.argmin([r.evaluation.penalty for r in run_results]))
    best_result = run_results[best_idx]
    logger.info(f"Best run: seed={seeds[best_idx]}, penalty={best_result.evaluation.penalty:.4f}")

    stability = None
    if len(seeds) > 1:
        stability = compute_stability_metrics(
            [r.matrix for r in run_results],
            [r.evaluation for r in run_results],
            matrix
        )
        artifact_manager.save_stability_report({
            "n_seeds": len(seeds),
            "seeds_used": seeds,
            "stability": stability.to_dict(),
            "runs": [dict(seed=s, **r.summary()) for s, r in zip(seeds, run_results)]
        })

    calibrated_report = create_evaluation_report(
        "calibrated", best_result.matrix, observations, stability=stability
    )
    calibrated_report.additional_metrics = best_result.summary()
    artifact_manager.save_evaluation_report(calibrated_report, "calibrated")
    artifact_manager.save_matrix(best_result.matrix, "calibrated")
    logger.info("\n" + calibrated_report.summary())

    # =========================================================================
    # 6. Save metadata
    # =========================================================================
    metadata = {
        "calibration_version": "1.0.0",
        "run_timestamp": datetime.now().isoformat(),
        "config_path": config_path,
        "seeds_used": seeds,
        "best_seed": seeds[best_idx],
        "matrix_shape": list(matrix.shape),
        "n_observations": len(observations),
        "initial_penalty": initial_report.evaluation.penalty,
        "final_penalty": best_result.evaluation.penalty
    }
    artifact_manager.save_metadata(metadata)
    artifact_manager.save_optimizer_config(replace(optimizer_config, random_seed=seeds[best_idx]))
    artifact_manager.save_yaml_config(config, "config_used")

    # =========================================================================
    # Summary
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("CALIBRATION COMPLETE")
    logger.info("=" * 60)

    artifacts = artifact_manager.list_artifacts()
    logger.info("\nArtifacts saved:")
    for category, files in artifacts.items():
        logger.info(f"  {category}/")
        for f in files:
            logger.info(f"    - {f}")

    return {
        "success": True,
        "output_dir": str(artifact_manager.output_dir),
        "artifacts": artifacts,
        "metadata": metadata,
        "matrix": best_result.matrix,
        "evaluation": best_result.evaluation
    }


def _log_progress(iteration: int, total: int, evaluation) -> None:
    logger.info(f"  [{iteration}/{total}] penalty={evaluation.penalty:.4f}, "
                f"contradictions={evaluation.contradictions}")


def _create_synthetic_data(seed: int) -> Tuple[np.ndarray, List]:
    """Create a synthetic matrix and labeled observations for demonstration."""
    from .data_loading import Observation
    from .scoring import calculate_score
    from .tiers import classify

    n_identities = 12
    n_observations = 60
    rng = np.random.RandomState(seed)

    matrix = rng.uniform(0, 30, size=(n_identities, n_identities)).round(1)
    # A hidden "true" matrix labels the observations
    truth = np.clip(matrix + rng.normal(0, 8, size=matrix.shape), 0, None)

    observations = []
    for _ in range(n_observations):
        ids = [int(x) for x in rng.randint(0, n_identities, size=7)]
        s3, s2 = int(rng.randint(0, 4)), int(rng.randint(0, 6))
        score = calculate_score(truth, *ids, s3, s2)
        observations.append(Observation(*ids, s3=s3, s2=s2, correct_symbol=classify(score)))

    logger.info(f"Created synthetic data: {n_identities}x{n_identities} matrix, "
                f"{n_observations} observations")
    return matrix, observations


def main():
    """Main entry point for the calibration runner."""
    parser = argparse.ArgumentParser(
        description="Calibrate a compatibility matrix against labeled observations"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/config.yaml",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Run with a single seed (skip stability analysis)"
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Number of optimizer iterations (overrides config)"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Output directory for artifacts (overrides config)"
    )

    args = parser.parse_args()

    try:
        result = run_calibration(
            args.config,
            single_seed=args.seed,
            iterations=args.iterations,
            output_dir=args.output_dir
        )
        if result["success"]:
            logger.info("\nCalibration completed successfully!")
            return 0
        else:
            logger.error("\nCalibration failed!")
            return 1
    except Exception as e:
        logger.exception(f"Calibration failed with error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
