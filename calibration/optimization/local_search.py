"""
Constrained local search over compatibility matrix cells.

The optimizer adjusts one matrix cell at a time to reduce the tier
penalty of the labeled observations.

Algorithm (greedy hill-climbing with a motion limit):
    1. Pick a cell. During the priority phase (first half of the run),
       with probability 0.8 the row or column is pinned to a random
       priority index; otherwise the cell is uniform.
    2. Propose value + step_size * (+1 or -1), floored at 0.
    3. Keep the value within motion_limit of the cell's ORIGINAL value:
       moves that leave the window further than the current value already
       is are rejected, other out-of-window moves are clamped to it.
    4. Re-evaluate the full penalty. Keep the move if the penalty did not
       increase, revert the cell otherwise. Strict improvements snapshot
       the best matrix.
    5. Every progress_interval iterations, report progress and check for
       a stop request.

Key Design Decisions:
- The hand-authored matrix is a trusted prior, hence the motion limit
- Ties are accepted so the search can drift across plateaus
- The best matrix is tracked separately, so the result never has a
  higher penalty than the starting matrix
- All randomness comes from one injected RandomState
"""

import logging
import numbers
from dataclasses import dataclass, asdict, field
from typing import Dict, Any, Optional, Sequence, Callable, List, Tuple
import json

import numpy as np
import pandas as pd

from ..data_loading.schema import Observation
from ..evaluation.penalty import EvaluationResult, PenaltyEvaluator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, EvaluationResult], None]
StopCallback = Callable[[], bool]


@dataclass
class OptimizerConfig:
    """
    Configuration for the local search optimizer.

    Attributes:
        iterations: Default number of iterations per run
        step_size: Default perturbation size
        motion_limit: Maximum distance of a cell from its original value
        priority_phase_fraction: Share of the run that favors priority indices
        priority_probability: Chance of a priority-pinned cell during that phase
        progress_interval: Iterations between progress checkpoints
        random_seed: Seed for the default random source (None for unseeded)
    """
    iterations: int = 1000
    step_size: float = 0.5
    motion_limit: float = 20.0
    priority_phase_fraction: float = 0.5
    priority_probability: float = 0.8
    progress_interval: int = 50
    random_seed: Optional[int] = 42

    def validate(self) -> None:
        """Validate configuration values."""
        if self.iterations < 0:
            raise ValueError(f"iterations must be >= 0, got {self.iterations}")
        if self.step_size <= 0:
            raise ValueError(f"step_size must be > 0, got {self.step_size}")
        if self.motion_limit < 0:
            raise ValueError(f"motion_limit must be >= 0, got {self.motion_limit}")
        if not 0 <= self.priority_phase_fraction <= 1:
            raise ValueError(
                f"priority_phase_fraction must be in [0, 1], got {self.priority_phase_fraction}"
            )
        if not 0 <= self.priority_probability <= 1:
            raise ValueError(
                f"priority_probability must be in [0, 1], got {self.priority_probability}"
            )
        if self.progress_interval <= 0:
            raise ValueError(f"progress_interval must be > 0, got {self.progress_interval}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OptimizerConfig":
        """Create from dictionary."""
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "OptimizerConfig":
        """Create from main config dictionary."""
        opt_config = config.get("optimization", {})

        return cls(
            iterations=opt_config.get("iterations", 1000),
            step_size=opt_config.get("step_size", 0.5),
            motion_limit=opt_config.get("motion_limit", 20.0),
            priority_phase_fraction=opt_config.get("priority_phase_fraction", 0.5),
            priority_probability=opt_config.get("priority_probability", 0.8),
            progress_interval=opt_config.get("progress_interval", 50),
            random_seed=config.get("global", {}).get("random_seed", 42)
        )

    def save(self, filepath: str) -> None:
        """Save to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved optimizer config to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "OptimizerConfig":
        """Load from JSON file."""
        with open(filepath, "r") as f:
            d = json.load(f)
        return cls.from_dict(d)


@dataclass
class OptimizationResult:
    """
    Outcome of one optimizer run.

    Attributes:
        matrix: Best matrix found
        evaluation: Evaluation of the best matrix
        initial_evaluation: Evaluation of the starting matrix
        iterations_completed: Iterations run before finishing or stopping
        n_evaluated: Trials that were applied and evaluated
        n_accepted: Evaluated trials that were kept
        n_motion_rejected: Trials rejected by the motion limit
        stopped_early: True if a stop request ended the run
        history: One row per progress checkpoint
    """
    matrix: np.ndarray
    evaluation: EvaluationResult
    initial_evaluation: EvaluationResult
    iterations_completed: int = 0
    n_evaluated: int = 0
    n_accepted: int = 0
    n_motion_rejected: int = 0
    stopped_early: bool = False
    history: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def improvement(self) -> float:
        """Penalty reduction relative to the starting matrix."""
        return self.initial_evaluation.penalty - self.evaluation.penalty

    def summary(self) -> Dict[str, Any]:
        """Run statistics as a flat dictionary."""
        return {
            "initial_penalty": self.initial_evaluation.penalty,
            "initial_contradictions": self.initial_evaluation.contradictions,
            "final_penalty": self.evaluation.penalty,
            "final_contradictions": self.evaluation.contradictions,
            "improvement": self.improvement,
            "iterations_completed": self.iterations_completed,
            "n_evaluated": self.n_evaluated,
            "n_accepted": self.n_accepted,
            "n_motion_rejected": self.n_motion_rejected,
            "stopped_early": self.stopped_early
        }


def _as_matrix(matrix) -> np.ndarray:
    """Copy a matrix into a validated 2D float array."""
    array = np.array(matrix, dtype=np.float64)
    if array.ndim != 2 or array.size == 0:
        raise ValueError(f"Matrix must be a non-empty 2D table, got shape {array.shape}")
    if not np.all(np.isfinite(array)):
        raise ValueError("Matrix entries must be finite")
    if np.any(array < 0):
        raise ValueError("Matrix entries must be non-negative")
    return array


class CompatibilityOptimizer:
    """
    Local search optimizer for a compatibility matrix.

    The matrix given at construction is copied twice: once as the fixed
    reference for the motion limit, once as the working matrix. Each call
    to optimize() starts from the working matrix and replaces it with the
    best matrix found, so successive calls refine the same calibration.

    Attributes:
        original_matrix: Hand-authored matrix, never modified
        matrix: Current calibrated matrix
        config: OptimizerConfig with search parameters
    """

    def __init__(self, initial_matrix, config: Optional[OptimizerConfig] = None):
        """
        Initialize the optimizer.

        Args:
            initial_matrix: 2D table of non-negative compatibility values
            config: Optional OptimizerConfig (defaults if omitted)

        Raises:
            ValueError: If the matrix is empty, ragged, negative or non-finite
        """
        self.original_matrix = _as_matrix(initial_matrix)
        self.original_matrix.setflags(write=False)
        self.matrix = self.original_matrix.copy()
        self.config = config or OptimizerConfig()
        self.config.validate()

        logger.info(f"Initialized CompatibilityOptimizer with matrix shape {self.matrix.shape}, "
                    f"motion_limit={self.config.motion_limit}")

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    def reset(self) -> None:
        """Discard calibration progress and restart from the original matrix."""
        self.matrix = self.original_matrix.copy()

    def motion_window(self, row: int, col: int) -> Tuple[float, float]:
        """Allowed [min, max] range for a cell."""
        base = self.original_matrix[row, col]
        return max(0.0, base - self.config.motion_limit), base + self.config.motion_limit

    def _filter_priority_indices(self, priority_indices: Sequence[int]) -> List[int]:
        n_rows, n_cols = self.matrix.shape
        limit = min(n_rows, n_cols)
        valid, dropped = [], []
        for p in priority_indices:
            if isinstance(p, numbers.Integral) and not isinstance(p, bool) and 0 <= p < limit:
                valid.append(int(p))
            else:
                dropped.append(p)
        if dropped:
            logger.warning(f"Ignoring priority indices that are not integers inside the matrix: {dropped}")
        return valid

    def _select_cell(
        self,
        rng: np.random.RandomState,
        priority: List[int],
        use_priority: bool
    ) -> Tuple[int, int]:
        n_rows, n_cols = self.matrix.shape

        if use_priority and rng.random_sample() < self.config.priority_probability:
            pinned = priority[int(rng.random_sample() * len(priority))]
            if rng.random_sample() < 0.5:
                return pinned, int(rng.random_sample() * n_cols)
            return int(rng.random_sample() * n_rows), pinned

        return int(rng.random_sample() * n_rows), int(rng.random_sample() * n_cols)

    def _propose(
        self,
        current: np.ndarray,
        row: int,
        col: int,
        step_size: float,
        rng: np.random.RandomState
    ) -> Optional[float]:
        """
        Propose a new value for one cell.

        Returns:
            The new value, or None if the motion limit rejects the move
        """
        value = current[row, col]
        sign = -1 if rng.random_sample() < 0.5 else 1
        new_value = max(0.0, value + sign * step_size)

        min_limit, max_limit = self.motion_window(row, col)
        if new_value < min_limit:
            if new_value < value:
                return None
            return min_limit
        if new_value > max_limit:
            if new_value > value:
                return None
            return max_limit
        return new_value

    def optimize(
        self,
        observations: Sequence[Observation],
        iterations: Optional[int] = None,
        step_size: Optional[float] = None,
        priority_indices: Sequence[int] = (),
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopCallback] = None,
        rng: Optional[np.random.RandomState] = None
    ) -> OptimizationResult:
        """
        Run the local search from the current working matrix.

        Args:
            observations: Labeled observations to calibrate against
            iterations: Number of iterations (config default if None)
            step_size: Perturbation size (config default if None)
            priority_indices: Identity indices to focus on in the first phase
            on_progress: Called as on_progress(i, iterations, current_eval)
                at every checkpoint, including iteration 0 and checkpoints
                whose move was rejected by the motion limit
            should_stop: Called after on_progress at every checkpoint; a true
                return ends the run with the best matrix so far
            rng: Random source (a RandomState seeded from config if None)

        Returns:
            OptimizationResult with the best matrix and its evaluation
        """
        iterations = self.config.iterations if iterations is None else iterations
        step_size = self.config.step_size if step_size is None else step_size
        if iterations < 0:
            raise ValueError(f"iterations must be >= 0, got {iterations}")
        if step_size <= 0:
            raise ValueError(f"step_size must be > 0, got {step_size}")
        if rng is None:
            rng = np.random.RandomState(self.config.random_seed)

        evaluator = PenaltyEvaluator(observations)
        priority = self._filter_priority_indices(priority_indices)
        priority_phase_end = iterations * self.config.priority_phase_fraction
        interval = self.config.progress_interval

        current = self.matrix.copy()
        current_eval = evaluator.evaluate(current)
        initial_eval = current_eval
        best = current.copy()
        best_eval = current_eval

        logger.info(f"Starting optimization: {iterations} iterations, step_size={step_size}, "
                    f"{len(observations)} observations, {len(priority)} priority indices")
        logger.info(f"Initial penalty={current_eval.penalty:.4f}, "
                    f"contradictions={current_eval.contradictions}")

        n_evaluated = 0
        n_accepted = 0
        n_motion_rejected = 0
        completed = 0
        stopped = False
        history = []

        for i in range(iterations):
            use_priority = i < priority_phase_end and len(priority) > 0
            row, col = self._select_cell(rng, priority, use_priority)
            new_value = self._propose(current, row, col, step_size, rng)

            if new_value is None:
                n_motion_rejected += 1
            else:
                previous = current[row, col]
                current[row, col] = new_value
                new_eval = evaluator.evaluate(current)
                n_evaluated += 1

                if new_eval.penalty <= current_eval.penalty:
                    n_accepted += 1
                    current_eval = new_eval
                    if new_eval.penalty < best_eval.penalty:
                        best = current.copy()
                        best_eval = new_eval
                else:
                    current[row, col] = previous

            completed = i + 1

            if i % interval == 0:
                history.append({
                    "iteration": i,
                    "penalty": current_eval.penalty,
                    "contradictions": current_eval.contradictions,
                    "best_penalty": best_eval.penalty
                })
                logger.debug(f"Iteration {i}/{iterations}: penalty={current_eval.penalty:.4f}, "
                             f"best={best_eval.penalty:.4f}")
                if on_progress is not None:
                    on_progress(i, iterations, current_eval)
                if should_stop is not None and should_stop():
                    logger.info(f"Stop requested at iteration {i}")
                    stopped = True
                    break

        self.matrix = best

        logger.info(f"Optimization finished: penalty {initial_eval.penalty:.4f} -> "
                    f"{best_eval.penalty:.4f}, contradictions {initial_eval.contradictions} -> "
                    f"{best_eval.contradictions} ({n_accepted}/{n_evaluated} accepted, "
                    f"{n_motion_rejected} motion-rejected)")

        return OptimizationResult(
            matrix=best.copy(),
            evaluation=best_eval,
            initial_evaluation=initial_eval,
            iterations_completed=completed,
            n_evaluated=n_evaluated,
            n_accepted=n_accepted,
            n_motion_rejected=n_motion_rejected,
            stopped_early=stopped,
            history=pd.DataFrame(
                history, columns=["iteration", "penalty", "contradictions", "best_penalty"]
            )
        )


def optimize(
    base_matrix,
    observations: Sequence[Observation],
    iterations: int = 1000,
    step_size: float = 0.5,
    priority_indices: Sequence[int] = (),
    on_progress: Optional[ProgressCallback] = None,
    should_stop: Optional[StopCallback] = None,
    rng: Optional[np.random.RandomState] = None,
    config: Optional[OptimizerConfig] = None
) -> OptimizationResult:
    """
    Calibrate base_matrix in a single run.

    Convenience wrapper that builds a CompatibilityOptimizer and runs it once.
    See CompatibilityOptimizer.optimize for the arguments.
    """
    optimizer = CompatibilityOptimizer(base_matrix, config=config)
    return optimizer.optimize(
        observations,
        iterations=iterations,
        step_size=step_size,
        priority_indices=priority_indices,
        on_progress=on_progress,
        should_stop=should_stop,
        rng=rng
    )
