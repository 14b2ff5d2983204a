"""Local search calibration of compatibility matrices."""

from .local_search import (
    CompatibilityOptimizer,
    OptimizerConfig,
    OptimizationResult,
    optimize
)

__all__ = [
    "CompatibilityOptimizer",
    "OptimizerConfig",
    "OptimizationResult",
    "optimize"
]
