"""
Compatibility Matrix Calibration

This package calibrates a pairwise compatibility matrix against expert-labeled
observations so that each observation's derived score lands inside its
labeled tier.

Key Design Decisions:
- The score formula is fixed; only matrix entries are tuned
- Tier violations are penalized by squared distance to the tier range
- A constrained hill-climbing search adjusts one cell at a time
- Every cell stays within a motion limit of its hand-authored value
"""

__version__ = "1.0.0"
