"""Tier symbols, score ranges and classification."""

from .symbols import (
    Tier,
    SymbolRange,
    SYMBOL_RANGES,
    TOP_TIER_MIN,
    classify,
    get_range,
)

__all__ = [
    "Tier",
    "SymbolRange",
    "SYMBOL_RANGES",
    "TOP_TIER_MIN",
    "classify",
    "get_range",
]
