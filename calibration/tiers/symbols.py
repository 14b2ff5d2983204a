"""
Ordinal tier symbols and their score ranges.

Six tiers partition the non-negative score line, from lowest to highest:

    ×  [0, 254]
    △  [255, 373]
    ○  [374, 489]
    ◎  [490, 613]
    ☆  [614, 659]
    👑  [660, 9999]  (only the lower bound is enforced)

The range table is what the penalty evaluator checks against. `classify`
is the descending-threshold lookup used for reporting and inspection.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Tier(Enum):
    """Compatibility tiers, valued by their display symbol."""
    CROWN = "👑"
    STAR = "☆"
    DOUBLE_CIRCLE = "◎"
    CIRCLE = "○"
    TRIANGLE = "△"
    CROSS = "×"

    @property
    def rank(self) -> int:
        """Ordinal position, 0 for the lowest tier and 5 for the highest."""
        return _TIER_ORDER.index(self)

    @classmethod
    def from_symbol(cls, symbol: str) -> Optional["Tier"]:
        """Look up a tier by symbol, returning None for unknown labels."""
        try:
            return cls(symbol)
        except ValueError:
            return None


_TIER_ORDER = [
    Tier.CROSS,
    Tier.TRIANGLE,
    Tier.CIRCLE,
    Tier.DOUBLE_CIRCLE,
    Tier.STAR,
    Tier.CROWN,
]


@dataclass(frozen=True)
class SymbolRange:
    """Inclusive score interval for one tier."""
    min: float
    max: float

    def distance(self, score: float) -> float:
        """Distance from score to the interval (0 when inside)."""
        if score < self.min:
            return self.min - score
        if score > self.max:
            return score - self.max
        return 0.0


TOP_TIER_MIN = 660

SYMBOL_RANGES: Dict[str, SymbolRange] = {
    Tier.CROWN.value: SymbolRange(min=TOP_TIER_MIN, max=9999),
    Tier.STAR.value: SymbolRange(min=614, max=659),
    Tier.DOUBLE_CIRCLE.value: SymbolRange(min=490, max=613),
    Tier.CIRCLE.value: SymbolRange(min=374, max=489),
    Tier.TRIANGLE.value: SymbolRange(min=255, max=373),
    Tier.CROSS.value: SymbolRange(min=0, max=254),
}

# Descending lower thresholds used by classify()
_THRESHOLDS = [
    (660, Tier.CROWN),
    (614, Tier.STAR),
    (490, Tier.DOUBLE_CIRCLE),
    (374, Tier.CIRCLE),
    (255, Tier.TRIANGLE),
]


def classify(score: float) -> str:
    """
    Map a score to its tier symbol.

    Args:
        score: Compatibility score

    Returns:
        Symbol of the highest tier whose threshold the score reaches,
        or the lowest tier symbol when none is reached
    """
    for threshold, tier in _THRESHOLDS:
        if score >= threshold:
            return tier.value
    return Tier.CROSS.value


def get_range(symbol: str) -> Optional[SymbolRange]:
    """Return the score range for a symbol, or None if the symbol is unknown."""
    return SYMBOL_RANGES.get(symbol)
