"""
Observation schema for labeled calibration data.

An observation pairs the seven identities of a pairing (child, father,
father's father, father's mother, mother, mother's father, mother's
mother) and its bonus counts with the tier an expert assigned to it.

Identities are integer indices into the compatibility matrix, or None
when unknown. Observations with unknown identities are kept: they score 0.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Tuple

IDENTITY_FIELDS = ("child_id", "f", "ff", "fm", "m", "mf", "mm")

# Persisted layout uses the camelCase keys of the stored records
_PERSISTED_KEYS = {
    "child_id": "childId",
    "correct_symbol": "correctSymbol",
}


def _is_missing(value: Any) -> bool:
    # NaN shows up for empty cells in CSV imports
    return value is None or value == "" or (isinstance(value, float) and value != value)


def _to_index(value: Any) -> Optional[int]:
    return None if _is_missing(value) else int(value)


@dataclass(frozen=True)
class Observation:
    """
    One labeled pairing.

    Attributes:
        child_id: Child identity index
        f, ff, fm: Father, father's father, father's mother
        m, mf, mm: Mother, mother's father, mother's mother
        s3: Count of 12.5-point bonuses
        s2: Count of 5-point bonuses
        correct_symbol: Expert-assigned tier symbol
        noble: Optional flat bonus added to the score
    """
    child_id: Optional[int]
    f: Optional[int]
    ff: Optional[int]
    fm: Optional[int]
    m: Optional[int]
    mf: Optional[int]
    mm: Optional[int]
    s3: int = 0
    s2: int = 0
    correct_symbol: str = "×"
    noble: Optional[float] = None

    @property
    def identities(self) -> Tuple[Optional[int], ...]:
        """The seven identity indices in scoring order."""
        return tuple(getattr(self, name) for name in IDENTITY_FIELDS)

    @property
    def key(self) -> Tuple:
        """Uniqueness key: identities plus bonus counts, labels excluded."""
        return self.identities + (self.s3, self.s2)

    def is_complete(self) -> bool:
        """True when none of the seven identities is missing."""
        return all(x is not None for x in self.identities)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary layout."""
        d = asdict(self)
        if d["noble"] is None:
            del d["noble"]
        return {_PERSISTED_KEYS.get(k, k): v for k, v in d.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observation":
        """
        Create from a dictionary with persisted (camelCase) or snake_case keys.

        Raises:
            KeyError: If the label is missing
            ValueError: If an identity or bonus is not numeric
        """
        normalized = {}
        reverse = {v: k for k, v in _PERSISTED_KEYS.items()}
        for key, value in data.items():
            normalized[reverse.get(key, key)] = value

        s3 = normalized.get("s3")
        s2 = normalized.get("s2")
        noble = normalized.get("noble")
        return cls(
            **{name: _to_index(normalized.get(name)) for name in IDENTITY_FIELDS},
            s3=0 if _is_missing(s3) else int(s3),
            s2=0 if _is_missing(s2) else int(s2),
            correct_symbol=str(normalized["correct_symbol"]),
            noble=None if _is_missing(noble) else float(noble),
        )
