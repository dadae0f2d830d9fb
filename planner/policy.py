"""
Threshold policy - required coverage ratios per category, plus a global target.

Policy files are small JSON documents; both keys are optional and
anything not given falls back to the defaults:

    {
        "categories": {"core-logic": 0.95, "defensive": 0.8},
        "global": 0.9
    }
"""

import json
import math
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .errors import InvalidThreshold
from .model import CORE_LOGIC, DEFENSIVE, EDGE_CASE, ERROR_HANDLING

DEFAULT_RATIOS = MappingProxyType({
    CORE_LOGIC: 0.95,
    ERROR_HANDLING: 0.90,
    EDGE_CASE: 0.90,
    DEFENSIVE: 0.85,
})
DEFAULT_GLOBAL_RATIO = 0.90


def _check_ratio(category: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidThreshold(category, value)
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise InvalidThreshold(category, value)
    return float(value)


class ThresholdPolicy:
    """Immutable table of required coverage ratios."""

    def __init__(
        self,
        ratios: Optional[Mapping[str, Any]] = None,
        global_ratio: Any = DEFAULT_GLOBAL_RATIO,
    ):
        """
        Args:
            ratios: Category -> required ratio. Merged over DEFAULT_RATIOS.
            global_ratio: Required aggregate ratio over all planned units.

        Raises:
            InvalidThreshold: If any ratio is not a number in [0.0, 1.0].
        """
        merged = dict(DEFAULT_RATIOS)
        for category, value in (ratios or {}).items():
            merged[category] = _check_ratio(category, value)
        self._ratios = MappingProxyType(merged)
        self._global = _check_ratio("global", global_ratio)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ThresholdPolicy":
        """Build a policy from {"categories": {...}, "global": ratio}."""
        if not isinstance(data, Mapping):
            raise InvalidThreshold("policy", data)
        categories = data.get("categories") or {}
        if not isinstance(categories, Mapping):
            raise InvalidThreshold("categories", categories)
        return cls(categories, data.get("global", DEFAULT_GLOBAL_RATIO))

    def required_ratio(self, category: str) -> float:
        """Ratio required for category; unknown categories get the global ratio."""
        return self._ratios.get(category, self._global)

    def knows(self, category: str) -> bool:
        """Whether category has its own configured ratio."""
        return category in self._ratios

    def global_ratio(self) -> float:
        return self._global

    @property
    def ratios(self) -> Mapping[str, float]:
        return self._ratios

    def to_dict(self) -> dict:
        return {"categories": dict(self._ratios), "global": self._global}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ThresholdPolicy):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((tuple(sorted(self._ratios.items())), self._global))

    def __repr__(self) -> str:
        return f"ThresholdPolicy(ratios={dict(self._ratios)!r}, global_ratio={self._global!r})"


def load_policy(json_path: str) -> ThresholdPolicy:
    """
    Load a policy from a JSON file.

    Raises:
        FileNotFoundError: If json_path doesn't exist
        json.JSONDecodeError: If file is not valid JSON
        InvalidThreshold: If a ratio is out of range
    """
    with open(Path(json_path), "r", encoding="utf-8") as f:
        data = json.load(f)
    return ThresholdPolicy.from_dict(data)
