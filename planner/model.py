"""
Coverage model - an immutable snapshot of per-unit coverage measurements.

The model does not know how coverage was collected. It consumes plain
records produced by whatever measurement tool the caller runs:

    {
        "path": "src/orders/service.py",
        "total_lines": 120,
        "covered_lines": 97,
        "total_branches": 30,
        "covered_branches": 22,
        "category": "core-logic"
    }

Usage:
    from planner.model import CoverageModel

    model = CoverageModel.load(records)
    unit = model.unit("src/orders/service.py")
    print(f"{unit.path}: {unit.achieved_ratio:.2%}")
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

from .errors import MalformedRecord, UnitNotFound

logger = logging.getLogger(__name__)

CORE_LOGIC = "core-logic"
ERROR_HANDLING = "error-handling"
EDGE_CASE = "edge-case"
DEFENSIVE = "defensive"
EXCLUDED = "excluded"

CATEGORIES = (CORE_LOGIC, ERROR_HANDLING, EDGE_CASE, DEFENSIVE, EXCLUDED)

# Planning priority; lower ranks come first in a worklist
CATEGORY_RANK = MappingProxyType({
    CORE_LOGIC: 0,
    ERROR_HANDLING: 1,
    EDGE_CASE: 2,
    DEFENSIVE: 3,
})

_COUNT_FIELDS = ("total_lines", "covered_lines", "total_branches", "covered_branches")


def category_rank(category: str) -> int:
    """Rank of category; unrecognized categories rank with defensive code."""
    return CATEGORY_RANK.get(category, CATEGORY_RANK[DEFENSIVE])


def _ratio(covered: int, total: int) -> float:
    # Nothing to execute means nothing left to cover
    if total == 0:
        return 1.0
    return covered / total


@dataclass(frozen=True)
class SourceUnit:
    """Coverage measurements for one file or module.

    Raises:
        MalformedRecord: If a count is not a non-negative integer, a
            covered count exceeds its total, or path/category is empty.
    """

    path: str
    total_lines: int
    covered_lines: int
    total_branches: int = 0
    covered_branches: int = 0
    category: str = CORE_LOGIC

    def __post_init__(self):
        if not isinstance(self.path, str) or not self.path:
            raise MalformedRecord(f"path must be a non-empty string, got {self.path!r}")

        for name in _COUNT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise MalformedRecord(f"{name} must be an integer, got {value!r}", path=self.path)
            if value < 0:
                raise MalformedRecord(f"{name} must not be negative, got {value}", path=self.path)

        if self.covered_lines > self.total_lines:
            raise MalformedRecord(
                f"covered_lines ({self.covered_lines}) exceeds total_lines ({self.total_lines})",
                path=self.path,
            )
        if self.covered_branches > self.total_branches:
            raise MalformedRecord(
                f"covered_branches ({self.covered_branches}) exceeds "
                f"total_branches ({self.total_branches})",
                path=self.path,
            )

        if not isinstance(self.category, str) or not self.category:
            raise MalformedRecord(
                f"category must be a non-empty string, got {self.category!r}", path=self.path
            )

    @property
    def line_ratio(self) -> float:
        return _ratio(self.covered_lines, self.total_lines)

    @property
    def branch_ratio(self) -> float:
        return _ratio(self.covered_branches, self.total_branches)

    @property
    def achieved_ratio(self) -> float:
        """The weaker of the line and branch ratios."""
        return min(self.line_ratio, self.branch_ratio)

    @property
    def uncovered_lines(self) -> int:
        return self.total_lines - self.covered_lines

    @property
    def uncovered_branches(self) -> int:
        return self.total_branches - self.covered_branches

    @property
    def is_excluded(self) -> bool:
        return self.category == EXCLUDED

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "total_lines": self.total_lines,
            "covered_lines": self.covered_lines,
            "total_branches": self.total_branches,
            "covered_branches": self.covered_branches,
            "category": self.category,
        }


def _parse_record(record: Any, index: int) -> SourceUnit:
    """Build a SourceUnit from one raw record; the unit validates itself."""
    if not isinstance(record, Mapping):
        raise MalformedRecord(f"record #{index} must be an object, got {type(record).__name__}")

    path = record.get("path")
    if not isinstance(path, str) or not path:
        raise MalformedRecord(f"record #{index} has no path")

    return SourceUnit(
        path=path,
        total_lines=record.get("total_lines"),
        covered_lines=record.get("covered_lines"),
        # Branch data is optional; line data is not
        total_branches=record.get("total_branches", 0),
        covered_branches=record.get("covered_branches", 0),
        category=record.get("category", CORE_LOGIC),
    )


class CoverageModel:
    """Immutable, path-indexed collection of SourceUnits.

    Build it with CoverageModel.load(); units keep the order they were
    supplied in.
    """

    def __init__(self, units: Iterable[SourceUnit] = ()):
        self._units = tuple(units)
        index = {}
        for unit in self._units:
            if not isinstance(unit, SourceUnit):
                raise MalformedRecord(f"expected a SourceUnit, got {type(unit).__name__}")
            if unit.path in index:
                raise MalformedRecord("duplicate path", path=unit.path)
            index[unit.path] = unit
        self._index = MappingProxyType(index)

    @classmethod
    def load(cls, records: Iterable[Any]) -> "CoverageModel":
        """
        Build a model from raw per-unit records.

        Args:
            records: Sequence of mappings with path, line/branch counts
                and category.

        Returns:
            A new CoverageModel.

        Raises:
            MalformedRecord: If any record is invalid or a path repeats.
                Nothing is loaded in that case.
        """
        units = [_parse_record(record, i) for i, record in enumerate(records)]
        model = cls(units)
        logger.debug(f"Loaded coverage model with {len(model)} units")
        return model

    @classmethod
    def from_json(cls, json_path: str) -> "CoverageModel":
        """
        Load records from a JSON file.

        The file holds either a list of records or an object with a
        "units" list.

        Raises:
            FileNotFoundError: If json_path doesn't exist
            json.JSONDecodeError: If file is not valid JSON
            MalformedRecord: If the content is not a list of valid records
        """
        with open(Path(json_path), "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.load(records_from_data(data))

    def unit(self, path: str) -> SourceUnit:
        try:
            return self._index[path]
        except KeyError:
            raise UnitNotFound(path) from None

    def all_units(self) -> Iterator[SourceUnit]:
        """Iterate units in load order. Each call starts over."""
        return iter(self._units)

    def planned_units(self) -> Iterator[SourceUnit]:
        """Iterate units that take part in planning (not excluded)."""
        return (u for u in self._units if not u.is_excluded)

    @property
    def total_lines(self) -> int:
        return sum(u.total_lines for u in self.planned_units())

    @property
    def covered_lines(self) -> int:
        return sum(u.covered_lines for u in self.planned_units())

    @property
    def total_branches(self) -> int:
        return sum(u.total_branches for u in self.planned_units())

    @property
    def covered_branches(self) -> int:
        return sum(u.covered_branches for u in self.planned_units())

    @property
    def line_ratio(self) -> float:
        """Aggregate line ratio across non-excluded units."""
        return _ratio(self.covered_lines, self.total_lines)

    def __iter__(self) -> Iterator[SourceUnit]:
        return self.all_units()

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, path: object) -> bool:
        return path in self._index

    def __repr__(self) -> str:
        return f"CoverageModel(units={len(self._units)})"


def records_from_data(data: Any) -> list:
    """Extract the record list from a decoded records document."""
    if isinstance(data, dict):
        data = data.get("units")
    if not isinstance(data, list):
        raise MalformedRecord("records must be a list or an object with a 'units' list")
    return data
