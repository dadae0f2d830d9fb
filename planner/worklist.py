"""
Worklist - the ordered result of one planning run.

A worklist is a plain value: it can be serialized, read back, filtered,
compared with the worklist of an earlier run and used to gate CI.

Usage:
    from planner.worklist import Worklist, gate

    worklist = Worklist.from_json(text)
    for gap in worklist:
        print(f"{gap.unit}: needs {gap.remaining_lines} more lines")

    sys.exit(gate(worklist, "error-handling"))
"""

import json
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Optional

from .model import CATEGORY_RANK, category_rank

# Reserved unit identifier of the synthetic summary gap
CODEBASE = "<codebase>"
GLOBAL_CATEGORY = "global"

FAIL_ON_CHOICES = ("none", "any", GLOBAL_CATEGORY) + tuple(CATEGORY_RANK)

_GAP_FIELDS = (
    "unit",
    "category",
    "required",
    "achieved",
    "deficit",
    "remaining_lines",
    "remaining_branches",
    "uncovered_lines",
    "uncovered_branches",
)


@dataclass(frozen=True)
class Gap:
    """A unit (or the whole codebase) that falls short of its target."""

    unit: str
    category: str
    required: float
    achieved: float
    deficit: float
    remaining_lines: int  # covered lines still needed to reach the target
    remaining_branches: int = 0
    uncovered_lines: int = 0
    uncovered_branches: int = 0

    @property
    def is_summary(self) -> bool:
        return self.unit == CODEBASE

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in _GAP_FIELDS}

    @classmethod
    def from_dict(cls, data: dict) -> "Gap":
        if not isinstance(data, dict):
            raise ValueError(f"gap must be an object, got {type(data).__name__}")
        missing = [name for name in _GAP_FIELDS if name not in data]
        if missing:
            raise ValueError(f"gap is missing fields: {', '.join(missing)}")
        return cls(**{name: data[name] for name in _GAP_FIELDS})


@dataclass(frozen=True)
class Worklist:
    """Ordered, immutable sequence of gaps."""

    gaps: tuple[Gap, ...] = ()
    global_achieved: float = 1.0
    global_required: float = 0.0

    def __iter__(self) -> Iterator[Gap]:
        return iter(self.gaps)

    def __len__(self) -> int:
        return len(self.gaps)

    def __getitem__(self, index):
        return self.gaps[index]

    def __bool__(self) -> bool:
        return bool(self.gaps)

    @property
    def summary(self) -> Optional[Gap]:
        """The synthetic codebase gap, if the global target is missed."""
        if self.gaps and self.gaps[0].is_summary:
            return self.gaps[0]
        return None

    @property
    def unit_gaps(self) -> tuple[Gap, ...]:
        return tuple(g for g in self.gaps if not g.is_summary)

    @property
    def global_met(self) -> bool:
        return self.summary is None

    def by_category(self) -> dict[str, int]:
        """Count unit gaps per category, known categories first."""
        counts = {category: 0 for category in CATEGORY_RANK}
        for gap in self.unit_gaps:
            counts[gap.category] = counts.get(gap.category, 0) + 1
        return counts

    def filter(self, categories: Iterable[str]) -> "Worklist":
        """Keep the summary gap and unit gaps in the given categories."""
        wanted = set(categories)
        return replace(
            self,
            gaps=tuple(g for g in self.gaps if g.is_summary or g.category in wanted),
        )

    def limit(self, count: int) -> "Worklist":
        if count is None or count <= 0:
            return self
        return replace(self, gaps=self.gaps[:count])

    def to_dict(self) -> dict:
        return {
            "global_achieved": self.global_achieved,
            "global_required": self.global_required,
            "gaps": [g.to_dict() for g in self.gaps],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Worklist":
        """
        Rebuild a worklist written by to_dict().

        Raises:
            ValueError: If data doesn't have the worklist shape.
        """
        if not isinstance(data, dict) or not isinstance(data.get("gaps"), list):
            raise ValueError("worklist must be an object with a 'gaps' list")
        return cls(
            gaps=tuple(Gap.from_dict(g) for g in data["gaps"]),
            global_achieved=data.get("global_achieved", 1.0),
            global_required=data.get("global_required", 0.0),
        )

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "Worklist":
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class WorklistDiff:
    """What changed between two planning runs."""

    resolved: tuple[Gap, ...] = field(default_factory=tuple)
    introduced: tuple[Gap, ...] = field(default_factory=tuple)
    remaining: tuple[Gap, ...] = field(default_factory=tuple)

    @property
    def has_regressions(self) -> bool:
        return bool(self.introduced)


def diff_worklists(before: Worklist, after: Worklist) -> WorklistDiff:
    """
    Compare two worklists by unit identifier.

    Returns:
        WorklistDiff where resolved gaps come from before (in its order),
        and introduced/remaining gaps come from after (in its order).
    """
    before_units = {g.unit for g in before}
    after_units = {g.unit for g in after}

    return WorklistDiff(
        resolved=tuple(g for g in before if g.unit not in after_units),
        introduced=tuple(g for g in after if g.unit not in before_units),
        remaining=tuple(g for g in after if g.unit in before_units),
    )


def gate(worklist: Worklist, fail_on: str = "none") -> int:
    """
    Compute a CI exit code for a worklist.

    Args:
        worklist: Planning result.
        fail_on: "none", "any", "global", or a category name. A category
            fails on gaps in that category or any higher-priority one.

    Returns:
        0 = passed, 2 = threshold met.

    Raises:
        ValueError: If fail_on is not recognized.
    """
    if fail_on not in FAIL_ON_CHOICES:
        raise ValueError(
            f"fail_on must be one of {', '.join(FAIL_ON_CHOICES)}, got {fail_on!r}"
        )

    if fail_on == "none":
        return 0
    if fail_on == "any":
        return 2 if worklist else 0
    if fail_on == GLOBAL_CATEGORY:
        return 0 if worklist.global_met else 2

    threshold = CATEGORY_RANK[fail_on]
    for gap in worklist.unit_gaps:
        if category_rank(gap.category) <= threshold:
            return 2
    return 0


def format_worklist(worklist: Worklist, max_items: Optional[int] = 10) -> str:
    """Format human-readable text output."""
    lines = []
    lines.append("=" * 60)
    lines.append("coverage-planner")
    lines.append("=" * 60)
    status = "met" if worklist.global_met else "NOT met"
    lines.append(
        f"Global coverage: {worklist.global_achieved:.1%} "
        f"(target {worklist.global_required:.1%}, {status})"
    )

    unit_gaps = worklist.unit_gaps
    lines.append(f"Units below target: {len(unit_gaps)}")
    for category, count in worklist.by_category().items():
        if count:
            lines.append(f"  {category}: {count}")
    lines.append("")

    if not worklist:
        lines.append("No coverage gaps found - great job!")
        return "\n".join(lines)

    shown = worklist.gaps if max_items is None else worklist.gaps[:max_items]
    lines.append("Worklist:")
    for i, gap in enumerate(shown, 1):
        lines.append(f"  {i}. [{gap.category}] {gap.unit}")
        lines.append(
            f"       {gap.achieved:.1%} of {gap.required:.1%} required, "
            f"{gap.remaining_lines} lines / {gap.remaining_branches} branches to go"
        )

    hidden = len(worklist) - len(shown)
    if hidden > 0:
        lines.append(f"  ... and {hidden} more")

    return "\n".join(lines)


def print_worklist(worklist: Worklist, max_items: Optional[int] = 10) -> None:
    """Pretty-print a worklist to console."""
    print(format_worklist(worklist, max_items=max_items))
