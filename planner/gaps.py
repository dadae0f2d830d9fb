"""
Gap Planner - turns a coverage snapshot into a prioritized worklist.

The problem: a coverage report tells you "orders/service.py is at 81%"
but not which file to work on first, or how far each one is from
its target.

GapPlanner answers that by:
1. Comparing each unit's weaker ratio (lines or branches) against the
   ratio its category requires
2. Estimating how many more lines (and branches) need covering
3. Ordering gaps by category priority, then by how far short they fall
4. Flagging the whole codebase when the aggregate target is missed,
   even if every unit meets its own target

Usage:
    from planner import CoverageModel, GapPlanner, ThresholdPolicy

    model = CoverageModel.load(records)
    worklist = GapPlanner(ThresholdPolicy()).plan(model)
    for gap in worklist:
        print(f"{gap.category}: {gap.unit} (+{gap.remaining_lines} lines)")

Example:
    >>> worklist = plan_worklist(model)
    >>> [g.unit for g in worklist]
    ['<codebase>', 'src/orders/service.py', 'src/orders/errors.py']
"""

import logging
import math
from typing import Any, Mapping, Optional, Union

from .errors import InvalidThreshold, PolicyError
from .model import CoverageModel, SourceUnit, category_rank
from .policy import ThresholdPolicy
from .worklist import CODEBASE, GLOBAL_CATEGORY, Gap, Worklist

logger = logging.getLogger(__name__)


def remaining_to_target(required: float, covered: int, total: int) -> int:
    """Covered items still needed for covered/total to reach required."""
    # Round first so float noise (0.07 * 100 = 7.000000000000001) can't bump the ceiling
    needed = math.ceil(round(required * total, 9)) - covered
    return max(needed, 0)


class GapPlanner:
    """Compute worklists against one threshold policy."""

    def __init__(self, policy: Optional[ThresholdPolicy] = None):
        self.policy = policy if policy is not None else ThresholdPolicy()

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]] = None) -> "GapPlanner":
        """
        Build a planner from a declarative policy table.

        Args:
            config: {"categories": {...}, "global": ratio}, or None for defaults.

        Raises:
            PolicyError: If the policy can't be constructed.
        """
        try:
            policy = ThresholdPolicy.from_dict(config or {})
        except InvalidThreshold as e:
            raise PolicyError(f"Cannot plan with invalid policy: {e}") from e
        return cls(policy)

    def plan(self, model: CoverageModel) -> Worklist:
        """
        Compute the worklist for a coverage snapshot.

        Args:
            model: Coverage measurements. Not modified.

        Returns:
            A new Worklist. Identical inputs give identical worklists.
        """
        self._warn_unknown_categories(model)

        gaps = []
        for unit in model.planned_units():
            gap = self._unit_gap(unit)
            if gap is not None:
                gaps.append(gap)

        gaps.sort(key=lambda g: (category_rank(g.category), -g.deficit, g.unit))

        summary = self._summary_gap(model)
        if summary is not None:
            gaps.insert(0, summary)

        logger.debug(
            f"Planned {len(gaps)} gaps over {len(model)} units "
            f"(global {model.line_ratio:.2%} vs {self.policy.global_ratio():.2%})"
        )

        return Worklist(
            gaps=tuple(gaps),
            global_achieved=model.line_ratio,
            global_required=self.policy.global_ratio(),
        )

    def _warn_unknown_categories(self, model: CoverageModel) -> None:
        """Log each category without its own ratio once per run."""
        unknown = {u.category for u in model.planned_units() if not self.policy.knows(u.category)}
        for category in sorted(unknown):
            logger.warning(
                f"Unrecognized category {category!r}, using global ratio {self.policy.global_ratio()}"
            )

    def _unit_gap(self, unit: SourceUnit) -> Optional[Gap]:
        """Gap for a single unit, or None if it meets its target."""
        required = self.policy.required_ratio(unit.category)
        achieved = unit.achieved_ratio

        # Meeting the target exactly counts as covered
        if achieved >= required:
            return None

        return Gap(
            unit=unit.path,
            category=unit.category,
            required=required,
            achieved=achieved,
            deficit=max(required - achieved, 0.0),
            remaining_lines=remaining_to_target(required, unit.covered_lines, unit.total_lines),
            remaining_branches=remaining_to_target(
                required, unit.covered_branches, unit.total_branches
            ),
            uncovered_lines=unit.uncovered_lines,
            uncovered_branches=unit.uncovered_branches,
        )

    def _summary_gap(self, model: CoverageModel) -> Optional[Gap]:
        """Synthetic gap for the whole codebase, based on aggregate lines."""
        required = self.policy.global_ratio()
        achieved = model.line_ratio
        if achieved >= required:
            return None

        total_lines = model.total_lines
        covered_lines = model.covered_lines
        total_branches = model.total_branches
        covered_branches = model.covered_branches

        return Gap(
            unit=CODEBASE,
            category=GLOBAL_CATEGORY,
            required=required,
            achieved=achieved,
            deficit=max(required - achieved, 0.0),
            remaining_lines=remaining_to_target(required, covered_lines, total_lines),
            remaining_branches=remaining_to_target(required, covered_branches, total_branches),
            uncovered_lines=total_lines - covered_lines,
            uncovered_branches=total_branches - covered_branches,
        )


def plan_worklist(
    model: CoverageModel,
    policy: Union[ThresholdPolicy, Mapping[str, Any], None] = None,
) -> Worklist:
    """
    Main entry point: plan a worklist for model.

    Args:
        model: Loaded coverage model.
        policy: A ThresholdPolicy, a policy table
            ({"categories": {...}, "global": ratio}), or None for defaults.

    Returns:
        The prioritized Worklist.

    Raises:
        PolicyError: If a policy table is given and is invalid.
    """
    if isinstance(policy, ThresholdPolicy):
        planner = GapPlanner(policy)
    else:
        planner = GapPlanner.from_config(policy)
    return planner.plan(model)
