"""
Coverage Planner

Tells you WHERE to write tests next, not just what's uncovered.

Core components:
- CoverageModel: Immutable snapshot of per-unit coverage records
- ThresholdPolicy: Required ratio per category, plus a global target
- GapPlanner: Computes the prioritized Worklist of coverage gaps

Usage:
    from planner import CoverageModel, plan_worklist

    model = CoverageModel.load(records)
    for gap in plan_worklist(model):
        print(f"{gap.category}: {gap.unit}")
"""

from .errors import (
    InvalidThreshold,
    MalformedRecord,
    PlannerError,
    PolicyError,
    UnitNotFound,
)
from .gaps import GapPlanner, plan_worklist
from .model import CATEGORIES, CoverageModel, SourceUnit
from .policy import ThresholdPolicy, load_policy
from .worklist import (
    CODEBASE,
    Gap,
    Worklist,
    WorklistDiff,
    diff_worklists,
    format_worklist,
    gate,
    print_worklist,
)

__all__ = [
    # Main entry point
    "plan_worklist",
    "print_worklist",
    # Data structures
    "CATEGORIES",
    "CODEBASE",
    "CoverageModel",
    "Gap",
    "GapPlanner",
    "SourceUnit",
    "ThresholdPolicy",
    "Worklist",
    "WorklistDiff",
    # Helpers
    "diff_worklists",
    "format_worklist",
    "gate",
    "load_policy",
    # Errors
    "InvalidThreshold",
    "MalformedRecord",
    "PlannerError",
    "PolicyError",
    "UnitNotFound",
]
