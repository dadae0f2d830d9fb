"""
MCP Tool Handler for coverage_planner.plan

Wraps the planner engine to provide an MCP-compatible interface.
Accepts coverage records as inline JSON or artifact reference.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

# Import from the engine (sibling package)
from planner.errors import MalformedRecord, PolicyError
from planner.gaps import plan_worklist
from planner.model import CATEGORY_RANK, CoverageModel, records_from_data
from planner.worklist import Worklist, format_worklist, gate


def handle(
    request: dict[str, Any],
    *,
    artifact_resolver: Optional[Callable[[str], bytes]] = None,
) -> dict[str, Any]:
    """
    MCP tool handler for coverage_planner.plan.

    Args:
        request: Request dict matching the request schema.
        artifact_resolver: Optional callable to resolve artifact_id -> bytes.
            If not provided, falls back to locator-as-path.

    Returns:
        Response dict matching the response schema.
    """
    if not isinstance(request, dict) or "records" not in request:
        return _error_response("request must contain 'records'")

    try:
        # 1. Load coverage records
        records = _load_records(
            request["records"],
            artifact_resolver=artifact_resolver,
        )
        model = CoverageModel.load(records)
    except FileNotFoundError as e:
        return _error_response(f"Records file not found: {e}")
    except json.JSONDecodeError as e:
        return _error_response(f"Invalid JSON in records: {e}")
    except MalformedRecord as e:
        return _error_response(f"Malformed record: {e}")
    except ValueError as e:
        return _error_response(str(e))
    except Exception as e:
        return _error_response(f"Failed to load records: {e}")

    # 2. Plan against the requested policy
    try:
        worklist = plan_worklist(model, request.get("policy"))
    except PolicyError as e:
        return _error_response(str(e))

    warnings = _category_warnings(model)

    limit = request.get("limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int)):
        return _error_response(f"limit must be an integer, got {limit!r}")

    # 3. Filter by category if requested
    categories = request.get("categories")
    if categories is not None and not (
        isinstance(categories, list) and all(isinstance(c, str) for c in categories)
    ):
        return _error_response(f"categories must be a list of strings, got {categories!r}")
    if categories:
        worklist = worklist.filter(categories)

    # 4. Compute exit code BEFORE limit (evaluate against filtered set)
    # This ensures CI gating sees all matching gaps, not just top N
    try:
        exit_code = gate(worklist, request.get("fail_on", "none"))
    except ValueError as e:
        return _error_response(str(e))

    total_gaps = len(worklist)
    by_category = worklist.by_category()

    # 5. Apply limit if requested (for output only, doesn't affect gating)
    shown = worklist.limit(limit)

    result = _build_result(model, shown, total_gaps, by_category)

    response: dict[str, Any] = {
        "exit_code": exit_code,
        "result": result,
        "warnings": sorted(warnings),
    }

    if request.get("format") == "text":
        # Summary counts come from the full filtered list
        max_items = limit if limit and limit > 0 else 10
        response["text"] = format_worklist(worklist, max_items=max_items)

    return response


def _load_records(
    records: Any,
    *,
    artifact_resolver: Optional[Callable[[str], bytes]] = None,
) -> list:
    """
    Load raw records from inline data or an artifact reference.

    Args:
        records: A list of records, an object with a "units" list, or an
            artifact reference ({"artifact_id": ..., "locator": ...}).
        artifact_resolver: Optional callable to resolve artifact_id -> bytes.

    Returns:
        List of raw record dicts.

    Raises:
        ValueError: If the records format is invalid.
        FileNotFoundError: If locator path doesn't exist.
        json.JSONDecodeError: If content is not valid JSON.
    """
    if isinstance(records, dict) and "artifact_id" in records:
        # Try artifact resolver first
        if artifact_resolver is not None:
            raw = artifact_resolver(records["artifact_id"])
            return records_from_data(json.loads(raw.decode("utf-8")))

        # Fall back to locator as file path
        locator = records.get("locator")
        if not locator:
            raise ValueError(
                "artifact reference requires either artifact_resolver or locator"
            )

        with open(locator, "r", encoding="utf-8") as f:
            return records_from_data(json.load(f))

    return records_from_data(records)


def _category_warnings(model: CoverageModel) -> list[str]:
    """Warn about categories that fall back to the global ratio."""
    unknown = sorted({
        u.category for u in model.planned_units() if u.category not in CATEGORY_RANK
    })
    return [
        f"Unrecognized category '{category}' uses the global ratio"
        for category in unknown
    ]


def _build_result(
    model: CoverageModel,
    worklist: Worklist,
    total_gaps: int,
    by_category: dict[str, int],
) -> dict[str, Any]:
    """Build the result object for the response."""
    return {
        "global_achieved": round(worklist.global_achieved, 4),
        "global_required": worklist.global_required,
        "global_met": worklist.global_met,
        "units_analyzed": sum(1 for _ in model.planned_units()),
        "units_excluded": len(model) - sum(1 for _ in model.planned_units()),
        "total_gaps": total_gaps,
        "by_category": by_category,
        "gaps": [g.to_dict() for g in worklist],
    }


def _error_response(message: str) -> dict[str, Any]:
    """Build an error response."""
    return {
        "exit_code": 1,
        "result": {
            "global_achieved": 0,
            "global_required": 0,
            "global_met": False,
            "units_analyzed": 0,
            "units_excluded": 0,
            "total_gaps": 0,
            "by_category": {category: 0 for category in CATEGORY_RANK},
            "gaps": [],
        },
        "warnings": [message],
    }
