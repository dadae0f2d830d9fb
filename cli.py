"""
Coverage-Planner CLI

Reads per-unit coverage records and prints the prioritized worklist
of units that still need tests.

    coverage-planner records.json --policy policy.json --fail-on error-handling
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from planner.errors import InvalidThreshold, MalformedRecord, PolicyError
from planner.gaps import GapPlanner
from planner.model import CATEGORY_RANK, CoverageModel
from planner.policy import load_policy
from planner.worklist import FAIL_ON_CHOICES, Worklist, diff_worklists, format_worklist, gate

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def _load_planner(policy_path):
    """Build the planner, from a policy file when one is given."""
    if not policy_path:
        return GapPlanner()
    try:
        return GapPlanner(load_policy(policy_path))
    except InvalidThreshold as e:
        raise PolicyError(f"Invalid policy file {policy_path}: {e}") from e


def _print_baseline_diff(baseline_path: Path, worklist: Worklist, categories=None) -> None:
    baseline = Worklist.from_json(baseline_path.read_text(encoding="utf-8"))
    if categories:
        baseline = baseline.filter(categories)
    diff = diff_worklists(baseline, worklist)

    print(f"\nSince {baseline_path}:")
    print(f"  Resolved:  {len(diff.resolved)}")
    print(f"  New:       {len(diff.introduced)}")
    print(f"  Remaining: {len(diff.remaining)}")
    for gap in diff.introduced:
        print(f"    + {gap.unit}")


def cmd_plan(args):
    """Plan which units need tests next."""
    records_path = Path(args.records_json)
    if not records_path.exists():
        print(f"Records file not found: {records_path}")
        return 1

    try:
        model = CoverageModel.from_json(str(records_path))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse records file: {e}")
        return 1
    except MalformedRecord as e:
        logger.error(f"Malformed record: {e}")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read records file: {e}")
        return 1

    try:
        planner = _load_planner(args.policy)
    except FileNotFoundError as e:
        logger.error(f"Policy file not found: {e}")
        return 1
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse policy file: {e}")
        return 1
    except PolicyError as e:
        logger.error(str(e))
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read policy file: {e}")
        return 1

    worklist = planner.plan(model)

    if args.category:
        worklist = worklist.filter(args.category)

    # Gate, count and compare on everything that matched, not just what gets shown
    exit_code = gate(worklist, args.fail_on)

    if args.format == "json":
        print(worklist.limit(args.limit).to_json())
    else:
        max_items = args.limit or (None if args.verbose else 10)
        print(format_worklist(worklist, max_items=max_items))

    if args.baseline:
        baseline_path = Path(args.baseline)
        try:
            _print_baseline_diff(baseline_path, worklist, args.category)
        except FileNotFoundError:
            logger.warning(f"Baseline not found: {baseline_path}")
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable baseline {baseline_path}: {e}")

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(worklist.to_json(), encoding="utf-8")
        # Keep stdout parseable in json mode
        stream = sys.stderr if args.format == "json" else sys.stdout
        print(f"\nWrote {len(worklist)} gaps to {output_path}", file=stream)

    return exit_code


def main():
    parser = argparse.ArgumentParser(
        prog="coverage-planner",
        description="Find under-covered units and plan which tests to write next"
    )
    parser.add_argument("records_json", help="Path to per-unit coverage records (JSON)")
    parser.add_argument("--policy", help="Path to a threshold policy (JSON)")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    parser.add_argument("-o", "--output", help="Write the worklist JSON to file (not cut by --limit)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show the full worklist")
    parser.add_argument(
        "--category",
        action="append",
        choices=list(CATEGORY_RANK),
        help="Only show gaps in this category (repeatable)",
    )
    parser.add_argument("--limit", type=int, help="Limit number of gaps shown")
    parser.add_argument(
        "--fail-on",
        choices=FAIL_ON_CHOICES,
        default="none",
        help="Exit with 2 when matching gaps exist",
    )
    parser.add_argument("--baseline", help="Compare against a previously written worklist")

    args = parser.parse_args()
    return cmd_plan(args)


if __name__ == "__main__":
    sys.exit(main())
