"""CLI tests for coverage-planner."""

import json
import shutil
from pathlib import Path

import pytest

import cli

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _write_records(tmp_path: Path, records: list) -> Path:
    records_path = tmp_path / "records.json"
    records_path.write_text(json.dumps({"units": records}))
    return records_path


@pytest.fixture
def records_path(tmp_path):
    path = tmp_path / "records.json"
    shutil.copy(FIXTURES_DIR / "records.json", path)
    return path


def test_main_no_args_prints_usage(capsys, monkeypatch):
    monkeypatch.setattr("sys.argv", ["coverage-planner"])
    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    assert excinfo.value.code == 2
    err = capsys.readouterr().err
    assert "records_json" in err


def test_missing_records_file(capsys, monkeypatch, tmp_path):
    missing = tmp_path / "nope.json"
    monkeypatch.setattr("sys.argv", ["coverage-planner", str(missing)])
    exit_code = cli.main()
    out = capsys.readouterr().out

    assert exit_code == 1
    assert "Records file not found" in out


def test_malformed_records(caplog, monkeypatch, tmp_path):
    records_path = _write_records(tmp_path, [
        {"path": "a.py", "total_lines": 3, "covered_lines": 5},
    ])
    monkeypatch.setattr("sys.argv", ["coverage-planner", str(records_path)])

    assert cli.main() == 1
    assert "Malformed record" in caplog.text
    assert "a.py" in caplog.text


def test_invalid_records_json(caplog, monkeypatch, tmp_path):
    records_path = tmp_path / "records.json"
    records_path.write_text("not valid json")
    monkeypatch.setattr("sys.argv", ["coverage-planner", str(records_path)])

    assert cli.main() == 1
    assert "Failed to parse records file" in caplog.text


def test_invalid_policy(caplog, monkeypatch, records_path, tmp_path):
    policy_path = tmp_path / "policy.json"
    policy_path.write_text(json.dumps({"categories": {"core-logic": 1.5}}))
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "--policy", str(policy_path)],
    )

    assert cli.main() == 1
    assert "Invalid policy file" in caplog.text


def test_text_output(capsys, monkeypatch, records_path):
    monkeypatch.setattr("sys.argv", ["coverage-planner", str(records_path)])
    exit_code = cli.main()
    out = capsys.readouterr().out

    assert exit_code == 0
    assert "Global coverage: 83.8%" in out
    assert "src/orders/service.py" in out
    assert "src/orders/migrations.py" not in out


def test_json_output(capsys, monkeypatch, records_path):
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "--format", "json"],
    )
    exit_code = cli.main()
    out = capsys.readouterr().out

    assert exit_code == 0
    data = json.loads(out)
    assert [g["unit"] for g in data["gaps"]] == [
        "<codebase>",
        "src/orders/service.py",
        "src/orders/errors.py",
        "src/orders/guards.py",
    ]


def test_policy_file(capsys, monkeypatch, records_path):
    """Test a looser policy clears every gap in the fixture."""
    monkeypatch.setattr(
        "sys.argv",
        [
            "coverage-planner",
            str(records_path),
            "--policy",
            str(FIXTURES_DIR / "policy.json"),
            "--fail-on",
            "any",
        ],
    )
    exit_code = cli.main()
    out = capsys.readouterr().out

    assert exit_code == 0
    assert "No coverage gaps found" in out


def test_category_filter_and_limit(capsys, monkeypatch, records_path):
    monkeypatch.setattr(
        "sys.argv",
        [
            "coverage-planner",
            str(records_path),
            "--format",
            "json",
            "--category",
            "error-handling",
            "--category",
            "defensive",
            "--limit",
            "2",
        ],
    )
    cli.main()
    data = json.loads(capsys.readouterr().out)

    assert [g["unit"] for g in data["gaps"]] == ["<codebase>", "src/orders/errors.py"]


@pytest.mark.parametrize("fail_on,expected", [
    ("none", 0),
    ("any", 2),
    ("global", 2),
    ("core-logic", 2),
])
def test_fail_on(monkeypatch, records_path, fail_on, expected):
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "--fail-on", fail_on],
    )
    assert cli.main() == expected


def test_fail_on_gates_before_limit(monkeypatch, records_path):
    """Test gating sees gaps hidden by --limit."""
    monkeypatch.setattr(
        "sys.argv",
        [
            "coverage-planner",
            str(records_path),
            "--category",
            "defensive",
            "--limit",
            "1",
            "--fail-on",
            "defensive",
        ],
    )
    assert cli.main() == 2


def test_output_file_written(capsys, monkeypatch, records_path, tmp_path):
    output_path = tmp_path / "worklist.json"
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "-o", str(output_path)],
    )

    exit_code = cli.main()
    out = capsys.readouterr().out

    assert exit_code == 0
    assert output_path.exists()
    contents = json.loads(output_path.read_text())
    assert len(contents["gaps"]) == 4
    assert "Wrote 4 gaps" in out


def test_baseline_diff(capsys, monkeypatch, records_path, tmp_path):
    """Test comparing against an earlier run's worklist."""
    baseline_path = tmp_path / "baseline.json"
    baseline_path.write_text(json.dumps({
        "global_achieved": 0.7,
        "global_required": 0.9,
        "gaps": [
            {
                "unit": "src/orders/validation.py",
                "category": "edge-case",
                "required": 0.9,
                "achieved": 0.5,
                "deficit": 0.4,
                "remaining_lines": 20,
                "remaining_branches": 0,
                "uncovered_lines": 25,
                "uncovered_branches": 0,
            },
            {
                "unit": "src/orders/service.py",
                "category": "core-logic",
                "required": 0.95,
                "achieved": 0.5,
                "deficit": 0.45,
                "remaining_lines": 45,
                "remaining_branches": 0,
                "uncovered_lines": 50,
                "uncovered_branches": 0,
            },
        ],
    }))
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "--baseline", str(baseline_path)],
    )

    assert cli.main() == 0
    out = capsys.readouterr().out

    assert "Resolved:  1" in out
    assert "New:       3" in out
    assert "Remaining: 1" in out
    assert "+ src/orders/errors.py" in out


def test_baseline_diff_ignores_limit(capsys, monkeypatch, records_path, tmp_path):
    """Test --limit doesn't make hidden gaps look resolved."""
    baseline_path = tmp_path / "baseline.json"
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "-o", str(baseline_path)],
    )
    assert cli.main() == 0
    assert len(json.loads(baseline_path.read_text())["gaps"]) == 4
    capsys.readouterr()

    monkeypatch.setattr(
        "sys.argv",
        [
            "coverage-planner",
            str(records_path),
            "--limit",
            "1",
            "--baseline",
            str(baseline_path),
        ],
    )
    assert cli.main() == 0
    out = capsys.readouterr().out

    assert "Resolved:  0" in out
    assert "New:       0" in out
    assert "Remaining: 4" in out


def test_baseline_diff_respects_category_filter(capsys, monkeypatch, records_path, tmp_path):
    baseline_path = tmp_path / "baseline.json"
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "-o", str(baseline_path)],
    )
    cli.main()
    capsys.readouterr()

    monkeypatch.setattr(
        "sys.argv",
        [
            "coverage-planner",
            str(records_path),
            "--category",
            "defensive",
            "--baseline",
            str(baseline_path),
        ],
    )
    assert cli.main() == 0
    out = capsys.readouterr().out

    assert "Resolved:  0" in out
    assert "Remaining: 2" in out


def test_text_output_counts_ignore_limit(capsys, monkeypatch, records_path):
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "--limit", "1"],
    )
    assert cli.main() == 0
    out = capsys.readouterr().out

    assert "Units below target: 3" in out
    assert "  1. [global] <codebase>" in out
    assert "src/orders/service.py" not in out
    assert "... and 3 more" in out


def test_records_not_utf8(caplog, monkeypatch, tmp_path):
    records_path = tmp_path / "records.json"
    records_path.write_bytes(b"\xff\xfe\x00garbage")
    monkeypatch.setattr("sys.argv", ["coverage-planner", str(records_path)])

    assert cli.main() == 1
    assert "Failed to read records file" in caplog.text


def test_records_path_is_directory(caplog, monkeypatch, tmp_path):
    monkeypatch.setattr("sys.argv", ["coverage-planner", str(tmp_path)])

    assert cli.main() == 1
    assert "Failed to read records file" in caplog.text


def test_policy_not_utf8(caplog, monkeypatch, records_path, tmp_path):
    policy_path = tmp_path / "policy.json"
    policy_path.write_bytes(b"\xff\xfe\x00garbage")
    monkeypatch.setattr(
        "sys.argv",
        ["coverage-planner", str(records_path), "--policy", str(policy_path)],
    )

    assert cli.main() == 1
    assert "Failed to read policy file" in caplog.text
