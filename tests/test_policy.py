"""Tests for planner.policy module."""

import json
import pytest

from planner.errors import InvalidThreshold
from planner.policy import DEFAULT_RATIOS, ThresholdPolicy, load_policy


class TestThresholdPolicy:
    """Tests for ThresholdPolicy construction and lookups."""

    def test_defaults(self):
        """Test the default table and global ratio."""
        policy = ThresholdPolicy()

        assert policy.required_ratio("core-logic") == 0.95
        assert policy.required_ratio("error-handling") == 0.90
        assert policy.required_ratio("edge-case") == 0.90
        assert policy.required_ratio("defensive") == 0.85
        assert policy.global_ratio() == 0.90

    def test_overrides_merge_over_defaults(self):
        """Test a partial table keeps defaults for the rest."""
        policy = ThresholdPolicy({"core-logic": 0.8}, global_ratio=0.75)

        assert policy.required_ratio("core-logic") == 0.8
        assert policy.required_ratio("defensive") == 0.85
        assert policy.global_ratio() == 0.75

    def test_unknown_category_uses_global(self):
        """Test unrecognized categories degrade to the global ratio."""
        policy = ThresholdPolicy(global_ratio=0.7)

        assert policy.required_ratio("integration") == 0.7
        assert not policy.knows("integration")
        assert policy.knows("defensive")

    def test_custom_category(self):
        """Test new categories can be configured explicitly."""
        policy = ThresholdPolicy({"integration": 0.6})
        assert policy.required_ratio("integration") == 0.6

    @pytest.mark.parametrize("value", [-0.1, 1.01, float("nan"), "0.9", None, True])
    def test_invalid_category_ratio(self, value):
        """Test out-of-range or non-numeric ratios are rejected."""
        with pytest.raises(InvalidThreshold) as excinfo:
            ThresholdPolicy({"core-logic": value})

        assert excinfo.value.category == "core-logic"

    def test_invalid_global_ratio(self):
        with pytest.raises(InvalidThreshold) as excinfo:
            ThresholdPolicy(global_ratio=1.5)

        assert excinfo.value.category == "global"
        assert excinfo.value.value == 1.5

    def test_bounds_are_inclusive(self):
        policy = ThresholdPolicy({"core-logic": 1.0, "defensive": 0.0}, global_ratio=0)
        assert policy.required_ratio("core-logic") == 1.0
        assert policy.required_ratio("defensive") == 0.0

    def test_ratios_are_read_only(self):
        """Test the policy table can't be changed after construction."""
        policy = ThresholdPolicy()
        with pytest.raises(TypeError):
            policy.ratios["core-logic"] = 0.1
        assert DEFAULT_RATIOS["core-logic"] == 0.95

    def test_round_trip_dict(self):
        policy = ThresholdPolicy({"edge-case": 0.8}, global_ratio=0.85)
        assert ThresholdPolicy.from_dict(policy.to_dict()) == policy


class TestFromDict:
    """Tests for building policies from declarative tables."""

    def test_from_dict(self):
        policy = ThresholdPolicy.from_dict({"categories": {"defensive": 0.5}, "global": 0.6})

        assert policy.required_ratio("defensive") == 0.5
        assert policy.global_ratio() == 0.6

    def test_from_empty_dict(self):
        assert ThresholdPolicy.from_dict({}) == ThresholdPolicy()

    def test_from_dict_bad_categories(self):
        with pytest.raises(InvalidThreshold):
            ThresholdPolicy.from_dict({"categories": [0.9]})

    def test_from_dict_not_a_mapping(self):
        with pytest.raises(InvalidThreshold):
            ThresholdPolicy.from_dict([0.9])


class TestLoadPolicy:
    """Tests for load_policy."""

    def test_load_policy(self, tmp_path):
        policy_file = tmp_path / "policy.json"
        policy_file.write_text(json.dumps({"categories": {"core-logic": 0.99}}))

        policy = load_policy(str(policy_file))
        assert policy.required_ratio("core-logic") == 0.99
        assert policy.global_ratio() == 0.90

    def test_load_policy_invalid_ratio(self, tmp_path):
        policy_file = tmp_path / "policy.json"
        policy_file.write_text(json.dumps({"global": 2}))

        with pytest.raises(InvalidThreshold):
            load_policy(str(policy_file))

    def test_load_policy_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_policy("nonexistent.json")
