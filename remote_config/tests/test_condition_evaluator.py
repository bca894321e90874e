"""
Unit tests for ConditionEvaluator.
"""

from unittest.mock import MagicMock, patch

import pytest

from shared.metrics import MetricsCollector
from remote_config.conditions.evaluator import ConditionEvaluator
from remote_config.conditions.hashing import hash_seeded_randomization_id, micro_percentile
from remote_config.conditions.models import (
    AndCondition,
    CustomSignalCondition,
    CustomSignalOperator,
    FalseCondition,
    MicroPercentRange,
    NamedCondition,
    OrCondition,
    PercentCondition,
    PercentConditionOperator,
    TrueCondition,
    UnknownCondition,
    condition_from_dict,
)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def evaluator(metrics):
    return ConditionEvaluator(metrics=metrics)


def nested_or(depth, leaf):
    condition = leaf
    for _ in range(depth):
        condition = OrCondition((condition,))
    return condition


class TestConditionTree:
    """Test cases for boolean composition."""

    def test_results_keep_input_order(self, evaluator, metrics):
        conditions = [
            NamedCondition("zeta", TrueCondition()),
            NamedCondition("alpha", FalseCondition()),
            NamedCondition("mid", TrueCondition()),
        ]

        results = evaluator.evaluate_conditions(conditions, {})

        assert list(results.items()) == [("zeta", True), ("alpha", False), ("mid", True)]
        assert metrics.sample("condition_evaluations_total", result="true") == 2
        assert metrics.sample("condition_evaluations_total", result="false") == 1

    def test_empty_or_is_false(self, evaluator):
        assert evaluator.evaluate_condition(OrCondition(), {}) is False

    def test_empty_and_is_true(self, evaluator):
        assert evaluator.evaluate_condition(AndCondition(), {}) is True

    def test_or_short_circuits(self, evaluator):
        condition = OrCondition((FalseCondition(), TrueCondition(), UnknownCondition()))

        assert evaluator.evaluate_condition(condition, {}) is True

    def test_and_requires_every_child(self, evaluator):
        assert evaluator.evaluate_condition(AndCondition((TrueCondition(), TrueCondition())), {}) is True
        assert evaluator.evaluate_condition(AndCondition((TrueCondition(), FalseCondition())), {}) is False

    def test_unknown_condition_is_false(self, evaluator):
        assert evaluator.evaluate_condition(UnknownCondition(), {}) is False
        assert evaluator.evaluate_condition(None, {}) is False

    def test_shallow_nesting_evaluates(self, evaluator):
        assert evaluator.evaluate_condition(nested_or(4, TrueCondition()), {}) is True

    @pytest.mark.parametrize("depth", [5, 11, 50])
    def test_deep_nesting_is_cut_off(self, evaluator, depth):
        assert evaluator.evaluate_condition(nested_or(depth, TrueCondition()), {}) is False

    def test_nested_and_cutoff_is_false(self, evaluator):
        condition = TrueCondition()
        for _ in range(11):
            condition = AndCondition((condition,))

        assert evaluator.evaluate_condition(condition, {}) is False


class TestPercentCondition:
    """Test cases for percent conditions and their hashing."""

    @pytest.mark.parametrize("value,bucket", [
        ("", 75154353),
        ("1footrue", 29638711),
        ("2applefalse", 6483259),
        ("3true", 97771312),
        ("3.three", 16282844),
        ("2.two", 60657217),
        ("s.three", 34983707),
        ("s.two", 14932309),
        ("three", 91175720),
        ("two", 87120769),
        ("hello", 81751320),
        ("abc", 60161385),
        ("a", 187677),
        ("😊", 66290183),
        ("😀", 28097395),
    ])
    def test_golden_buckets(self, value, bucket):
        assert micro_percentile(value) == bucket

    @pytest.mark.parametrize("fingerprint,expected", [
        (9223372036854775807, 9223372036854775807),
        (9223372036854775808, 9223372036854775808),
        (9223372036854775809, 9223372036854775807),
        (16081085603393958147, 2365658470315593469),
        (0, 0),
    ])
    def test_signed_reduction(self, fingerprint, expected):
        fake_farmhash = MagicMock()
        fake_farmhash.fingerprint64.return_value = fingerprint

        with patch("remote_config.conditions.hashing.farmhash", fake_farmhash):
            assert hash_seeded_randomization_id("anything") == expected

    def test_most_negative_fingerprint_bucket(self):
        fake_farmhash = MagicMock()
        fake_farmhash.fingerprint64.return_value = 1 << 63

        with patch("remote_config.conditions.hashing.farmhash", fake_farmhash):
            assert micro_percentile("anything") == (1 << 63) % 100_000_000 == 54775808

    @pytest.mark.parametrize("seed,randomization_id,expected", [
        ("3", "three", True),
        ("2", "two", False),
    ])
    def test_between_half(self, evaluator, seed, randomization_id, expected):
        condition = PercentCondition(
            percent_operator=PercentConditionOperator.BETWEEN,
            seed=seed,
            micro_percent_range=MicroPercentRange(lower_bound=0, upper_bound=50_000_000),
        )

        assert evaluator.evaluate_condition(condition, {"randomizationId": randomization_id}) is expected

    @pytest.mark.parametrize("randomization_id,expected", [("😊", True), ("😀", False)])
    def test_unseeded_greater_than_half(self, evaluator, randomization_id, expected):
        condition = PercentCondition(
            percent_operator=PercentConditionOperator.GREATER_THAN, micro_percent=50_000_000
        )

        assert evaluator.evaluate_condition(condition, {"randomizationId": randomization_id}) is expected

    def test_less_or_equal_is_inclusive(self, evaluator):
        context = {"randomizationId": "three"}

        at_bucket = PercentCondition(PercentConditionOperator.LESS_OR_EQUAL, micro_percent=16282844, seed="3")
        below_bucket = PercentCondition(PercentConditionOperator.LESS_OR_EQUAL, micro_percent=16282843, seed="3")

        assert evaluator.evaluate_condition(at_bucket, context) is True
        assert evaluator.evaluate_condition(below_bucket, context) is False

    def test_between_lower_bound_is_exclusive(self, evaluator):
        context = {"randomizationId": "three"}

        def between(lower, upper):
            return PercentCondition(
                PercentConditionOperator.BETWEEN, seed="3",
                micro_percent_range=MicroPercentRange(lower_bound=lower, upper_bound=upper),
            )

        assert evaluator.evaluate_condition(between(16282844, 20_000_000), context) is False
        assert evaluator.evaluate_condition(between(16282843, 16282844), context) is True

    def test_unset_values_default_to_zero(self, evaluator):
        context = {"randomizationId": "three"}

        assert evaluator.evaluate_condition(
            PercentCondition(PercentConditionOperator.GREATER_THAN, seed="3"), context
        ) is True
        assert evaluator.evaluate_condition(
            PercentCondition(PercentConditionOperator.BETWEEN, seed="3"), context
        ) is False

    @pytest.mark.parametrize("condition,context", [
        (PercentCondition(PercentConditionOperator.GREATER_THAN, micro_percent=0), {}),
        (PercentCondition(PercentConditionOperator.GREATER_THAN, micro_percent=0), {"randomizationId": ""}),
        (PercentCondition(None, micro_percent=0), {"randomizationId": "three"}),
        (PercentCondition(PercentConditionOperator.UNKNOWN, micro_percent=0), {"randomizationId": "three"}),
    ])
    def test_incomplete_conditions_are_false(self, evaluator, condition, context):
        assert evaluator.evaluate_condition(condition, context) is False


def signal(operator, targets, key="signal"):
    return CustomSignalCondition(operator, key, tuple(targets) if targets is not None else None)


class TestCustomSignalCondition:
    """Test cases for custom signal conditions."""

    @pytest.mark.parametrize("operator,targets,actual,expected", [
        (CustomSignalOperator.STRING_CONTAINS, ["foo", "bar"], "hello bar", True),
        (CustomSignalOperator.STRING_CONTAINS, ["foo"], "hello", False),
        (CustomSignalOperator.STRING_CONTAINS, [" ell "], "hello", True),
        (CustomSignalOperator.STRING_DOES_NOT_CONTAIN, ["foo", "bar"], "hello", True),
        (CustomSignalOperator.STRING_DOES_NOT_CONTAIN, ["foo", "ell"], "hello", False),
        (CustomSignalOperator.STRING_EXACTLY_MATCHES, ["  hello "], " hello", True),
        (CustomSignalOperator.STRING_EXACTLY_MATCHES, ["hell"], "hello", False),
        (CustomSignalOperator.STRING_EXACTLY_MATCHES, ["5"], 5.0, True),
        (CustomSignalOperator.STRING_CONTAINS_REGEX, [r"^he.*o$"], "hello", True),
        (CustomSignalOperator.STRING_CONTAINS_REGEX, [r"\d+"], "no digits", False),
        (CustomSignalOperator.STRING_CONTAINS_REGEX, ["(unclosed"], "(unclosed", False),
    ])
    def test_string_operators(self, evaluator, operator, targets, actual, expected):
        assert evaluator.evaluate_condition(signal(operator, targets), {"signal": actual}) is expected

    @pytest.mark.parametrize("operator,target,actual,expected", [
        (CustomSignalOperator.NUMERIC_GREATER_EQUAL, "5", 5.0, True),
        (CustomSignalOperator.NUMERIC_GREATER_EQUAL, "5", "not a number", False),
        (CustomSignalOperator.NUMERIC_LESS_THAN, "5", "4.99", True),
        (CustomSignalOperator.NUMERIC_LESS_EQUAL, "-1", -1, True),
        (CustomSignalOperator.NUMERIC_EQUAL, " 2.0 ", 2, True),
        (CustomSignalOperator.NUMERIC_NOT_EQUAL, "2", 3, True),
        (CustomSignalOperator.NUMERIC_GREATER_THAN, "2", 2, False),
        (CustomSignalOperator.NUMERIC_EQUAL, "nan", "nan", False),
        (CustomSignalOperator.NUMERIC_EQUAL, "abc", 1, False),
        (CustomSignalOperator.NUMERIC_EQUAL, "1000", "1_000", False),
        (CustomSignalOperator.NUMERIC_GREATER_THAN, "5", "inf", False),
        (CustomSignalOperator.NUMERIC_GREATER_THAN, "5", "Infinity", False),
        (CustomSignalOperator.NUMERIC_EQUAL, "3", "\u0663", False),
        (CustomSignalOperator.NUMERIC_EQUAL, "1e3", ".1e4", True),
    ])
    def test_numeric_operators(self, evaluator, operator, target, actual, expected):
        assert evaluator.evaluate_condition(signal(operator, [target]), {"signal": actual}) is expected

    @pytest.mark.parametrize("operator,target,actual,expected", [
        (CustomSignalOperator.SEMANTIC_VERSION_EQUAL, "5", 5.0, True),
        (CustomSignalOperator.SEMANTIC_VERSION_EQUAL, "5.0.0", "5", True),
        (CustomSignalOperator.SEMANTIC_VERSION_LESS_THAN, "1.10.0", "1.9.9", True),
        (CustomSignalOperator.SEMANTIC_VERSION_LESS_EQUAL, "1.2.3", "1.2.3", True),
        (CustomSignalOperator.SEMANTIC_VERSION_GREATER_THAN, "1.2", "1.2.0.1", True),
        (CustomSignalOperator.SEMANTIC_VERSION_GREATER_EQUAL, "2", "1.99", False),
        (CustomSignalOperator.SEMANTIC_VERSION_NOT_EQUAL, "1.0", "1.0.1", True),
        (CustomSignalOperator.SEMANTIC_VERSION_EQUAL, "1.a", "1.a", False),
        (CustomSignalOperator.SEMANTIC_VERSION_EQUAL, "1.2.3.4.5.6", "1.2.3.4.5.6", False),
        (CustomSignalOperator.SEMANTIC_VERSION_EQUAL, "1.2.3.4.5", "1.2.3.4.5", True),
        (CustomSignalOperator.SEMANTIC_VERSION_EQUAL, "3", "\u0663", False),
        (CustomSignalOperator.SEMANTIC_VERSION_EQUAL, "1.0", "1.", False),
    ])
    def test_semantic_version_operators(self, evaluator, operator, target, actual, expected):
        assert evaluator.evaluate_condition(signal(operator, [target]), {"signal": actual}) is expected

    @pytest.mark.parametrize("condition", [
        signal(None, ["x"]),
        signal(CustomSignalOperator.STRING_CONTAINS, ["x"], key=None),
        signal(CustomSignalOperator.STRING_CONTAINS, None),
        signal(CustomSignalOperator.STRING_CONTAINS, []),
        signal(CustomSignalOperator.UNKNOWN, ["x"]),
    ])
    def test_incomplete_conditions_are_false(self, evaluator, condition):
        assert evaluator.evaluate_condition(condition, {"signal": "x"}) is False

    def test_missing_signal_is_false(self, evaluator):
        condition = signal(CustomSignalOperator.STRING_DOES_NOT_CONTAIN, ["x"])

        assert evaluator.evaluate_condition(condition, {"other": "y"}) is False


class TestConditionFromDict:
    """Test cases for parsing the wire shape."""

    def test_parses_nested_tree(self):
        condition = condition_from_dict({
            "orCondition": {"conditions": [{
                "andCondition": {"conditions": [
                    {"true": {}},
                    {"percent": {
                        "percentOperator": "BETWEEN",
                        "seed": "3",
                        "microPercentRange": {"microPercentLowerBound": 0, "microPercentUpperBound": 50000000},
                    }},
                    {"customSignal": {
                        "customSignalOperator": "NUMERIC_GREATER_EQUAL",
                        "customSignalKey": "users",
                        "targetCustomSignalValues": ["5"],
                    }},
                ]},
            }]},
        })

        assert condition == OrCondition((AndCondition((
            TrueCondition(),
            PercentCondition(
                PercentConditionOperator.BETWEEN, seed="3",
                micro_percent_range=MicroPercentRange(0, 50_000_000),
            ),
            CustomSignalCondition(CustomSignalOperator.NUMERIC_GREATER_EQUAL, "users", ("5",)),
        )),))

    def test_first_case_wins(self):
        assert condition_from_dict({"false": {}, "true": {}}) == TrueCondition()
        assert condition_from_dict({"andCondition": {}, "orCondition": {}}) == OrCondition()

    def test_unknown_operator(self):
        condition = condition_from_dict({"percent": {"percentOperator": "SOMETIMES"}})

        assert condition.percent_operator == PercentConditionOperator.UNKNOWN

    def test_unrecognised_node(self):
        assert isinstance(condition_from_dict({"sometimes": {}}), UnknownCondition)
        assert isinstance(condition_from_dict("true"), UnknownCondition)
