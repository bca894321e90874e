"""
Condition evaluation engine.
"""

import math
import re
from collections import OrderedDict
from typing import Callable, Iterable, List, Optional, Sequence

from shared.logging import get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from remote_config.conditions.hashing import micro_percentile, seeded_randomization_id
from remote_config.conditions.models import (
    RANDOMIZATION_ID_KEY,
    AndCondition,
    CustomSignalCondition,
    CustomSignalOperator,
    EvaluationContext,
    FalseCondition,
    NamedCondition,
    OneOfCondition,
    OrCondition,
    PercentCondition,
    PercentConditionOperator,
    TrueCondition,
)

# Versions longer than this are rejected; the backend enforces the same limit.
MAX_SEMANTIC_VERSION_SEGMENTS = 5

_NUMERIC_PREFIX = "NUMERIC_"
_SEMVER_PREFIX = "SEMANTIC_VERSION_"

# Plain decimal literals only; no underscores, "inf" or non-ASCII digits
_DECIMAL_NUMBER = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_VERSION_SEGMENT = re.compile(r"[0-9]+")

_STRING_OPERATORS = {
    CustomSignalOperator.STRING_CONTAINS,
    CustomSignalOperator.STRING_DOES_NOT_CONTAIN,
    CustomSignalOperator.STRING_EXACTLY_MATCHES,
    CustomSignalOperator.STRING_CONTAINS_REGEX,
}

_COMPARISONS = {
    "LESS_THAN": lambda r: r < 0,
    "LESS_EQUAL": lambda r: r <= 0,
    "EQUAL": lambda r: r == 0,
    "NOT_EQUAL": lambda r: r != 0,
    "GREATER_THAN": lambda r: r > 0,
    "GREATER_EQUAL": lambda r: r >= 0,
}


class ConditionEvaluator:
    """Evaluates named condition trees against an evaluation context.

    Evaluation never raises for malformed conditions or signals; anything
    that cannot be evaluated is false.
    """

    MAX_CONDITION_RECURSION_DEPTH = 10

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("remote_config.evaluator")
        self.metrics = metrics or get_metrics_collector()

    def evaluate_conditions(
        self, named_conditions: Iterable[NamedCondition], context: EvaluationContext
    ) -> "OrderedDict[str, bool]":
        """Evaluate each named condition; results keep the input order."""
        results: "OrderedDict[str, bool]" = OrderedDict()
        for named_condition in named_conditions:
            result = self.evaluate_condition(named_condition.condition, context)
            results[named_condition.name] = result
            self.metrics.record_condition(result)
        return results

    def evaluate_condition(self, condition: OneOfCondition, context: EvaluationContext,
                           nesting_level: int = 0) -> bool:
        if nesting_level >= self.MAX_CONDITION_RECURSION_DEPTH:
            self.logger.debug("Condition nesting too deep", nesting_level=nesting_level)
            return False

        if isinstance(condition, OrCondition):
            return self._evaluate_or(condition, context, nesting_level + 1)
        if isinstance(condition, AndCondition):
            return self._evaluate_and(condition, context, nesting_level + 1)
        if isinstance(condition, TrueCondition):
            return True
        if isinstance(condition, FalseCondition):
            return False
        if isinstance(condition, PercentCondition):
            return self._evaluate_percent(condition, context)
        if isinstance(condition, CustomSignalCondition):
            return self._evaluate_custom_signal(condition, context)

        self.logger.debug("Unrecognised condition", condition_type=type(condition).__name__)
        return False

    def _evaluate_or(self, condition: OrCondition, context: EvaluationContext, nesting_level: int) -> bool:
        for sub_condition in condition.conditions:
            if self.evaluate_condition(sub_condition, context, nesting_level + 1):
                return True
        return False

    def _evaluate_and(self, condition: AndCondition, context: EvaluationContext, nesting_level: int) -> bool:
        for sub_condition in condition.conditions:
            if not self.evaluate_condition(sub_condition, context, nesting_level + 1):
                return False
        return True

    def _evaluate_percent(self, condition: PercentCondition, context: EvaluationContext) -> bool:
        randomization_id = context.get(RANDOMIZATION_ID_KEY)
        if not randomization_id:
            self.logger.debug("Percent condition without randomization id")
            return False

        operator = condition.percent_operator
        if not operator:
            self.logger.debug("Percent condition without operator")
            return False

        micro_percent = condition.micro_percent or 0
        micro_range = condition.micro_percent_range
        lower_bound = (micro_range.lower_bound if micro_range else None) or 0
        upper_bound = (micro_range.upper_bound if micro_range else None) or 0

        instance_percentile = micro_percentile(
            seeded_randomization_id(condition.seed, str(randomization_id))
        )

        if operator == PercentConditionOperator.LESS_OR_EQUAL:
            return instance_percentile <= micro_percent
        if operator == PercentConditionOperator.GREATER_THAN:
            return instance_percentile > micro_percent
        if operator == PercentConditionOperator.BETWEEN:
            return lower_bound < instance_percentile <= upper_bound

        self.logger.debug("Unknown percent operator", operator=str(operator))
        return False

    def _evaluate_custom_signal(self, condition: CustomSignalCondition, context: EvaluationContext) -> bool:
        operator = condition.custom_signal_operator
        key = condition.custom_signal_key
        targets = condition.target_custom_signal_values

        if not operator or not key or targets is None:
            self.logger.debug("Incomplete custom signal condition", key=key)
            return False
        if not targets:
            return False

        actual = context.get(key)
        if actual is None:
            return False

        if operator in _STRING_OPERATORS:
            return _evaluate_string(operator, targets, actual)

        # Numeric and semantic version operators take a single target.
        name = operator.value
        if name.startswith(_NUMERIC_PREFIX):
            predicate = _COMPARISONS[name[len(_NUMERIC_PREFIX):]]
            return _compare_numbers(actual, targets[0], predicate)
        if name.startswith(_SEMVER_PREFIX):
            predicate = _COMPARISONS[name[len(_SEMVER_PREFIX):]]
            return _compare_semantic_versions(actual, targets[0], predicate)

        self.logger.debug("Unknown custom signal operator", operator=operator.value)
        return False


def _evaluate_string(operator: CustomSignalOperator, targets: Sequence[str], actual) -> bool:
    actual_value = _signal_to_string(actual).strip()
    target_values = [str(target).strip() for target in targets]

    if operator == CustomSignalOperator.STRING_CONTAINS:
        return any(target in actual_value for target in target_values)
    if operator == CustomSignalOperator.STRING_DOES_NOT_CONTAIN:
        return not any(target in actual_value for target in target_values)
    if operator == CustomSignalOperator.STRING_EXACTLY_MATCHES:
        return any(target == actual_value for target in target_values)
    return any(_regex_matches(target, actual_value) for target in target_values)


def _regex_matches(pattern: str, value: str) -> bool:
    try:
        return re.search(pattern, value) is not None
    except re.error:
        return False


def _signal_to_string(value) -> str:
    # Integral floats render without a fractional part, as the wire format does.
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not _DECIMAL_NUMBER.fullmatch(value):
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _compare_numbers(actual, target, predicate: Callable[[int], bool]) -> bool:
    actual_number = _to_number(actual)
    target_number = _to_number(target)
    if actual_number is None or target_number is None:
        return False
    return predicate(_sign(actual_number, target_number))


def _parse_version(value) -> Optional[List[int]]:
    segments = _signal_to_string(value).split(".")
    if len(segments) > MAX_SEMANTIC_VERSION_SEGMENTS:
        return None
    parsed = []
    for segment in segments:
        segment = segment.strip()
        if not _VERSION_SEGMENT.fullmatch(segment):
            return None
        parsed.append(int(segment))
    return parsed


def _compare_semantic_versions(actual, target, predicate: Callable[[int], bool]) -> bool:
    actual_version = _parse_version(actual)
    target_version = _parse_version(target)
    if actual_version is None or target_version is None:
        return False

    for index in range(MAX_SEMANTIC_VERSION_SEGMENTS):
        actual_segment = actual_version[index] if index < len(actual_version) else 0
        target_segment = target_version[index] if index < len(target_version) else 0
        if actual_segment != target_segment:
            return predicate(_sign(actual_segment, target_segment))
    return predicate(0)


def _sign(left, right) -> int:
    if left < right:
        return -1
    if left > right:
        return 1
    return 0
