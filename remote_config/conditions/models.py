"""
Condition tree data models.

A condition node is exactly one of the dataclasses below; ``OneOfCondition``
is their union. ``condition_from_dict`` builds a tree from the wire shape
(``{"orCondition": {...}}``, ``{"percent": {...}}`` and so on).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

RANDOMIZATION_ID_KEY = "randomizationId"

# Signals supplied per evaluation; ``randomizationId`` drives percent conditions.
EvaluationContext = Mapping[str, Union[str, int, float]]


class PercentConditionOperator(str, Enum):
    """Percent condition operators."""
    UNKNOWN = "UNKNOWN"
    LESS_OR_EQUAL = "LESS_OR_EQUAL"
    GREATER_THAN = "GREATER_THAN"
    BETWEEN = "BETWEEN"


class CustomSignalOperator(str, Enum):
    """Custom signal operators."""
    UNKNOWN = "UNKNOWN"
    NUMERIC_LESS_THAN = "NUMERIC_LESS_THAN"
    NUMERIC_LESS_EQUAL = "NUMERIC_LESS_EQUAL"
    NUMERIC_EQUAL = "NUMERIC_EQUAL"
    NUMERIC_NOT_EQUAL = "NUMERIC_NOT_EQUAL"
    NUMERIC_GREATER_THAN = "NUMERIC_GREATER_THAN"
    NUMERIC_GREATER_EQUAL = "NUMERIC_GREATER_EQUAL"
    STRING_CONTAINS = "STRING_CONTAINS"
    STRING_DOES_NOT_CONTAIN = "STRING_DOES_NOT_CONTAIN"
    STRING_EXACTLY_MATCHES = "STRING_EXACTLY_MATCHES"
    STRING_CONTAINS_REGEX = "STRING_CONTAINS_REGEX"
    SEMANTIC_VERSION_LESS_THAN = "SEMANTIC_VERSION_LESS_THAN"
    SEMANTIC_VERSION_LESS_EQUAL = "SEMANTIC_VERSION_LESS_EQUAL"
    SEMANTIC_VERSION_EQUAL = "SEMANTIC_VERSION_EQUAL"
    SEMANTIC_VERSION_NOT_EQUAL = "SEMANTIC_VERSION_NOT_EQUAL"
    SEMANTIC_VERSION_GREATER_THAN = "SEMANTIC_VERSION_GREATER_THAN"
    SEMANTIC_VERSION_GREATER_EQUAL = "SEMANTIC_VERSION_GREATER_EQUAL"


@dataclass(frozen=True)
class MicroPercentRange:
    """Lower-exclusive, upper-inclusive bounds in micro-percent."""
    lower_bound: Optional[int] = None
    upper_bound: Optional[int] = None


@dataclass(frozen=True)
class OrCondition:
    conditions: Tuple["OneOfCondition", ...] = ()


@dataclass(frozen=True)
class AndCondition:
    conditions: Tuple["OneOfCondition", ...] = ()


@dataclass(frozen=True)
class TrueCondition:
    pass


@dataclass(frozen=True)
class FalseCondition:
    pass


@dataclass(frozen=True)
class PercentCondition:
    """Targets a stable slice of randomization ids."""
    percent_operator: Optional[PercentConditionOperator] = None
    micro_percent: Optional[int] = None
    seed: Optional[str] = None
    micro_percent_range: Optional[MicroPercentRange] = None


@dataclass(frozen=True)
class CustomSignalCondition:
    """Compares a caller-supplied signal against target values."""
    custom_signal_operator: Optional[CustomSignalOperator] = None
    custom_signal_key: Optional[str] = None
    target_custom_signal_values: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class UnknownCondition:
    """A node with no recognised case; always evaluates to false."""
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


OneOfCondition = Union[
    OrCondition,
    AndCondition,
    TrueCondition,
    FalseCondition,
    PercentCondition,
    CustomSignalCondition,
    UnknownCondition,
]


@dataclass(frozen=True)
class NamedCondition:
    name: str
    condition: OneOfCondition


def condition_from_dict(data: Mapping[str, Any]) -> OneOfCondition:
    """Build a condition node from its wire representation.

    When several cases are present the first of ``orCondition``,
    ``andCondition``, ``true``, ``false``, ``percent``, ``customSignal`` wins.
    """
    if not isinstance(data, Mapping):
        return UnknownCondition()

    if data.get("orCondition") is not None:
        return OrCondition(_children(data["orCondition"]))
    if data.get("andCondition") is not None:
        return AndCondition(_children(data["andCondition"]))
    if data.get("true") is not None:
        return TrueCondition()
    if data.get("false") is not None:
        return FalseCondition()
    if data.get("percent") is not None:
        return _percent_from_dict(data["percent"])
    if data.get("customSignal") is not None:
        return _custom_signal_from_dict(data["customSignal"])
    return UnknownCondition(dict(data))


def named_conditions_from_list(items: List[Mapping[str, Any]]) -> List[NamedCondition]:
    return [
        NamedCondition(name=item["name"], condition=condition_from_dict(item.get("condition", {})))
        for item in items
    ]


def _children(data: Mapping[str, Any]) -> Tuple[OneOfCondition, ...]:
    return tuple(condition_from_dict(child) for child in (data.get("conditions") or []))


def _percent_from_dict(data: Mapping[str, Any]) -> PercentCondition:
    operator = data.get("percentOperator")
    range_data = data.get("microPercentRange")
    micro_range = None
    if range_data is not None:
        micro_range = MicroPercentRange(
            lower_bound=range_data.get("microPercentLowerBound"),
            upper_bound=range_data.get("microPercentUpperBound"),
        )
    return PercentCondition(
        percent_operator=_enum_or_unknown(PercentConditionOperator, operator),
        micro_percent=data.get("microPercent"),
        seed=data.get("seed"),
        micro_percent_range=micro_range,
    )


def _custom_signal_from_dict(data: Mapping[str, Any]) -> CustomSignalCondition:
    targets = data.get("targetCustomSignalValues")
    return CustomSignalCondition(
        custom_signal_operator=_enum_or_unknown(CustomSignalOperator, data.get("customSignalOperator")),
        custom_signal_key=data.get("customSignalKey"),
        target_custom_signal_values=tuple(targets) if targets is not None else None,
    )


def _enum_or_unknown(enum_type, value):
    if value is None:
        return None
    try:
        return enum_type(value)
    except ValueError:
        return enum_type.UNKNOWN
