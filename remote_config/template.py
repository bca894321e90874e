"""
Server-side templates and their evaluated configs.
"""

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from shared.errors import ValidationError
from shared.logging import get_logger
from remote_config.conditions.evaluator import ConditionEvaluator
from remote_config.conditions.models import (
    EvaluationContext,
    NamedCondition,
    named_conditions_from_list,
)

BOOLEAN_TRUTHY_VALUES = ("1", "true", "t", "yes", "y", "on")

DefaultConfig = Mapping[str, Union[str, int, float, bool]]


class ValueSource(str, Enum):
    """Where an evaluated value came from."""
    STATIC = "static"
    DEFAULT = "default"
    REMOTE = "remote"


class Value:
    """A config value with typed accessors."""

    def __init__(self, source: ValueSource, value: str = ""):
        self._source = source
        self._value = value

    def as_boolean(self) -> bool:
        return self._value.lower() in BOOLEAN_TRUTHY_VALUES

    def as_number(self) -> float:
        try:
            number = float(self._value)
        except ValueError:
            return 0
        return 0 if math.isnan(number) else number

    def as_string(self) -> str:
        return self._value

    def get_source(self) -> ValueSource:
        return self._source

    def __eq__(self, other) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return (self._source, self._value) == (other._source, other._value)

    def __repr__(self) -> str:
        return f"Value(source={self._source.value!r}, value={self._value!r})"


class ServerConfig:
    """Values produced by evaluating a ServerTemplate for one context."""

    def __init__(self, config_values: Mapping[str, Value]):
        self._config_values = dict(config_values)

    def get_value(self, key: str) -> Value:
        return self._config_values.get(key, Value(ValueSource.STATIC))

    def get_boolean(self, key: str) -> bool:
        return self.get_value(key).as_boolean()

    def get_number(self, key: str) -> float:
        return self.get_value(key).as_number()

    def get_string(self, key: str) -> str:
        return self.get_value(key).as_string()

    def get_all(self) -> Dict[str, Value]:
        return dict(self._config_values)


@dataclass(frozen=True)
class ParameterValue:
    """Either an explicit value or a marker to use the in-app default."""
    value: Optional[str] = None
    use_in_app_default: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParameterValue":
        if data.get("useInAppDefault"):
            return cls(use_in_app_default=True)
        return cls(value=data.get("value"))


@dataclass
class Parameter:
    default_value: Optional[ParameterValue] = None
    conditional_values: Dict[str, ParameterValue] = field(default_factory=dict)
    description: Optional[str] = None
    value_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Parameter":
        default = data.get("defaultValue")
        return cls(
            default_value=ParameterValue.from_dict(default) if default is not None else None,
            conditional_values={
                name: ParameterValue.from_dict(value)
                for name, value in (data.get("conditionalValues") or {}).items()
            },
            description=data.get("description"),
            value_type=data.get("valueType"),
        )


class ServerTemplate:
    """Conditions and parameters evaluated per request context.

    For each parameter the first condition, in template order, that evaluates
    true and has a conditional value for the parameter wins; otherwise the
    parameter's default value is used. Values marked ``useInAppDefault`` fall
    back to ``default_config``.
    """

    def __init__(
        self,
        conditions: Optional[List[NamedCondition]] = None,
        parameters: Optional[Dict[str, Parameter]] = None,
        default_config: Optional[DefaultConfig] = None,
        evaluator: Optional[ConditionEvaluator] = None,
        version: Optional[Dict[str, Any]] = None,
    ):
        self.conditions = list(conditions or [])
        self.parameters = dict(parameters or {})
        self.default_config = dict(default_config or {})
        self.evaluator = evaluator or ConditionEvaluator()
        self.version = version
        self.logger = get_logger("remote_config.template")

    @classmethod
    def from_dict(cls, data: Union[str, Mapping[str, Any]],
                  default_config: Optional[DefaultConfig] = None,
                  evaluator: Optional[ConditionEvaluator] = None) -> "ServerTemplate":
        """Build a template from its JSON wire shape (a dict or JSON string)."""
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError as exc:
                raise ValidationError(f"Failed to parse the JSON string: {data}. {exc}") from exc
        if not isinstance(data, Mapping):
            raise ValidationError("Invalid server template: expected an object.")

        conditions = data.get("conditions")
        parameters = data.get("parameters")
        if conditions is None:
            conditions = []
        if parameters is None:
            parameters = {}
        if not isinstance(conditions, list):
            raise ValidationError("Server template conditions must be an array.")
        if not isinstance(parameters, Mapping):
            raise ValidationError("Server template parameters must be an object.")

        return cls(
            conditions=named_conditions_from_list(conditions),
            parameters={key: Parameter.from_dict(value) for key, value in parameters.items()},
            default_config=default_config,
            evaluator=evaluator,
            version=data.get("version"),
        )

    def evaluate(self, context: Optional[EvaluationContext] = None) -> ServerConfig:
        evaluated = self.evaluator.evaluate_conditions(self.conditions, context or {})

        config_values: Dict[str, Value] = {
            key: Value(ValueSource.DEFAULT, _default_to_string(value))
            for key, value in self.default_config.items()
        }

        for key, parameter in self.parameters.items():
            chosen = parameter.default_value
            for condition_name, result in evaluated.items():
                if result and condition_name in parameter.conditional_values:
                    chosen = parameter.conditional_values[condition_name]
                    break

            if chosen is None:
                self.logger.debug("Parameter has no applicable value", parameter=key)
                continue
            if chosen.use_in_app_default:
                self.logger.debug("Parameter uses in-app default", parameter=key)
                continue
            if chosen.value is None:
                continue
            config_values[key] = Value(ValueSource.REMOTE, str(chosen.value))

        return ServerConfig(config_values)


def _default_to_string(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
