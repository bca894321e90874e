"""
Feature-flag template evaluation.

- conditions: condition tree models, percent hashing and the ConditionEvaluator
- template: server templates and the evaluated ServerConfig
"""

from remote_config.conditions.evaluator import ConditionEvaluator
from remote_config.template import ServerConfig, ServerTemplate, Value, ValueSource

__all__ = [
    "ConditionEvaluator",
    "ServerConfig",
    "ServerTemplate",
    "Value",
    "ValueSource",
]
