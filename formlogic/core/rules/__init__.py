"""Conditional rule evaluation: references, conditions and the rule engine."""

from .models import (
    ComparisonOperator,
    LogicalOperator,
    RuleAction,
    SimpleCondition,
    ComplexCondition,
    Condition,
    ConditionalRule,
    RuleEvaluationResult,
)
from .references import ABSENT, DataContext, is_absent, parse_field_reference, resolve_value
from .evaluators import EVALUATORS, get_evaluator, OperatorEvaluator
from .conditions import (
    ConditionEvaluator,
    ConditionError,
    ConditionDepthError,
    UnsupportedOperatorError,
    describe_condition,
    collect_field_references,
    unsupported_operators,
    walk_conditions,
)
from .engine import RuleEngine

__all__ = [
    "ComparisonOperator",
    "LogicalOperator",
    "RuleAction",
    "SimpleCondition",
    "ComplexCondition",
    "Condition",
    "ConditionalRule",
    "RuleEvaluationResult",
    "ABSENT",
    "DataContext",
    "is_absent",
    "parse_field_reference",
    "resolve_value",
    "EVALUATORS",
    "get_evaluator",
    "OperatorEvaluator",
    "ConditionEvaluator",
    "ConditionError",
    "ConditionDepthError",
    "UnsupportedOperatorError",
    "describe_condition",
    "collect_field_references",
    "unsupported_operators",
    "walk_conditions",
    "RuleEngine",
]
