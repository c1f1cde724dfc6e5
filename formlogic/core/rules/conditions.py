"""Recursive evaluation of condition trees."""

from __future__ import annotations

import logging
from typing import Any, Iterator, List, Optional

from formlogic.config import get_settings
from .evaluators import get_evaluator
from .models import ComplexCondition, Condition, LogicalOperator, SimpleCondition
from .references import DataContext, resolve_value

logger = logging.getLogger(__name__)


class ConditionError(Exception):
    """Raised when a condition tree is malformed."""


class UnsupportedOperatorError(ConditionError):
    """Raised for an operator the engine does not know."""


class ConditionDepthError(ConditionError):
    """Raised when a condition tree nests deeper than allowed."""


class ConditionEvaluator:
    """Evaluates simple and complex conditions against a data context.

    Missing data and non-numeric operands never raise: they simply make the
    comparison false (or true for the null/empty checks). Only malformed
    trees raise ConditionError.
    """

    def __init__(
        self,
        case_sensitive: Optional[bool] = None,
        max_depth: Optional[int] = None,
    ):
        """Initialize the evaluator.

        Args:
            case_sensitive: Whether string comparisons respect case
                (defaults to settings)
            max_depth: Maximum nesting depth of a condition tree
                (defaults to settings)
        """
        settings = get_settings()
        self.case_sensitive = (
            settings.case_sensitive_comparisons if case_sensitive is None else case_sensitive
        )
        self.max_depth = settings.max_condition_depth if max_depth is None else max_depth

    def evaluate(self, condition: Condition, context: DataContext) -> bool:
        """Evaluate a condition tree.

        Args:
            condition: Simple or complex condition
            context: Field values to evaluate against

        Returns:
            True if the condition holds

        Raises:
            ConditionError: If the tree is malformed
        """
        return self._evaluate(condition, context, depth=1)

    def _evaluate(self, condition: Any, context: DataContext, depth: int) -> bool:
        if depth > self.max_depth:
            raise ConditionDepthError(
                f"Condition nesting exceeds maximum depth of {self.max_depth}"
            )

        if isinstance(condition, SimpleCondition):
            return self._evaluate_simple(condition, context)

        if isinstance(condition, ComplexCondition):
            return self._evaluate_complex(condition, context, depth)

        raise ConditionError(
            f"Invalid condition: expected a simple or complex condition, got {type(condition).__name__}"
        )

    def _evaluate_simple(self, condition: SimpleCondition, context: DataContext) -> bool:
        evaluator = get_evaluator(condition.operator)
        if evaluator is None:
            raise UnsupportedOperatorError(f"Operator '{condition.operator}' is not supported")

        try:
            field_value = resolve_value(condition.field, context)
        except ValueError as e:
            raise ConditionError(str(e)) from e

        return evaluator.evaluate(field_value, condition.value, self.case_sensitive)

    def _evaluate_complex(
        self,
        condition: ComplexCondition,
        context: DataContext,
        depth: int,
    ) -> bool:
        children = condition.conditions or []
        op = condition.logical_op

        if op == LogicalOperator.AND:
            return all(self._evaluate(c, context, depth + 1) for c in children)

        if op == LogicalOperator.OR:
            return any(self._evaluate(c, context, depth + 1) for c in children)

        if op == LogicalOperator.NOT:
            if len(children) != 1:
                logger.debug(f"NOT group with {len(children)} children negates their conjunction")
            return not all(self._evaluate(c, context, depth + 1) for c in children)

        raise ConditionError(f"Logical operator '{op}' is not supported")


def describe_condition(condition: Condition) -> str:
    """Render a condition tree as readable text.

    Example: "(PersonalInfo.applicant_age < 18 AND (province == 'ON' OR province == 'QC'))"
    """
    if isinstance(condition, SimpleCondition):
        evaluator = get_evaluator(condition.operator)
        if evaluator is None:
            return f"{condition.field} {condition.operator} {condition.value!r}"
        return evaluator.describe(condition.field, condition.value)

    if isinstance(condition, ComplexCondition):
        parts = [describe_condition(c) for c in condition.conditions or []]
        try:
            op = LogicalOperator(condition.logical_op)
        except ValueError:
            return f"{condition.logical_op}({', '.join(parts)})"
        if op == LogicalOperator.NOT:
            return f"NOT ({' AND '.join(parts)})"
        joiner = f" {op.value.upper()} "
        return f"({joiner.join(parts)})"

    return repr(condition)


def walk_conditions(condition: Condition) -> Iterator[Condition]:
    """All conditions in a tree, depth-first in authoring order."""
    stack = [condition]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, ComplexCondition):
            stack.extend(reversed(current.conditions or []))


def collect_field_references(condition: Condition) -> List[str]:
    """Field references read by a condition tree, in first-seen order."""
    references: List[str] = []
    for current in walk_conditions(condition):
        if isinstance(current, SimpleCondition) and current.field not in references:
            references.append(current.field)
    return references


def unsupported_operators(condition: Condition) -> List[str]:
    """Operator ids in a tree that evaluation would reject."""
    unsupported: List[str] = []
    for current in walk_conditions(condition):
        if isinstance(current, SimpleCondition):
            if get_evaluator(current.operator) is None:
                unsupported.append(str(current.operator))
        elif isinstance(current, ComplexCondition):
            try:
                LogicalOperator(current.logical_op)
            except ValueError:
                unsupported.append(str(current.logical_op))
    return unsupported
