"""Operator evaluators for simple conditions."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

from .models import ComparisonOperator
from .references import ABSENT

COLLECTION_TYPES = (list, tuple, set, frozenset)


def _is_missing(value: Any) -> bool:
    return value is ABSENT or value is None


def to_number(value: Any) -> Optional[float]:
    """Coerce a value to a finite float, or None if it is not numeric.

    Booleans are not numbers here; numeric strings are.
    """
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        source = value
    elif isinstance(value, str):
        source = value.strip()
        if not source:
            return None
    else:
        return None

    try:
        number = float(source)
    except (OverflowError, ValueError):
        return None
    return number if math.isfinite(number) else None


def to_text(value: Any) -> str:
    """Canonical string form of a value (booleans as 'true'/'false')."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_text(value: Any, case_sensitive: bool = False) -> str:
    text = to_text(value)
    return text if case_sensitive else text.casefold()


def values_equal(left: Any, right: Any, case_sensitive: bool = False) -> bool:
    """Equality used by Equals, In and collection Contains.

    Numeric when both sides coerce to numbers, otherwise string comparison.
    Two missing values are equal; a missing value equals nothing else.
    """
    if _is_missing(left) or _is_missing(right):
        return _is_missing(left) and _is_missing(right)

    left_number = to_number(left)
    right_number = to_number(right)
    if left_number is not None and right_number is not None:
        return left_number == right_number

    return normalize_text(left, case_sensitive) == normalize_text(right, case_sensitive)


class OperatorEvaluator(ABC):
    """Abstract base class for comparison operator evaluators."""

    operator: ComparisonOperator

    @abstractmethod
    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        """Evaluate the comparison.

        Args:
            field_value: Resolved field value (may be ABSENT)
            expected: Comparison value from the condition
            case_sensitive: Whether string comparisons respect case

        Returns:
            True if the comparison holds
        """
        ...

    def describe(self, field: str, expected: Any) -> str:
        """Render the comparison as readable text."""
        if self.operator.is_valueless:
            return f"{field} {self.operator.value}"
        return f"{field} {self.operator.symbol} {expected!r}"


class NegatedEvaluator(OperatorEvaluator):
    """Negates another evaluator (NotEquals, NotContains, ...)."""

    def __init__(self, operator: ComparisonOperator, inner: OperatorEvaluator):
        self.operator = operator
        self.inner = inner

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        return not self.inner.evaluate(field_value, expected, case_sensitive)


class EqualsEvaluator(OperatorEvaluator):
    """Numeric equality when both sides are numbers, string equality otherwise."""

    operator = ComparisonOperator.EQUALS

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        return values_equal(field_value, expected, case_sensitive)


class NumericComparisonEvaluator(OperatorEvaluator):
    """Base for ordering operators; non-numeric operands never match."""

    @abstractmethod
    def compare(self, left: float, right: float) -> bool:
        ...

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        left = to_number(field_value)
        right = to_number(expected)
        if left is None or right is None:
            return False
        return self.compare(left, right)


class GreaterThanEvaluator(NumericComparisonEvaluator):
    operator = ComparisonOperator.GREATER_THAN

    def compare(self, left: float, right: float) -> bool:
        return left > right


class GreaterThanOrEqualEvaluator(NumericComparisonEvaluator):
    operator = ComparisonOperator.GREATER_THAN_OR_EQUAL

    def compare(self, left: float, right: float) -> bool:
        return left >= right


class LessThanEvaluator(NumericComparisonEvaluator):
    operator = ComparisonOperator.LESS_THAN

    def compare(self, left: float, right: float) -> bool:
        return left < right


class LessThanOrEqualEvaluator(NumericComparisonEvaluator):
    operator = ComparisonOperator.LESS_THAN_OR_EQUAL

    def compare(self, left: float, right: float) -> bool:
        return left <= right


class ContainsEvaluator(OperatorEvaluator):
    """Substring test on string forms; element test for list values."""

    operator = ComparisonOperator.CONTAINS

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        if _is_missing(field_value) or _is_missing(expected):
            return False
        if isinstance(field_value, COLLECTION_TYPES):
            return any(values_equal(item, expected, case_sensitive) for item in field_value)
        return normalize_text(expected, case_sensitive) in normalize_text(field_value, case_sensitive)


class StartsWithEvaluator(OperatorEvaluator):
    operator = ComparisonOperator.STARTS_WITH

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        if _is_missing(field_value) or _is_missing(expected):
            return False
        return normalize_text(field_value, case_sensitive).startswith(
            normalize_text(expected, case_sensitive)
        )


class EndsWithEvaluator(OperatorEvaluator):
    operator = ComparisonOperator.ENDS_WITH

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        if _is_missing(field_value) or _is_missing(expected):
            return False
        return normalize_text(field_value, case_sensitive).endswith(
            normalize_text(expected, case_sensitive)
        )


class InEvaluator(OperatorEvaluator):
    """Membership of the field value in the comparison collection."""

    operator = ComparisonOperator.IN

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        if _is_missing(field_value) or not isinstance(expected, COLLECTION_TYPES):
            return False
        return any(values_equal(field_value, item, case_sensitive) for item in expected)

    def describe(self, field: str, expected: Any) -> str:
        if isinstance(expected, COLLECTION_TYPES):
            items = ", ".join(repr(item) for item in expected)
            return f"{field} In [{items}]"
        return super().describe(field, expected)


class IsNullEvaluator(OperatorEvaluator):
    operator = ComparisonOperator.IS_NULL

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        return _is_missing(field_value)


class IsEmptyEvaluator(OperatorEvaluator):
    """Missing, whitespace-only string, or empty collection."""

    operator = ComparisonOperator.IS_EMPTY

    def evaluate(
        self,
        field_value: Any,
        expected: Any,
        case_sensitive: bool = False,
    ) -> bool:
        if _is_missing(field_value):
            return True
        if isinstance(field_value, str):
            return not field_value.strip()
        if isinstance(field_value, COLLECTION_TYPES + (dict,)):
            return len(field_value) == 0
        return False


_EQUALS = EqualsEvaluator()
_CONTAINS = ContainsEvaluator()
_IN = InEvaluator()
_IS_NULL = IsNullEvaluator()
_IS_EMPTY = IsEmptyEvaluator()

# Registry mapping comparison operators to evaluators
EVALUATORS: Dict[ComparisonOperator, OperatorEvaluator] = {
    ComparisonOperator.EQUALS: _EQUALS,
    ComparisonOperator.NOT_EQUALS: NegatedEvaluator(ComparisonOperator.NOT_EQUALS, _EQUALS),
    ComparisonOperator.GREATER_THAN: GreaterThanEvaluator(),
    ComparisonOperator.GREATER_THAN_OR_EQUAL: GreaterThanOrEqualEvaluator(),
    ComparisonOperator.LESS_THAN: LessThanEvaluator(),
    ComparisonOperator.LESS_THAN_OR_EQUAL: LessThanOrEqualEvaluator(),
    ComparisonOperator.CONTAINS: _CONTAINS,
    ComparisonOperator.NOT_CONTAINS: NegatedEvaluator(ComparisonOperator.NOT_CONTAINS, _CONTAINS),
    ComparisonOperator.STARTS_WITH: StartsWithEvaluator(),
    ComparisonOperator.ENDS_WITH: EndsWithEvaluator(),
    ComparisonOperator.IN: _IN,
    ComparisonOperator.NOT_IN: NegatedEvaluator(ComparisonOperator.NOT_IN, _IN),
    ComparisonOperator.IS_NULL: _IS_NULL,
    ComparisonOperator.IS_NOT_NULL: NegatedEvaluator(ComparisonOperator.IS_NOT_NULL, _IS_NULL),
    ComparisonOperator.IS_EMPTY: _IS_EMPTY,
    ComparisonOperator.IS_NOT_EMPTY: NegatedEvaluator(ComparisonOperator.IS_NOT_EMPTY, _IS_EMPTY),
}


def get_evaluator(operator: Any) -> Optional[OperatorEvaluator]:
    """Get evaluator for an operator (enum member or wire string)."""
    try:
        return EVALUATORS.get(ComparisonOperator(operator))
    except ValueError:
        return None
