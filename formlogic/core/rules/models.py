"""Pydantic schemas for conditions and conditional rules."""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from formlogic.config import get_settings


def _lookup_member(enum_cls, value: Any):
    """Match a member by value ignoring case, underscores and spaces."""
    if not isinstance(value, str):
        return None
    key = value.replace("_", "").replace(" ", "").lower()
    for member in enum_cls:
        if member.value.lower() == key:
            return member
    return None


class ComparisonOperator(str, Enum):
    """Supported comparison operators for simple conditions."""

    # Equality
    EQUALS = "Equals"
    NOT_EQUALS = "NotEquals"

    # Numeric comparison
    GREATER_THAN = "GreaterThan"
    GREATER_THAN_OR_EQUAL = "GreaterThanOrEqual"
    LESS_THAN = "LessThan"
    LESS_THAN_OR_EQUAL = "LessThanOrEqual"

    # String / collection operations
    CONTAINS = "Contains"
    NOT_CONTAINS = "NotContains"
    STARTS_WITH = "StartsWith"
    ENDS_WITH = "EndsWith"
    IN = "In"
    NOT_IN = "NotIn"

    # Null / empty checks
    IS_NULL = "IsNull"
    IS_NOT_NULL = "IsNotNull"
    IS_EMPTY = "IsEmpty"
    IS_NOT_EMPTY = "IsNotEmpty"

    @classmethod
    def _missing_(cls, value: Any):
        return _lookup_member(cls, value)

    @property
    def is_valueless(self) -> bool:
        """Check if this operator ignores the comparison value."""
        return self in (
            self.IS_NULL,
            self.IS_NOT_NULL,
            self.IS_EMPTY,
            self.IS_NOT_EMPTY,
        )

    @property
    def symbol(self) -> str:
        """Short symbol used when rendering conditions as text."""
        symbols = {
            self.EQUALS: "==",
            self.NOT_EQUALS: "!=",
            self.GREATER_THAN: ">",
            self.GREATER_THAN_OR_EQUAL: ">=",
            self.LESS_THAN: "<",
            self.LESS_THAN_OR_EQUAL: "<=",
        }
        return symbols.get(self, self.value)


class LogicalOperator(str, Enum):
    """Logical operators for combining sub-conditions."""

    AND = "And"
    OR = "Or"
    NOT = "Not"

    @classmethod
    def _missing_(cls, value: Any):
        return _lookup_member(cls, value)


class RuleAction(str, Enum):
    """Known rule actions.

    Rules keep their action as a plain string so stored schemas carrying
    newer actions still load; this enum covers the actions the form runtime
    understands.
    """

    # Field-level actions
    SHOW = "show"
    HIDE = "hide"
    ENABLE = "enable"
    DISABLE = "disable"
    SET_REQUIRED = "setRequired"
    SET_OPTIONAL = "setOptional"

    # Workflow-level actions
    SKIP_STEP = "skipStep"
    GO_TO_STEP = "goToStep"
    COMPLETE_WORKFLOW = "completeWorkflow"

    @classmethod
    def _missing_(cls, value: Any):
        return _lookup_member(cls, value)

    @classmethod
    def parse(cls, action: Optional[str]) -> Optional["RuleAction"]:
        """Return the known action for a wire string, or None for extensions."""
        if not action:
            return None
        try:
            return cls(action)
        except ValueError:
            return None

    def description(self) -> str:
        """Human-readable description of the action."""
        descriptions = {
            self.SHOW: "Make the target field visible",
            self.HIDE: "Hide the target field",
            self.ENABLE: "Make the target field editable",
            self.DISABLE: "Make the target field read-only",
            self.SET_REQUIRED: "Make the target field required",
            self.SET_OPTIONAL: "Make the target field optional",
            self.SKIP_STEP: "Skip the target workflow step",
            self.GO_TO_STEP: "Navigate to the target workflow step",
            self.COMPLETE_WORKFLOW: "Mark the workflow as complete",
        }
        return descriptions.get(self, "Unknown action")

    @property
    def scope(self) -> str:
        """Whether the action applies to a field or to the workflow."""
        if self in (self.SKIP_STEP, self.GO_TO_STEP, self.COMPLETE_WORKFLOW):
            return "workflow"
        return "field"


class _SchemaModel(BaseModel):
    """Base for models stored in form schemas (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SimpleCondition(_SchemaModel):
    """Leaf condition comparing one field against a value."""

    model_config = ConfigDict(extra="forbid")

    field: str = Field(..., min_length=1, description="Field reference, e.g. 'age' or 'Step1.total'")
    # Unknown operator ids are kept as-is; evaluation reports them as unsupported
    operator: Union[ComparisonOperator, str, int] = Field(..., union_mode="left_to_right")
    value: Any = None

    @property
    def known_operator(self) -> Optional[ComparisonOperator]:
        """The operator as a ComparisonOperator, or None if it is not recognized."""
        return self.operator if isinstance(self.operator, ComparisonOperator) else None


class ComplexCondition(_SchemaModel):
    """Branch condition combining child conditions with a logical operator."""

    model_config = ConfigDict(extra="forbid")

    logical_op: Union[LogicalOperator, str, int] = Field(..., union_mode="left_to_right")
    conditions: List[Condition] = Field(
        default_factory=list,
        validation_alias=AliasChoices("conditions", "children"),
    )

    @property
    def children(self) -> List[Condition]:
        return self.conditions

    @classmethod
    def all_of(cls, *conditions: Condition) -> "ComplexCondition":
        """Build an AND group."""
        return cls(logical_op=LogicalOperator.AND, conditions=list(conditions))

    @classmethod
    def any_of(cls, *conditions: Condition) -> "ComplexCondition":
        """Build an OR group."""
        return cls(logical_op=LogicalOperator.OR, conditions=list(conditions))

    @classmethod
    def negate(cls, condition: Condition) -> "ComplexCondition":
        """Build a NOT group around a single condition."""
        return cls(logical_op=LogicalOperator.NOT, conditions=[condition])


Condition = Union[SimpleCondition, ComplexCondition]

ComplexCondition.model_rebuild()


def _default_priority() -> int:
    return get_settings().default_rule_priority


class ConditionalRule(_SchemaModel):
    """A prioritized binding of a condition to an action and a target."""

    id: str = Field(..., min_length=1)
    description: Optional[str] = None
    condition: Condition
    action: str = Field(..., min_length=1, description="Action string, e.g. 'show' or 'skipStep'")
    target_field_id: Optional[str] = None
    target_step_number: Optional[int] = Field(None, ge=1, description="1-based workflow step")
    target_module_key: Optional[str] = None
    priority: int = Field(default_factory=_default_priority, description="Lower values apply first")
    is_active: bool = True
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @property
    def known_action(self) -> Optional[RuleAction]:
        """The action as a RuleAction, or None for extension actions."""
        return RuleAction.parse(self.action)


class RuleEvaluationResult(BaseModel):
    """Result of evaluating one rule against a data context."""

    rule: ConditionalRule
    is_triggered: bool
    error_message: Optional[str] = None

    @property
    def action_to_perform(self) -> Optional[str]:
        """The rule's action if it triggered."""
        return self.rule.action if self.is_triggered else None

    @property
    def target_field_id(self) -> Optional[str]:
        return self.rule.target_field_id

    @property
    def target_step_number(self) -> Optional[int]:
        return self.rule.target_step_number

    @property
    def target_module_key(self) -> Optional[str]:
        return self.rule.target_module_key

    @property
    def priority(self) -> int:
        return self.rule.priority

    @property
    def has_error(self) -> bool:
        return self.error_message is not None
