"""Hierarchy data models."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from formlogic.core.rules.models import ConditionalRule


class IssueSeverity(str, Enum):
    """Severity of a structural issue."""

    ERROR = "error"
    WARNING = "warning"


class IssueType(str, Enum):
    """Kinds of structural issues reported by the validator."""

    INVALID_INPUT = "invalid_input"
    EMPTY_ID = "empty_id"
    DUPLICATE_ID = "duplicate_id"
    SELF_REFERENCE = "self_reference"
    ORPHAN_PARENT = "orphan_parent"
    CIRCULAR_REFERENCE = "circular_reference"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    UNKNOWN_DEPENDENCY = "unknown_dependency"
    UNKNOWN_RULE_TARGET = "unknown_rule_target"
    UNKNOWN_CONDITION_FIELD = "unknown_condition_field"
    INVALID_RULE = "invalid_rule"
    CIRCULAR_STEP_CHAIN = "circular_step_chain"
    UNKNOWN_STEP = "unknown_step"

    def label(self) -> str:
        """Short title for display in an issues list."""
        titles = {
            self.INVALID_INPUT: "Invalid Input",
            self.EMPTY_ID: "Empty Field ID",
            self.DUPLICATE_ID: "Duplicate Field ID",
            self.SELF_REFERENCE: "Self Reference",
            self.ORPHAN_PARENT: "Orphaned Field",
            self.CIRCULAR_REFERENCE: "Circular Reference",
            self.CIRCULAR_DEPENDENCY: "Circular Dependency",
            self.UNKNOWN_DEPENDENCY: "Unknown Dependency",
            self.UNKNOWN_RULE_TARGET: "Unknown Rule Target",
            self.UNKNOWN_CONDITION_FIELD: "Unknown Condition Field",
            self.INVALID_RULE: "Invalid Rule",
            self.CIRCULAR_STEP_CHAIN: "Circular Step Chain",
            self.UNKNOWN_STEP: "Unknown Step",
        }
        return titles.get(self, self.value)


class HierarchyNode(BaseModel):
    """A field definition as seen by the hierarchy validator.

    Keys the validator does not use are kept, so a node loaded from a stored
    schema can be written back unchanged apart from repaired links (see
    to_schema). Rules that cannot be read are set aside in rejected_rules
    instead of failing the whole node.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    parent_id: Optional[str] = None
    node_type: Optional[str] = Field(
        None,
        alias="type",
        validation_alias=AliasChoices("type", "fieldType", "nodeType", "node_type"),
        description="Field type tag, e.g. 'Section'",
    )
    order: int = 0
    dependencies: List[str] = Field(default_factory=list, description="Ids a computed formula reads")
    conditional_rules: List[ConditionalRule] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)

    _source: Optional[Dict[str, Any]] = PrivateAttr(default=None)
    _rejected_rules: List[str] = PrivateAttr(default_factory=list)
    _loaded_parent: Optional[str] = PrivateAttr(default=None)

    @field_validator("parent_id")
    @classmethod
    def blank_parent_is_root(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @model_validator(mode="wrap")
    @classmethod
    def read_stored_schema(cls, data: Any, handler) -> "HierarchyNode":
        if not isinstance(data, Mapping):
            return handler(data)

        source = dict(data)
        rejected: List[str] = []
        rules_key = next((k for k in _RULE_KEYS if k in data), None)
        raw_rules = data.get(rules_key) if rules_key else None
        if isinstance(raw_rules, list):
            kept = []
            for index, raw in enumerate(raw_rules):
                try:
                    kept.append(ConditionalRule.model_validate(raw))
                except ValidationError as e:
                    rule_id = raw.get("id") if isinstance(raw, Mapping) else None
                    label = f"'{rule_id}'" if rule_id else f"at position {index}"
                    rejected.append(f"Rule {label} is malformed ({e.error_count()} error(s))")
            data = {**data, rules_key: kept}

        node = handler(data)
        node._source = source
        node._rejected_rules = rejected
        node._loaded_parent = node.parent_id
        return node

    @property
    def rejected_rules(self) -> List[str]:
        """Descriptions of rules that could not be read."""
        return list(self._rejected_rules)

    def to_schema(self) -> Dict[str, Any]:
        """The node in stored schema form.

        A node loaded from a mapping returns that mapping with only the
        parent link updated; other nodes dump the fields that were set.
        """
        if self._source is None:
            return self.model_dump(by_alias=True, exclude_unset=True)

        data = dict(self._source)
        parent_key = next((k for k in _PARENT_KEYS if k in data), "parentId")
        if self.parent_id != self._loaded_parent:
            data[parent_key] = self.parent_id
        return data


_RULE_KEYS = ("conditionalRules", "conditional_rules")
_PARENT_KEYS = ("parentId", "parent_id")


class WorkflowStep(BaseModel):
    """A workflow step and the steps it can lead to."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    next_step_ids: List[str] = Field(default_factory=list)


class HierarchyIssue(BaseModel):
    """A structural problem found in a node list."""

    issue_type: IssueType
    severity: IssueSeverity
    node_ids: List[str] = Field(default_factory=list)
    message: str

    @property
    def node_id(self) -> Optional[str]:
        return self.node_ids[0] if self.node_ids else None

    @property
    def title(self) -> str:
        return self.issue_type.label()


class HierarchyValidationResult(BaseModel):
    """Result of validating a node list."""

    issues: List[HierarchyIssue] = Field(default_factory=list)

    @property
    def errors(self) -> List[HierarchyIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> List[HierarchyIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def is_valid(self) -> bool:
        """Whether there are no errors (warnings are allowed)."""
        return not self.errors

    def issues_for(self, node_id: str) -> List[HierarchyIssue]:
        """Issues mentioning a node."""
        return [i for i in self.issues if node_id in i.node_ids]

    def merge(self, other: "HierarchyValidationResult") -> "HierarchyValidationResult":
        return HierarchyValidationResult(issues=self.issues + other.issues)


@dataclass(eq=False)
class TreeNode:
    """Runtime wrapper of a node with parent and children links."""

    node: HierarchyNode
    parent: Optional["TreeNode"] = None
    children: List["TreeNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def level(self) -> int:
        """Depth in the tree (0 = root)."""
        return sum(1 for _ in self.ancestors())

    @property
    def path(self) -> str:
        """Dotted path from the root, e.g. 'section1.group1.field1'."""
        ids = [a.id for a in self.ancestors()]
        ids.reverse()
        ids.append(self.id)
        return ".".join(ids)

    def ancestors(self) -> Iterator["TreeNode"]:
        """Ancestors from the immediate parent up to the root."""
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def descendants(self) -> Iterator["TreeNode"]:
        """All descendants in depth-first order."""
        stack = list(reversed(self.children))
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def __repr__(self) -> str:
        return f"TreeNode({self.node.node_type or 'node'} [{self.id}], children={len(self.children)})"


@dataclass
class HierarchyTree:
    """Tree built from a flat node list."""

    roots: List[TreeNode] = field(default_factory=list)
    nodes: Dict[str, TreeNode] = field(default_factory=dict)
    issues: List[HierarchyIssue] = field(default_factory=list)

    def get(self, node_id: str) -> Optional[TreeNode]:
        return self.nodes.get(node_id)

    def children_of(self, node_id: str) -> List[TreeNode]:
        tree_node = self.nodes.get(node_id)
        return list(tree_node.children) if tree_node else []

    def walk(self) -> Iterator[TreeNode]:
        """All nodes, breadth-first from the roots."""
        queue = deque(self.roots)
        while queue:
            current = queue.popleft()
            yield current
            queue.extend(current.children)

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass
class HierarchyMetrics:
    """Read-only statistics about a hierarchy."""

    total_nodes: int = 0
    root_nodes: int = 0
    max_depth: int = 0  # 0 = only root nodes
    average_depth: float = 0.0
    branch_depths: Dict[str, int] = field(default_factory=dict)  # root id -> deepest level
    type_distribution: Dict[str, int] = field(default_factory=dict)
    conditional_nodes: int = 0
    largest_group: int = 0  # most children under one parent
    complexity_score: float = 0.0


@dataclass
class RepairResult:
    """Nodes after automatic repair and a description of each fix."""

    nodes: List[HierarchyNode] = field(default_factory=list)
    fixes_applied: List[str] = field(default_factory=list)

    @property
    def fixed_count(self) -> int:
        return len(self.fixes_applied)
