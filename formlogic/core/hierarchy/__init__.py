"""Field hierarchy validation, tree building and repair."""

from .models import (
    IssueSeverity,
    IssueType,
    HierarchyNode,
    WorkflowStep,
    HierarchyIssue,
    HierarchyValidationResult,
    TreeNode,
    HierarchyTree,
    HierarchyMetrics,
    RepairResult,
)
from .cycles import find_cycle, has_cycle, nodes_in_cycles, parent_edges, dependency_edges
from .service import HierarchyValidator

__all__ = [
    "IssueSeverity",
    "IssueType",
    "HierarchyNode",
    "WorkflowStep",
    "HierarchyIssue",
    "HierarchyValidationResult",
    "TreeNode",
    "HierarchyTree",
    "HierarchyMetrics",
    "RepairResult",
    "find_cycle",
    "has_cycle",
    "nodes_in_cycles",
    "parent_edges",
    "dependency_edges",
    "HierarchyValidator",
]
