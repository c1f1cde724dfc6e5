"""Hierarchy and dependency validation for flat field lists."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from formlogic.core.rules.conditions import collect_field_references, unsupported_operators
from formlogic.core.rules.references import parse_field_reference
from .cycles import dependency_edges, find_cycle, format_cycle, parent_edges
from .models import (
    HierarchyIssue,
    HierarchyMetrics,
    HierarchyNode,
    HierarchyTree,
    HierarchyValidationResult,
    IssueSeverity,
    IssueType,
    RepairResult,
    TreeNode,
    WorkflowStep,
)

logger = logging.getLogger(__name__)

NodeInput = Optional[Sequence[Any]]


def _issue(
    issue_type: IssueType,
    severity: IssueSeverity,
    node_ids: List[str],
    message: str,
) -> HierarchyIssue:
    return HierarchyIssue(
        issue_type=issue_type,
        severity=severity,
        node_ids=node_ids,
        message=message,
    )


def _invalid_input(message: str) -> HierarchyIssue:
    return _issue(IssueType.INVALID_INPUT, IssueSeverity.ERROR, [], message)


class HierarchyValidator:
    """Builds parent/child trees from flat node lists and reports structural issues.

    Every method is a pure function of its input. Nodes may be given as
    HierarchyNode instances or as mappings in the stored schema shape; a
    list that cannot be read yields an empty result instead of raising.
    """

    # ===== Input handling =====

    def _coerce_nodes(self, nodes: NodeInput) -> Tuple[List[HierarchyNode], Optional[str]]:
        """Convert input to HierarchyNode instances.

        Returns:
            Tuple of nodes and an error message (None when the input is usable)
        """
        if nodes is None:
            return [], None
        if isinstance(nodes, (str, bytes, Mapping)) or not isinstance(nodes, Iterable):
            return [], f"Expected a list of nodes, got {type(nodes).__name__}"

        coerced: List[HierarchyNode] = []
        for index, item in enumerate(nodes):
            if isinstance(item, HierarchyNode):
                coerced.append(item)
                continue
            try:
                coerced.append(HierarchyNode.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Malformed node at position {index}: {e.error_count()} error(s)")
                return [], f"Malformed node at position {index}"
        return coerced, None

    @staticmethod
    def _unique(nodes: List[HierarchyNode]) -> Dict[str, HierarchyNode]:
        """First occurrence of each id, in input order."""
        unique: Dict[str, HierarchyNode] = {}
        for node in nodes:
            unique.setdefault(node.id, node)
        return unique

    # ===== Hierarchy validation =====

    def validate(self, nodes: NodeInput) -> HierarchyValidationResult:
        """Validate parent links: empty and duplicate ids, self references,
        orphaned parents and circular chains.

        Args:
            nodes: Flat node list

        Returns:
            Validation result with one issue per problem
        """
        node_list, error = self._coerce_nodes(nodes)
        if error:
            return HierarchyValidationResult(issues=[_invalid_input(error)])
        return HierarchyValidationResult(issues=self._hierarchy_issues(node_list))

    def _hierarchy_issues(self, node_list: List[HierarchyNode]) -> List[HierarchyIssue]:
        issues: List[HierarchyIssue] = []
        unique = self._unique(node_list)

        counts = Counter(node.id for node in node_list)
        for node_id, count in counts.items():
            if count > 1:
                issues.append(_issue(
                    IssueType.DUPLICATE_ID,
                    IssueSeverity.ERROR,
                    [node_id],
                    f"Duplicate field ID: '{node_id}' appears {count} times",
                ))

        for node in unique.values():
            if not node.id.strip():
                issues.append(_issue(
                    IssueType.EMPTY_ID,
                    IssueSeverity.ERROR,
                    [node.id],
                    "Field has empty ID",
                ))
            if node.parent_id == node.id:
                issues.append(_issue(
                    IssueType.SELF_REFERENCE,
                    IssueSeverity.ERROR,
                    [node.id],
                    f"Field '{node.id}' references itself as parent",
                ))
            elif node.parent_id is not None and node.parent_id not in unique:
                issues.append(_issue(
                    IssueType.ORPHAN_PARENT,
                    IssueSeverity.WARNING,
                    [node.id],
                    f"Field '{node.id}' references non-existent parent '{node.parent_id}'",
                ))

        parents = {node_id: node.parent_id for node_id, node in unique.items()}
        get_parent = parent_edges(parents)
        for node in unique.values():
            if node.parent_id == node.id:
                continue
            cycle = find_cycle(node.id, get_parent)
            if cycle:
                issues.append(_issue(
                    IssueType.CIRCULAR_REFERENCE,
                    IssueSeverity.ERROR,
                    [node.id],
                    f"Circular reference detected involving field '{node.id}' ({format_cycle(cycle)})",
                ))

        return issues

    # ===== Dependency validation =====

    def validate_dependencies(self, nodes: NodeInput) -> HierarchyValidationResult:
        """Validate computed-field dependency lists.

        Reports dependencies on unknown ids (warning) and every node whose
        dependencies lead into a cycle (error).
        """
        node_list, error = self._coerce_nodes(nodes)
        if error:
            return HierarchyValidationResult(issues=[_invalid_input(error)])

        unique = self._unique(node_list)
        dependencies = {node_id: list(node.dependencies) for node_id, node in unique.items()}
        get_dependencies = dependency_edges(dependencies)
        issues: List[HierarchyIssue] = []

        for node_id, deps in dependencies.items():
            if not deps:
                continue
            for dep in deps:
                if dep not in unique:
                    issues.append(_issue(
                        IssueType.UNKNOWN_DEPENDENCY,
                        IssueSeverity.WARNING,
                        [node_id],
                        f"Field '{node_id}' depends on unknown field '{dep}'",
                    ))
            cycle = find_cycle(node_id, get_dependencies)
            if cycle:
                issues.append(_issue(
                    IssueType.CIRCULAR_DEPENDENCY,
                    IssueSeverity.ERROR,
                    [node_id],
                    f"Circular dependency detected for field '{node_id}' ({format_cycle(cycle)})",
                ))

        return HierarchyValidationResult(issues=issues)

    def validate_rule_references(self, nodes: NodeInput) -> HierarchyValidationResult:
        """Check that rules attached to nodes can run and point at known fields.

        Rules that could not be read, or use operators evaluation would
        reject, are errors. Cross-module references ("Module.field") cannot
        be checked against a single field list and are skipped.
        """
        node_list, error = self._coerce_nodes(nodes)
        if error:
            return HierarchyValidationResult(issues=[_invalid_input(error)])

        unique = self._unique(node_list)
        issues: List[HierarchyIssue] = []

        for node in unique.values():
            for problem in node.rejected_rules:
                issues.append(_issue(
                    IssueType.INVALID_RULE,
                    IssueSeverity.ERROR,
                    [node.id],
                    f"{problem} on field '{node.id}'",
                ))
            for rule in node.conditional_rules:
                for operator in unsupported_operators(rule.condition):
                    issues.append(_issue(
                        IssueType.INVALID_RULE,
                        IssueSeverity.ERROR,
                        [node.id],
                        f"Rule '{rule.id}' on field '{node.id}' uses unsupported operator '{operator}'",
                    ))
                if rule.target_field_id and rule.target_field_id not in unique:
                    issues.append(_issue(
                        IssueType.UNKNOWN_RULE_TARGET,
                        IssueSeverity.WARNING,
                        [node.id],
                        f"Rule '{rule.id}' on field '{node.id}' targets unknown field '{rule.target_field_id}'",
                    ))
                for reference in collect_field_references(rule.condition):
                    if not reference.strip():
                        continue
                    module_key, field_id = parse_field_reference(reference)
                    if module_key is None and field_id not in unique:
                        issues.append(_issue(
                            IssueType.UNKNOWN_CONDITION_FIELD,
                            IssueSeverity.WARNING,
                            [node.id],
                            f"Rule '{rule.id}' on field '{node.id}' reads unknown field '{field_id}'",
                        ))

        return HierarchyValidationResult(issues=issues)

    def validate_all(self, nodes: NodeInput) -> HierarchyValidationResult:
        """Run hierarchy, dependency and rule-reference checks."""
        node_list, error = self._coerce_nodes(nodes)
        if error:
            return HierarchyValidationResult(issues=[_invalid_input(error)])
        return (
            self.validate(node_list)
            .merge(self.validate_dependencies(node_list))
            .merge(self.validate_rule_references(node_list))
        )

    def validate_workflow_steps(self, steps: NodeInput) -> HierarchyValidationResult:
        """Validate next-step links of a workflow.

        Reports links to unknown steps (warning) and steps whose links loop
        back (error).
        """
        if steps is None:
            return HierarchyValidationResult()
        try:
            step_list = [
                s if isinstance(s, WorkflowStep) else WorkflowStep.model_validate(s)
                for s in steps
            ]
        except (TypeError, ValidationError) as e:
            logger.warning(f"Malformed workflow step list: {e}")
            return HierarchyValidationResult(issues=[_invalid_input("Malformed workflow step list")])

        links = {}
        for step in step_list:
            links.setdefault(step.id, list(step.next_step_ids))
        get_next = dependency_edges(links)
        issues: List[HierarchyIssue] = []

        for step_id, next_ids in links.items():
            for next_id in next_ids:
                if next_id not in links:
                    issues.append(_issue(
                        IssueType.UNKNOWN_STEP,
                        IssueSeverity.WARNING,
                        [step_id],
                        f"Step '{step_id}' leads to unknown step '{next_id}'",
                    ))
            cycle = find_cycle(step_id, get_next)
            if cycle:
                issues.append(_issue(
                    IssueType.CIRCULAR_STEP_CHAIN,
                    IssueSeverity.ERROR,
                    [step_id],
                    f"Workflow loops back from step '{step_id}' ({format_cycle(cycle)})",
                ))

        return HierarchyValidationResult(issues=issues)

    # ===== Tree construction and repair =====

    def _repair_parents(
        self,
        unique: Dict[str, HierarchyNode],
    ) -> Tuple[Dict[str, Optional[str]], List[str]]:
        """Compute parent links with orphans cleared and cycles broken.

        Cycles are broken at the node whose parent link closes the loop,
        walking nodes in input order.
        """
        parents: Dict[str, Optional[str]] = {
            node_id: node.parent_id for node_id, node in unique.items()
        }
        fixes: List[str] = []

        for node_id, parent_id in list(parents.items()):
            if parent_id is not None and parent_id not in parents:
                logger.warning(f"Clearing invalid parent reference '{parent_id}' from field '{node_id}'")
                parents[node_id] = None
                fixes.append(f"Cleared invalid parent reference '{parent_id}' from field '{node_id}'")

        get_parent = parent_edges(parents)
        for node_id in list(parents):
            cycle = find_cycle(node_id, get_parent)
            if cycle:
                breaking_id = cycle[-2]
                logger.warning(
                    f"Breaking circular reference at field '{breaking_id}' ({format_cycle(cycle)})"
                )
                fixes.append(
                    f"Cleared parent '{parents[breaking_id]}' from field '{breaking_id}' "
                    f"to break circular reference"
                )
                parents[breaking_id] = None

        return parents, fixes

    def build_tree(self, nodes: NodeInput) -> HierarchyTree:
        """Build a parent/child tree from a flat node list.

        Nodes without a parent, or whose parent does not resolve, become
        roots. Circular chains are cut where the cycle closes so the result
        is always a finite tree. Later duplicates of an id are left out.
        Roots and children are sorted by their order (stable).

        Args:
            nodes: Flat node list

        Returns:
            The tree plus the issues found while validating the input
        """
        node_list, error = self._coerce_nodes(nodes)
        if error:
            return HierarchyTree(issues=[_invalid_input(error)])

        unique = self._unique(node_list)
        issues = self._hierarchy_issues(node_list)
        parents, _ = self._repair_parents(unique)

        tree_nodes = {node_id: TreeNode(node=node) for node_id, node in unique.items()}
        roots: List[TreeNode] = []
        for node_id, tree_node in tree_nodes.items():
            parent_id = parents[node_id]
            if parent_id is None:
                roots.append(tree_node)
            else:
                parent = tree_nodes[parent_id]
                tree_node.parent = parent
                parent.children.append(tree_node)

        roots.sort(key=lambda t: t.node.order)
        for tree_node in tree_nodes.values():
            tree_node.children.sort(key=lambda t: t.node.order)

        logger.debug(
            f"Built hierarchy: {len(tree_nodes)} node(s), {len(roots)} root(s), {len(issues)} issue(s)"
        )
        return HierarchyTree(roots=roots, nodes=tree_nodes, issues=issues)

    def fix_issues(self, nodes: NodeInput) -> RepairResult:
        """Repair parent links.

        Unresolved parents are cleared, and each circular chain is broken by
        clearing the parent of the node where the cycle is detected.
        Duplicate ids are not repaired; later duplicates pass through as-is.

        Args:
            nodes: Flat node list

        Returns:
            Repaired nodes (input order) and the fixes applied
        """
        node_list, error = self._coerce_nodes(nodes)
        if error:
            return RepairResult()

        unique = self._unique(node_list)
        parents, fixes = self._repair_parents(unique)
        if not fixes:
            logger.debug("No hierarchy issues to fix")
            return RepairResult(nodes=list(node_list))

        repaired: List[HierarchyNode] = []
        for node in node_list:
            if unique.get(node.id) is node and parents[node.id] != node.parent_id:
                node = node.model_copy(update={"parent_id": parents[node.id]})
            repaired.append(node)

        logger.info(f"Applied {len(fixes)} hierarchy fix(es)")
        return RepairResult(nodes=repaired, fixes_applied=fixes)

    # ===== Metrics =====

    def calculate_metrics(self, nodes: NodeInput) -> HierarchyMetrics:
        """Calculate read-only statistics over the built tree.

        Args:
            nodes: Flat node list

        Returns:
            Metrics (all zero for an empty or unreadable list)
        """
        tree = self.build_tree(nodes)
        if not tree.nodes:
            return HierarchyMetrics()

        levels: Dict[str, int] = {}
        branch_depths: Dict[str, int] = {}
        for root in tree.roots:
            deepest = 0
            levels[root.id] = 0
            for descendant in root.descendants():
                level = levels[descendant.parent.id] + 1
                levels[descendant.id] = level
                deepest = max(deepest, level)
            branch_depths[root.id] = deepest

        total = len(tree.nodes)
        max_depth = max(branch_depths.values(), default=0)
        average_depth = sum(levels.values()) / total

        type_distribution = Counter(
            t.node.node_type or "unknown" for t in tree.nodes.values()
        )
        conditional_nodes = sum(1 for t in tree.nodes.values() if t.node.conditional_rules)

        group_sizes = [len(t.children) for t in tree.nodes.values() if t.children]
        largest_group = max(group_sizes, default=0)
        average_children = sum(group_sizes) / len(group_sizes) if group_sizes else 0.0

        complexity_score = (
            total * 1.0
            + max_depth * 5.0
            + conditional_nodes * 3.0
            + average_children * 2.0
        )

        return HierarchyMetrics(
            total_nodes=total,
            root_nodes=len(tree.roots),
            max_depth=max_depth,
            average_depth=round(average_depth, 2),
            branch_depths=branch_depths,
            type_distribution=dict(type_distribution),
            conditional_nodes=conditional_nodes,
            largest_group=largest_group,
            complexity_score=round(complexity_score, 2),
        )
