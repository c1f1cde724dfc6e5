"""Tests for the hierarchy validator."""

import pytest

from formlogic.core.hierarchy import (
    HierarchyNode,
    HierarchyValidator,
    IssueSeverity,
    IssueType,
)


def issue_types(result):
    return [i.issue_type for i in result.issues]


@pytest.fixture
def validator():
    return HierarchyValidator()


@pytest.fixture
def form_fields():
    """A section with a group and a loose field; the nested field carries a rule."""
    return [
        {"id": "s1", "type": "Section"},
        {"id": "g1", "parentId": "s1", "type": "Group", "order": 2},
        {
            "id": "f1",
            "parentId": "g1",
            "type": "Text",
            "conditionalRules": [{
                "id": "show-f1",
                "action": "show",
                "targetFieldId": "f2",
                "condition": {"field": "f2", "operator": "IsNotEmpty"},
            }],
        },
        {"id": "f2", "parentId": "s1", "type": "Text", "order": 1},
    ]


class TestValidate:
    """Tests for parent-link validation."""

    def test_valid_hierarchy(self, validator, form_fields):
        """Should report nothing for a clean hierarchy."""
        result = validator.validate(form_fields)
        assert result.issues == []
        assert result.is_valid

    def test_circular_reference_reported_for_both(self, validator):
        """Should report a circular reference for each node in the loop."""
        result = validator.validate([
            {"id": "a", "parentId": "b"},
            {"id": "b", "parentId": "a"},
        ])
        circular = [i for i in result.issues if i.issue_type == IssueType.CIRCULAR_REFERENCE]
        assert sorted(i.node_id for i in circular) == ["a", "b"]
        assert all(i.severity == IssueSeverity.ERROR for i in circular)
        assert not result.is_valid

    def test_orphan_parent_is_warning(self, validator):
        """Should warn about a parent that does not exist."""
        result = validator.validate([{"id": "c", "parentId": "zzz"}])
        assert issue_types(result) == [IssueType.ORPHAN_PARENT]
        assert result.warnings[0].node_id == "c"
        assert "zzz" in result.warnings[0].message
        assert result.is_valid

    def test_duplicate_id_reported_once(self, validator):
        """Should report each duplicated id once."""
        result = validator.validate([{"id": "a"}, {"id": "a"}, {"id": "a"}])
        assert issue_types(result) == [IssueType.DUPLICATE_ID]
        assert "3 times" in result.issues[0].message

    def test_self_reference(self, validator):
        """Should report a self reference without a separate cycle issue."""
        result = validator.validate([{"id": "a", "parentId": "a"}])
        assert issue_types(result) == [IssueType.SELF_REFERENCE]

    def test_empty_id(self, validator):
        """Should report a blank id."""
        result = validator.validate([{"id": ""}])
        assert IssueType.EMPTY_ID in issue_types(result)

    def test_blank_parent_is_root(self):
        """Should treat a blank parent id as no parent."""
        assert HierarchyNode(id="a", parent_id="  ").parent_id is None

    def test_issues_for(self, validator):
        """Should filter issues by node id."""
        result = validator.validate([{"id": "c", "parentId": "zzz"}, {"id": "d"}])
        assert len(result.issues_for("c")) == 1
        assert result.issues_for("d") == []

    @pytest.mark.parametrize("bad_input", ["not a list", {"id": "a"}, [{"parentId": "x"}], 42])
    def test_malformed_input(self, validator, bad_input):
        """Should return an invalid-input issue instead of raising."""
        result = validator.validate(bad_input)
        assert issue_types(result) == [IssueType.INVALID_INPUT]

    def test_none_is_empty(self, validator):
        """Should treat None as an empty list."""
        assert validator.validate(None).issues == []


class TestBuildTree:
    """Tests for tree construction."""

    def test_builds_tree_sorted_by_order(self, validator, form_fields):
        """Should group children under parents, sorted by order."""
        tree = validator.build_tree(form_fields)

        assert [r.id for r in tree.roots] == ["s1"]
        assert [c.id for c in tree.children_of("s1")] == ["f2", "g1"]
        assert tree.get("f1").parent.id == "g1"
        assert tree.get("f1").level == 2
        assert tree.get("f1").path == "s1.g1.f1"
        assert len(tree) == 4
        assert tree.issues == []

    def test_walk_is_breadth_first(self, validator, form_fields):
        """Should walk level by level."""
        tree = validator.build_tree(form_fields)
        assert [t.id for t in tree.walk()] == ["s1", "f2", "g1", "f1"]

    def test_orphan_becomes_root(self, validator):
        """Should place a node with an unresolved parent at the root."""
        tree = validator.build_tree([{"id": "a"}, {"id": "c", "parentId": "zzz"}])
        assert [r.id for r in tree.roots] == ["a", "c"]
        assert [i.issue_type for i in tree.issues] == [IssueType.ORPHAN_PARENT]

    def test_cycle_is_cut(self, validator):
        """Should still produce a finite tree for a cycle."""
        tree = validator.build_tree([{"id": "a", "parentId": "b"}, {"id": "b", "parentId": "a"}])
        assert [r.id for r in tree.roots] == ["b"]
        assert [c.id for c in tree.children_of("b")] == ["a"]
        assert len([i for i in tree.issues if i.issue_type == IssueType.CIRCULAR_REFERENCE]) == 2

    def test_duplicate_keeps_first(self, validator):
        """Should keep the first node for a duplicated id."""
        tree = validator.build_tree([
            {"id": "a", "type": "First"},
            {"id": "a", "type": "Second"},
        ])
        assert len(tree) == 1
        assert tree.get("a").node.node_type == "First"

    def test_malformed_input_gives_empty_tree(self, validator):
        """Should return an empty tree for a malformed list."""
        tree = validator.build_tree("junk")
        assert tree.roots == []
        assert [i.issue_type for i in tree.issues] == [IssueType.INVALID_INPUT]


class TestFixIssues:
    """Tests for automatic repair."""

    def test_clears_orphan_parent(self, validator):
        """Should clear a parent that does not resolve."""
        original = HierarchyNode(id="c", parent_id="zzz")
        result = validator.fix_issues([original])

        assert result.nodes[0].parent_id is None
        assert result.fixed_count == 1
        assert original.parent_id == "zzz"

    def test_breaks_cycle(self, validator):
        """Should break a cycle so the result validates cleanly."""
        nodes = [{"id": "a", "parentId": "b"}, {"id": "b", "parentId": "a"}]
        result = validator.fix_issues(nodes)

        assert {n.id: n.parent_id for n in result.nodes} == {"a": "b", "b": None}
        assert validator.validate(result.nodes).is_valid

    def test_breaks_self_reference(self, validator):
        """Should clear a self-referencing parent."""
        result = validator.fix_issues([{"id": "a", "parentId": "a"}])
        assert result.nodes[0].parent_id is None

    def test_nothing_to_fix(self, validator, form_fields):
        """Should return nodes unchanged when there is nothing to fix."""
        result = validator.fix_issues(form_fields)
        assert result.fixes_applied == []
        assert [n.id for n in result.nodes] == ["s1", "g1", "f1", "f2"]

    def test_malformed_input(self, validator):
        """Should return an empty result for a malformed list."""
        assert validator.fix_issues("junk").nodes == []


class TestDependencies:
    """Tests for formula dependency validation."""

    def test_circular_and_unknown_dependencies(self, validator):
        """Should report cycles as errors and unknown ids as warnings."""
        result = validator.validate_dependencies([
            {"id": "total", "dependencies": ["a", "b"]},
            {"id": "a", "dependencies": ["total"]},
            {"id": "c", "dependencies": ["a"]},
        ])
        circular = [i.node_id for i in result.errors]
        assert circular == ["total", "a", "c"]
        assert [i.node_id for i in result.warnings] == ["total"]
        assert all(i.issue_type == IssueType.CIRCULAR_DEPENDENCY for i in result.errors)

    def test_self_dependency(self, validator):
        """Should flag a field depending on itself."""
        result = validator.validate_dependencies([{"id": "x", "dependencies": ["x"]}])
        assert issue_types(result) == [IssueType.CIRCULAR_DEPENDENCY]

    def test_shared_dependency_is_valid(self, validator):
        """Should accept two formulas sharing an input."""
        result = validator.validate_dependencies([
            {"id": "base"},
            {"id": "a", "dependencies": ["base"]},
            {"id": "b", "dependencies": ["base"]},
            {"id": "total", "dependencies": ["a", "b"]},
        ])
        assert result.issues == []


class TestRuleReferences:
    """Tests for rule reference validation."""

    def test_unknown_targets_and_fields(self, validator):
        """Should warn about unknown rule targets and condition fields."""
        result = validator.validate_rule_references([
            {"id": "f2"},
            {
                "id": "f1",
                "conditionalRules": [{
                    "id": "r1",
                    "action": "show",
                    "targetFieldId": "ghost",
                    "condition": {
                        "logicalOp": "And",
                        "conditions": [
                            {"field": "missing", "operator": "IsNull"},
                            {"field": "Other.x", "operator": "IsNull"},
                            {"field": "f2", "operator": "IsNull"},
                        ],
                    },
                }],
            },
        ])
        assert issue_types(result) == [IssueType.UNKNOWN_RULE_TARGET, IssueType.UNKNOWN_CONDITION_FIELD]
        assert result.is_valid

    def test_validate_all_combines_checks(self, validator, form_fields):
        """Should run every check."""
        fields = form_fields + [{"id": "x", "parentId": "nowhere", "dependencies": ["x"]}]
        result = validator.validate_all(fields)
        assert set(issue_types(result)) == {IssueType.ORPHAN_PARENT, IssueType.CIRCULAR_DEPENDENCY}


class TestWorkflowSteps:
    """Tests for workflow step-chain validation."""

    def test_loop_and_unknown_step(self, validator):
        """Should report looping steps and links to unknown steps."""
        result = validator.validate_workflow_steps([
            {"id": "s1", "nextStepIds": ["s2"]},
            {"id": "s2", "nextStepIds": ["s3", "s9"]},
            {"id": "s3", "nextStepIds": ["s1"]},
        ])
        assert sorted(i.node_id for i in result.errors) == ["s1", "s2", "s3"]
        assert [i.node_id for i in result.warnings] == ["s2"]

    def test_linear_workflow(self, validator):
        """Should accept a linear workflow."""
        result = validator.validate_workflow_steps([
            {"id": "s1", "nextStepIds": ["s2"]},
            {"id": "s2"},
        ])
        assert result.is_valid
        assert result.issues == []


class TestMetrics:
    """Tests for hierarchy metrics."""

    def test_metrics(self, validator, form_fields):
        """Should aggregate counts, depths and types."""
        metrics = validator.calculate_metrics(form_fields)

        assert metrics.total_nodes == 4
        assert metrics.root_nodes == 1
        assert metrics.max_depth == 2
        assert metrics.average_depth == 1.0
        assert metrics.branch_depths == {"s1": 2}
        assert metrics.type_distribution == {"Section": 1, "Group": 1, "Text": 2}
        assert metrics.conditional_nodes == 1
        assert metrics.largest_group == 2
        assert metrics.complexity_score == 20.0

    def test_untyped_nodes(self, validator):
        """Should count nodes without a type as unknown."""
        metrics = validator.calculate_metrics([{"id": "a"}, {"id": "b"}])
        assert metrics.type_distribution == {"unknown": 2}
        assert metrics.max_depth == 0

    @pytest.mark.parametrize("bad_input", [None, [], "junk"])
    def test_empty_metrics(self, validator, bad_input):
        """Should return zero metrics for empty or malformed input."""
        metrics = validator.calculate_metrics(bad_input)
        assert metrics.total_nodes == 0
        assert metrics.complexity_score == 0.0


class TestCorruptedRules:
    """Tests for nodes carrying rules that cannot run."""

    @pytest.fixture
    def cyclic_with_bad_rule(self):
        return [
            {"id": "a", "parentId": "b"},
            {
                "id": "b",
                "parentId": "a",
                "conditionalRules": [{
                    "id": "r1",
                    "action": "show",
                    "condition": {"field": "a", "operator": "Bogus"},
                }],
            },
        ]

    def test_structure_still_validated(self, validator, cyclic_with_bad_rule):
        """Should report the cycle despite an unknown operator."""
        result = validator.validate(cyclic_with_bad_rule)
        circular = [i.node_id for i in result.issues if i.issue_type == IssueType.CIRCULAR_REFERENCE]
        assert sorted(circular) == ["a", "b"]
        assert IssueType.INVALID_INPUT not in issue_types(result)

    def test_unknown_operator_reported_on_node(self, validator, cyclic_with_bad_rule):
        """Should report the unknown operator against its node."""
        result = validator.validate_rule_references(cyclic_with_bad_rule)
        assert issue_types(result) == [IssueType.INVALID_RULE]
        assert result.issues[0].node_id == "b"
        assert "Bogus" in result.issues[0].message

    def test_unreadable_rule_set_aside(self, validator):
        """Should keep the node and report a rule that cannot be read."""
        nodes = [
            {"id": "s1"},
            {
                "id": "f1",
                "parentId": "s1",
                "conditionalRules": [
                    {"id": "broken", "action": "show"},
                    {"id": "ok", "action": "hide", "condition": {"field": "s1", "operator": "IsNull"}},
                ],
            },
        ]
        tree = validator.build_tree(nodes)
        assert tree.get("f1").parent.id == "s1"
        assert [r.id for r in tree.get("f1").node.conditional_rules] == ["ok"]

        result = validator.validate_all(nodes)
        assert issue_types(result) == [IssueType.INVALID_RULE]
        assert "'broken'" in result.issues[0].message

    def test_metrics_still_computed(self, validator, cyclic_with_bad_rule):
        """Should compute metrics over nodes with corrupted rules."""
        assert validator.calculate_metrics(cyclic_with_bad_rule).total_nodes == 2


class TestStoredSchemaRoundTrip:
    """Tests for writing repaired nodes back in their stored form."""

    def test_repair_changes_only_parent(self, validator):
        """Should keep unknown keys and original key names."""
        stored = {"id": "a", "parentId": "zzz", "label": "Applicant name", "fieldType": "Text"}
        result = validator.fix_issues([stored])

        assert result.nodes[0].to_schema() == {
            "id": "a",
            "parentId": None,
            "label": "Applicant name",
            "fieldType": "Text",
        }
        assert stored["parentId"] == "zzz"

    def test_unchanged_node_round_trips(self, validator):
        """Should return an untouched node exactly as stored."""
        stored = {"id": "s1", "type": "Section", "order": 3, "help": {"text": "Intro"}}
        result = validator.fix_issues([stored])
        assert result.nodes[0].to_schema() == stored

    def test_unknown_keys_kept_on_model(self):
        """Should keep keys the validator does not use."""
        node = HierarchyNode.model_validate({"id": "a", "label": "Name"})
        assert node.model_dump(by_alias=True)["label"] == "Name"

    def test_blank_parent_left_as_stored(self, validator):
        """Should not rewrite a blank parent the validator reads as root."""
        stored = {"id": "a", "parentId": "", "label": "Name"}
        result = validator.fix_issues([stored])
        assert result.nodes[0].to_schema() == stored

    def test_node_built_in_code(self):
        """Should return the keys a node was built with."""
        node = HierarchyNode(id="a", parent_id="s1")
        assert node.to_schema() == {"id": "a", "parent_id": "s1"}
