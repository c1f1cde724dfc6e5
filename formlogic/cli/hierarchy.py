"""Hierarchy CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from formlogic.core.hierarchy import (
    HierarchyValidationResult,
    HierarchyValidator,
    IssueSeverity,
    IssueType,
    TreeNode,
)
from formlogic.cli.files import load_json

console = Console()
app = typer.Typer()


def print_issues(result: HierarchyValidationResult, title: str = "Issues") -> None:
    """Print validation issues as a table."""
    table = Table(title=title)
    table.add_column("Severity")
    table.add_column("Issue", style="cyan")
    table.add_column("Field(s)")
    table.add_column("Details")

    for issue in result.issues:
        severity = (
            "[red]error[/red]"
            if issue.severity == IssueSeverity.ERROR
            else "[yellow]warning[/yellow]"
        )
        table.add_row(severity, issue.title, ", ".join(issue.node_ids) or "-", escape(issue.message))

    console.print(table)


@app.command("validate")
def validate_hierarchy(
    fields_file: Path = typer.Argument(..., help="JSON file with a flat field list"),
    structure_only: bool = typer.Option(
        False, "--structure-only", "-s", help="Only check parent links"
    ),
):
    """Validate parent links, dependencies and rule references."""
    nodes = load_json(fields_file, key="fields")
    validator = HierarchyValidator()
    result = validator.validate(nodes) if structure_only else validator.validate_all(nodes)

    if not result.issues:
        console.print("[green]No issues found.[/green]")
        return

    print_issues(result)
    console.print(
        f"\n[dim]{len(result.errors)} error(s), {len(result.warnings)} warning(s)[/dim]"
    )
    if not result.is_valid:
        raise typer.Exit(1)


@app.command("steps")
def validate_steps(
    steps_file: Path = typer.Argument(..., help="JSON file with workflow steps"),
):
    """Validate workflow next-step links."""
    steps = load_json(steps_file, key="steps")
    result = HierarchyValidator().validate_workflow_steps(steps)

    if not result.issues:
        console.print("[green]No issues found.[/green]")
        return

    print_issues(result, title="Workflow Issues")
    if not result.is_valid:
        raise typer.Exit(1)


@app.command("fix")
def fix_hierarchy(
    fields_file: Path = typer.Argument(..., help="JSON file with a flat field list"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write repaired fields here (default: print)"
    ),
):
    """Clear invalid parent links and break circular chains."""
    nodes = load_json(fields_file, key="fields")
    validator = HierarchyValidator()

    invalid = [i for i in validator.validate(nodes).issues if i.issue_type == IssueType.INVALID_INPUT]
    if invalid:
        console.print(f"[red]Error:[/red] {escape(invalid[0].message)}")
        raise typer.Exit(1)

    result = validator.fix_issues(nodes)
    for fix in result.fixes_applied:
        console.print(f"[green]Fixed:[/green] {escape(fix)}")
    if not result.fixed_count:
        console.print("[green]Nothing to fix.[/green]")

    repaired = [n.to_schema() for n in result.nodes]
    text = json.dumps(repaired, indent=2)
    if output:
        output.write_text(text + "\n", encoding="utf-8")
        console.print(f"[dim]Wrote {len(repaired)} field(s) to {output}[/dim]")
    else:
        console.print_json(text)


@app.command("metrics")
def hierarchy_metrics(
    fields_file: Path = typer.Argument(..., help="JSON file with a flat field list"),
):
    """Show hierarchy statistics."""
    nodes = load_json(fields_file, key="fields")
    metrics = HierarchyValidator().calculate_metrics(nodes)

    table = Table(title="Hierarchy Metrics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total fields", str(metrics.total_nodes))
    table.add_row("Root fields", str(metrics.root_nodes))
    table.add_row("Max depth", str(metrics.max_depth))
    table.add_row("Average depth", f"{metrics.average_depth:.2f}")
    table.add_row("Fields with rules", str(metrics.conditional_nodes))
    table.add_row("Largest group", str(metrics.largest_group))
    table.add_row("Complexity score", f"{metrics.complexity_score:.2f}")
    console.print(table)

    if metrics.type_distribution:
        types = Table(title="Field Types")
        types.add_column("Type", style="cyan")
        types.add_column("Count", justify="right")
        for node_type, count in sorted(metrics.type_distribution.items()):
            types.add_row(node_type, str(count))
        console.print(types)


@app.command("tree")
def show_tree(
    fields_file: Path = typer.Argument(..., help="JSON file with a flat field list"),
):
    """Print the field tree."""
    nodes = load_json(fields_file, key="fields")
    hierarchy = HierarchyValidator().build_tree(nodes)

    def label(tree_node: TreeNode) -> str:
        node_type = tree_node.node.node_type
        return f"[cyan]{tree_node.id}[/cyan] [dim]({node_type})[/dim]" if node_type else f"[cyan]{tree_node.id}[/cyan]"

    root = Tree(f"[bold]{fields_file.name}[/bold]")
    stack = [(root, t) for t in reversed(hierarchy.roots)]
    while stack:
        branch, tree_node = stack.pop()
        child_branch = branch.add(label(tree_node))
        stack.extend((child_branch, c) for c in reversed(tree_node.children))

    console.print(root)
    if hierarchy.issues:
        print_issues(HierarchyValidationResult(issues=hierarchy.issues))
