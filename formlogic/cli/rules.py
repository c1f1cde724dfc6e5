"""Rules CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from formlogic.core.rules import (
    ConditionalRule,
    DataContext,
    RuleEngine,
    describe_condition,
)
from formlogic.cli.files import load_json

console = Console()
app = typer.Typer()

_rules_adapter = TypeAdapter(List[ConditionalRule])


def load_rules(path: Path) -> List[ConditionalRule]:
    """Load a rule list (or an object with a "rules" key) from JSON."""
    data = load_json(path, key="rules")
    try:
        return _rules_adapter.validate_python(data)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid rules in {path}:\n{escape(str(e))}")
        raise typer.Exit(1)


def load_context(path: Path, module: Optional[str] = None) -> DataContext:
    """Load a data context from JSON.

    Accepts either a full context ({"modules": ..., "currentModuleKey": ...})
    or a bare mapping of module key to field values.
    """
    data = load_json(path)
    if not isinstance(data, dict):
        console.print(f"[red]Error:[/red] {path} must contain a JSON object")
        raise typer.Exit(1)

    if "modules" not in data:
        data = {"modules": data}
    try:
        context = DataContext.model_validate(data)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid data context in {path}:\n{escape(str(e))}")
        raise typer.Exit(1)

    if module:
        context.current_module_key = module
    return context


@app.command("evaluate")
def evaluate_rules(
    rules_file: Path = typer.Argument(..., help="JSON file with conditional rules"),
    data_file: Path = typer.Argument(..., help="JSON file with field values by module"),
    module: Optional[str] = typer.Option(
        None, "--module", "-m", help="Module used for unprefixed field references"
    ),
    show_errors: bool = typer.Option(
        True, "--show-errors/--hide-errors", help="List rules that failed to evaluate"
    ),
):
    """Evaluate rules against form data and show the triggered actions."""
    rules = load_rules(rules_file)
    context = load_context(data_file, module)

    if not rules:
        console.print("[yellow]No rules found.[/yellow]")
        return

    engine = RuleEngine()
    results = engine.evaluate_rules(rules, context, include_errors=True)
    triggered = [r for r in results if r.is_triggered]
    failed = [r for r in results if r.has_error]

    console.print(f"Evaluated {len(rules)} rule(s) against {len(context.modules)} module(s)\n")

    if triggered:
        table = Table(title="Triggered Rules")
        table.add_column("Priority", justify="right")
        table.add_column("Rule", style="cyan", no_wrap=True)
        table.add_column("Action")
        table.add_column("Target")
        table.add_column("Condition", style="dim")

        for r in triggered:
            if r.target_step_number is not None:
                target = f"step {r.target_step_number}"
            elif r.target_field_id:
                target = r.target_field_id
            else:
                target = "[dim]-[/dim]"
            if r.target_module_key:
                target = f"{r.target_module_key}: {target}"

            action = r.action_to_perform
            if r.rule.known_action is None:
                action = f"{action} [yellow](custom)[/yellow]"

            table.add_row(
                str(r.priority),
                r.rule.id,
                action,
                target,
                escape(describe_condition(r.rule.condition)),
            )
        console.print(table)
    else:
        console.print("[green]No rules triggered.[/green]")

    if failed and show_errors:
        console.print(f"\n[bold red]FAILED: {len(failed)} rule(s)[/bold red]")
        for r in failed:
            console.print(f"  [red]{r.rule.id}[/red]: {escape(r.error_message)}")

    if failed:
        raise typer.Exit(1)


@app.command("list")
def list_rules(
    rules_file: Path = typer.Argument(..., help="JSON file with conditional rules"),
    all_rules: bool = typer.Option(False, "--all", "-a", help="Show inactive rules too"),
):
    """List rules in priority order."""
    rules = load_rules(rules_file)
    if not all_rules:
        rules = [r for r in rules if r.is_active]

    if not rules:
        console.print("[yellow]No rules found.[/yellow]")
        return

    table = Table(title="Rules")
    table.add_column("Priority", justify="right")
    table.add_column("Rule", style="cyan", no_wrap=True)
    table.add_column("Action")
    table.add_column("Active")
    table.add_column("Condition", style="dim")

    for r in sorted(rules, key=lambda rule: rule.priority):
        active_str = "[green]Yes[/green]" if r.is_active else "[red]No[/red]"
        table.add_row(
            str(r.priority),
            r.id,
            r.action,
            active_str,
            escape(describe_condition(r.condition)),
        )

    console.print(table)
    console.print(f"\n[dim]Total rules: {len(rules)}[/dim]")
