"""Main CLI entry point using Typer."""

import logging

import typer
from rich.console import Console

from formlogic.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION, get_settings

console = Console()
app = typer.Typer(
    name="formlogic",
    help=f"{PRODUCT_NAME}: {PRODUCT_TAGLINE}",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Configure logging on startup."""
    level = logging.DEBUG if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Import and add subcommands
from formlogic.cli.rules import app as rules_app
from formlogic.cli.hierarchy import app as hierarchy_app

app.add_typer(rules_app, name="rules", help="Evaluate conditional rules")
app.add_typer(hierarchy_app, name="hierarchy", help="Validate and repair field hierarchies")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]{PRODUCT_NAME}[/]")
    console.print(f"[bold]Version:[/] {PRODUCT_VERSION}")
    console.print(f"[bold]Tagline:[/] {PRODUCT_TAGLINE}")


if __name__ == "__main__":
    app()
