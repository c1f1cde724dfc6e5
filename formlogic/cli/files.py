"""JSON file loading shared by the CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape

console = Console()


def load_json(path: Path, key: Optional[str] = None) -> Any:
    """Read a JSON document, exiting with code 1 if it cannot be read.

    Args:
        path: File to read
        key: When the document is an object holding this key, return its value

    Returns:
        Parsed JSON value
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot read {path}: {escape(str(e))}")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {path} is not valid JSON: {escape(str(e))}")
        raise typer.Exit(1)

    if key and isinstance(data, dict) and key in data:
        return data[key]
    return data
