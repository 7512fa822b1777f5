"""
dazzle-forms CLI.

Development commands for inspecting forms built from local documents:
- tree:     Print the control tree for a schema (and optional UI Schema/data)
- validate: Validate a data document and list errors per path
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from dazzle_forms._version import get_version
from dazzle_forms.config import FormOptions
from dazzle_forms.core.errors import FormError
from dazzle_forms.runtime.form import Form
from dazzle_forms.specs.control import ControlDescriptor, ControlKind

app = typer.Typer(
    help="dazzle-forms – schema-driven form control trees",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dazzle-forms version {get_version()}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Global options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        console.print(f"[red]Cannot read {label} {path}: {e}[/red]")
        raise typer.Exit(2)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {label} {path}: {e.msg} (line {e.lineno})[/red]")
        raise typer.Exit(2)


def _load_form(
    schema_file: Path,
    ui_schema_file: Path | None,
    data_file: Path | None,
    locale: str | None = None,
) -> Form:
    options = FormOptions(locale=locale) if locale else FormOptions()
    form = Form(options)
    schema = _read_json(schema_file, "schema")
    ui_schema = _read_json(ui_schema_file, "ui schema") if ui_schema_file else None
    try:
        form.load(schema, ui_schema)
        if data_file is not None:
            form.set_data(_read_json(data_file, "data"))
    except FormError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(2)
    return form


def _node_label(node: ControlDescriptor) -> str:
    parts = [f"[bold]{node.kind.value}[/bold]"]
    if node.path is not None:
        parts.append(f"[cyan]{node.path or '<root>'}[/cyan]")
    if node.label:
        parts.append(repr(node.label))
    if node.required:
        parts.append("[yellow]*[/yellow]")
    if node.kind == ControlKind.LEAF:
        parts.append(f"({node.payload.flavor.value})")
    if node.kind == ControlKind.CUSTOM:
        parts.append(f"(renderer={node.payload.renderer})")
    if node.hidden:
        parts.append("[dim]hidden[/dim]")
    if not node.enabled:
        parts.append("[dim]disabled[/dim]")
    for message in node.errors:
        parts.append(f"[red]! {message}[/red]")
    return " ".join(parts)


def _add_branch(parent: Tree, node: ControlDescriptor) -> None:
    branch = parent.add(_node_label(node))
    for child in node.children:
        _add_branch(branch, child)


@app.command(name="tree")
def tree_command(
    schema_file: Path = typer.Argument(..., help="JSON Schema file"),
    ui_schema: Path | None = typer.Option(None, "--ui-schema", "-u", help="UI Schema file"),
    data: Path | None = typer.Option(None, "--data", "-d", help="Initial data file"),
) -> None:
    """Print the control tree built for a schema."""
    form = _load_form(schema_file, ui_schema, data)
    if form.tree is None:
        console.print("[dim]Empty form.[/dim]")
        return
    root = Tree(_node_label(form.tree))
    for child in form.tree.children:
        _add_branch(root, child)
    console.print(root)


@app.command(name="validate")
def validate_command(
    schema_file: Path = typer.Argument(..., help="JSON Schema file"),
    data_file: Path = typer.Argument(..., help="Data file to validate"),
    ui_schema: Path | None = typer.Option(None, "--ui-schema", "-u", help="UI Schema file"),
    locale: str | None = typer.Option(
        None, "--locale", "-l", help="Message locale (de, es, fr, zh)"
    ),
) -> None:
    """Validate a data document against a schema."""
    form = _load_form(schema_file, ui_schema, data_file, locale)
    result = form.validate()

    if result.valid:
        console.print("[green]Valid.[/green]")
        return

    table = Table(title="Validation errors")
    table.add_column("Path", style="cyan")
    table.add_column("Keyword")
    table.add_column("Message")
    for error in result.errors:
        table.add_row(str(error.path) or "<root>", error.keyword, error.message)
    console.print(table)
    raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
