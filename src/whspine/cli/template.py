"""
CLI: ``warehouse-spine template``: manage template definitions.
"""

from __future__ import annotations

from pathlib import Path

import typer

from whspine.cli.utils import open_warehouse, output_result
from whspine.core.result import try_result
from whspine.registry.templates import load_templates

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_templates(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List registered templates."""
    with open_warehouse(database) as wh:
        result = try_result(
            lambda: [
                {"name": t.name, "columns": len(t.columns), "unique_key": t.unique_key, "description": t.description}
                for t in wh.templates.list()
            ]
        )
        output_result(result, as_json=json_out, title="Templates")


@app.command()
def show(
    name: str = typer.Argument(..., help="Template name"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one template."""
    with open_warehouse(database) as wh:
        output_result(try_result(lambda: wh.templates.get(name)), as_json=json_out, title=name)


@app.command()
def load(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML file of templates"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Insert or replace templates from a YAML file."""

    def _load(wh) -> list[dict]:
        loaded = load_templates(path)
        for tmpl in loaded:
            wh.templates.put(tmpl)
        return [{"name": t.name, "loaded": True} for t in loaded]

    with open_warehouse(database) as wh:
        output_result(try_result(lambda: _load(wh)), as_json=json_out, title="Templates Loaded")
