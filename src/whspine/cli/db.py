"""
CLI: ``warehouse-spine db``: host database commands.
"""

from __future__ import annotations

import typer

from whspine.cli.utils import open_warehouse, output_result
from whspine.core.result import try_result
from whspine.core.schema import create_ops_tables

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Create the operational schema and its tables."""
    with open_warehouse(database) as wh:
        result = try_result(lambda: create_ops_tables(wh.store, wh.settings.operational_schema))
        output_result(result, as_json=json_out, title="Operational Tables")
