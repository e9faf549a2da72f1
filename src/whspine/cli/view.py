"""
CLI: ``warehouse-spine view``: rebuild aggregate views.
"""

from __future__ import annotations

import typer

from whspine.cli.utils import open_warehouse, output_result

app = typer.Typer(no_args_is_help=True)


@app.command()
def tenant(
    template: str = typer.Argument(..., help="Template name"),
    schema: str = typer.Argument(..., help="Tenant schema"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Rebuild a tenant's aggregate view from its catalogued partitions."""
    with open_warehouse(database) as wh:
        result = wh.union.rebuild(template, schema).map(lambda n: {"view": template, "schema": schema, "sources": n})
        output_result(result, as_json=json_out, title="Tenant View")


@app.command()
def public(
    template: str = typer.Argument(..., help="Template name"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Rebuild the cross-tenant aggregate view of a template."""
    with open_warehouse(database) as wh:
        result = wh.public.rebuild(template).map(
            lambda n: {"view": template, "schema": wh.settings.public_schema, "tenants": n}
        )
        output_result(result, as_json=json_out, title="Public View")
