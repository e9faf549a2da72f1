"""
CLI: ``warehouse-spine tenant``: register tenant source databases.

Passwords may be given literally or as a reference resolved at extraction
time (``env:ACME_DB_PASSWORD``, ``file:acme_db_password``); they are never
printed.
"""

from __future__ import annotations

import typer

from whspine.cli.utils import open_warehouse, output_result
from whspine.core.result import try_result
from whspine.registry.connections import TenantConnection

app = typer.Typer(no_args_is_help=True)


@app.command("set")
def set_connection(
    tenant: str = typer.Argument(..., help="Tenant connection id"),
    host: str = typer.Option(..., "--host"),
    dbname: str = typer.Option(..., "--dbname"),
    username: str = typer.Option(..., "--username", "-U"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    port: int = typer.Option(5432, "--port"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Insert or update a tenant's source connection."""
    conn = TenantConnection(tenant=tenant, host=host, dbname=dbname, username=username, password=password, port=port)
    with open_warehouse(database) as wh:

        def _put() -> TenantConnection:
            wh.connections.put(conn)
            return conn

        output_result(try_result(_put), as_json=json_out, title="Tenant Connection")


@app.command("list")
def list_connections(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List registered tenant connections (without passwords)."""
    with open_warehouse(database) as wh:
        output_result(try_result(wh.connections.list), as_json=json_out, title="Tenant Connections")
