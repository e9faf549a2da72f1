"""
Root Typer application for the warehouse-spine CLI.

The external scheduler drives the warehouse through these commands, e.g.::

    warehouse-spine partition upsert sales acme-prod acme --date today
    warehouse-spine partition window sales acme-prod acme --start today-14 --end yesterday
    warehouse-spine view public sales
"""

from __future__ import annotations

import sys

import typer
from typer import Typer

from whspine import __version__
from whspine.core.logging import configure_logging
from whspine.core.settings import get_settings

app = Typer(
    name="warehouse-spine",
    help="warehouse-spine: day partitions, year promotion and aggregate views.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"warehouse-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override WH_LOG_LEVEL."),
) -> None:
    """warehouse-spine CLI: manage partitions, views, templates and tenants."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.log_json,
        stream=sys.stderr,
    )


# ── Sub-command registration ─────────────────────────────────────────────

from whspine.cli.db import app as db_app  # noqa: E402
from whspine.cli.partition import app as partition_app  # noqa: E402
from whspine.cli.template import app as template_app  # noqa: E402
from whspine.cli.tenant import app as tenant_app  # noqa: E402
from whspine.cli.view import app as view_app  # noqa: E402

app.add_typer(db_app, name="db", help="Host database operations.")
app.add_typer(partition_app, name="partition", help="Day and year partitions.")
app.add_typer(view_app, name="view", help="Tenant and public aggregate views.")
app.add_typer(template_app, name="template", help="Template definitions.")
app.add_typer(tenant_app, name="tenant", help="Tenant source connections.")
