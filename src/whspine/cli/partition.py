"""
CLI: ``warehouse-spine partition``: day partition lifecycle and promotion.

Dates accept ``YYYY-MM-DD``, ``today``, ``yesterday`` and ``today-N``, so
cron entries can stay static::

    0 * * * *   warehouse-spine partition upsert sales acme-prod acme --date today
    30 2 * * *  warehouse-spine partition window sales acme-prod acme --start today-14 --end yesterday
"""

from __future__ import annotations

import typer

from whspine.cli.utils import open_warehouse, output_result, parse_date
from whspine.core.result import try_result

app = typer.Typer(no_args_is_help=True)

_DATE_HELP = "YYYY-MM-DD, today, yesterday or today-N"


@app.command()
def create(
    template: str = typer.Argument(..., help="Template name"),
    tenant: str = typer.Argument(..., help="Tenant connection id"),
    schema: str = typer.Argument(..., help="Tenant schema"),
    target_date: str = typer.Option("today", "--date", help=_DATE_HELP),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Create one day partition (no-op if it exists)."""
    day = parse_date(target_date)
    with open_warehouse(database) as wh:
        result = wh.materializer.create(template, tenant, schema, day)
        output_result(result, as_json=json_out, title="Create")


@app.command()
def upsert(
    template: str = typer.Argument(..., help="Template name"),
    tenant: str = typer.Argument(..., help="Tenant connection id"),
    schema: str = typer.Argument(..., help="Tenant schema"),
    target_date: str = typer.Option("today", "--date", help=_DATE_HELP),
    refresh_adjacent: bool = typer.Option(True, "--adjacent/--no-adjacent", help="Refresh the previous day too"),
    propagate_view: bool = typer.Option(True, "--view/--no-view", help="Rebuild the tenant view on creation"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Create the day partition, or refresh it if it exists."""
    day = parse_date(target_date)
    with open_warehouse(database) as wh:
        result = wh.lifecycle.upsert(
            template,
            tenant,
            schema,
            day,
            refresh_adjacent=refresh_adjacent,
            propagate_view=propagate_view,
        )
        output_result(result, as_json=json_out, title="Upsert")


@app.command()
def refresh(
    template: str = typer.Argument(..., help="Template name"),
    tenant: str = typer.Argument(..., help="Tenant connection id"),
    schema: str = typer.Argument(..., help="Tenant schema"),
    target_date: str = typer.Option("today", "--date", help=_DATE_HELP),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Refresh an existing day partition in place."""
    day = parse_date(target_date)
    with open_warehouse(database) as wh:
        result = wh.materializer.refresh(template, tenant, schema, day).map(
            lambda rows: {"date": day.isoformat(), "rows": rows}
        )
        output_result(result, as_json=json_out, title="Refresh")


@app.command()
def window(
    template: str = typer.Argument(..., help="Template name"),
    tenant: str = typer.Argument(..., help="Tenant connection id"),
    schema: str = typer.Argument(..., help="Tenant schema"),
    start: str = typer.Option("today-14", "--start", help=_DATE_HELP),
    end: str = typer.Option("today", "--end", help=_DATE_HELP),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Upsert every date in [start, end]; exits 1 if any date failed."""
    start_date, end_date = parse_date(start), parse_date(end)
    with open_warehouse(database) as wh:
        result = wh.window.run(template, tenant, schema, start_date, end_date)
        output_result(result, as_json=json_out, title="Window")
    if result.value.error_count:
        raise typer.Exit(code=1)


@app.command()
def promote(
    template: str = typer.Argument(..., help="Template name"),
    schema: str = typer.Argument(..., help="Tenant schema"),
    year: int = typer.Argument(..., help="Year to fold into one partition"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Merge a year's day partitions into the year partition."""
    with open_warehouse(database) as wh:
        output_result(wh.promotion.promote(template, schema, year), as_json=json_out, title="Promotion")


@app.command()
def check(
    template: str = typer.Argument(..., help="Template name"),
    schema: str = typer.Argument(..., help="Tenant schema"),
    year: int = typer.Argument(..., help="Year to check"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Report which day partitions of a year are missing."""
    with open_warehouse(database) as wh:
        output_result(wh.completeness.check(template, schema, year), as_json=json_out, title="Completeness")


@app.command("list")
def list_partitions(
    template: str = typer.Argument(..., help="Template name"),
    schema: str = typer.Argument(..., help="Tenant schema"),
    year: int | None = typer.Option(None, "--year", help="Only day partitions of this year"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List catalogued year and day partitions."""
    with open_warehouse(database) as wh:

        def _list() -> list:
            years = [] if year is not None else wh.catalog.list_years(template, schema)
            return years + wh.catalog.list_days(template, schema, year)

        output_result(try_result(_list), as_json=json_out, title=f"{schema}.{template}")
