"""
CLI utility helpers: date keywords, output formatting, warehouse opening.
"""

from __future__ import annotations

import json
import re
from datetime import date, timedelta
from enum import Enum
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from whspine.core.errors import PromotionError, WarehouseError
from whspine.core.result import Result
from whspine.core.settings import get_settings
from whspine.warehouse import Warehouse

console = Console()
err_console = Console(stderr=True)

_RELATIVE = re.compile(r"^today-(\d+)$")


# ── Warehouse helper ─────────────────────────────────────────────────────


def open_warehouse(database: str | None = None) -> Warehouse:
    """Open the warehouse from settings, with ``--database`` taking precedence."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"database_url": database})
    return Warehouse.from_settings(settings)


# ── Date keywords ────────────────────────────────────────────────────────


def parse_date(value: str, *, today: date | None = None) -> date:
    """Parse ``YYYY-MM-DD``, ``today``, ``yesterday`` or ``today-N``."""
    today = today or date.today()
    text = value.strip().lower()
    if text == "today":
        return today
    if text == "yesterday":
        return today - timedelta(days=1)
    match = _RELATIVE.match(text)
    if match:
        return today - timedelta(days=int(match.group(1)))
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise typer.BadParameter(
            f"{value!r} is not a date (use YYYY-MM-DD, today, yesterday or today-N)"
        ) from None


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert a report / record / scalar outcome to a plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if isinstance(obj, dict):
        return obj
    if isinstance(obj, Enum):
        return {"outcome": obj.value}
    return {"value": obj}


def output_result(
    result: Result[Any],
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render a ``Result``; ``Err`` exits with code 1."""
    if result.is_err():
        _output_error(result.error, as_json=as_json)
        raise typer.Exit(code=1)

    data = result.value

    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list | tuple):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table(list(data), title=title)
    else:
        _print_dict(_to_dict(data), title=title)


def _output_error(error: Exception, *, as_json: bool) -> None:
    if isinstance(error, WarehouseError):
        code = error.category.value
        msg = error.message
    else:
        code = "ERROR"
        msg = str(error)
    err_console.print(f"[bold red]Error[/bold red] ({code}): {msg}")

    # A failed promotion still has a report worth showing
    if isinstance(error, PromotionError) and error.report is not None:
        if as_json:
            console.print_json(json.dumps(_to_dict(error.report), default=str))
        else:
            _print_dict(_to_dict(error.report), title="Promotion (rolled back)")


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of records/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        if isinstance(v, list) and v and isinstance(v[0], dict):
            console.print(f"  [cyan]{k}[/cyan]:")
            for item in v:
                console.print(f"    {item}")
        else:
            console.print(f"  [cyan]{k}[/cyan]: {v}")
