"""Object naming contract.

==========================  =================================
Object                      Name
==========================  =================================
Day partition               ``{template}_{YYYY}_{MM}_{DD}``
Year partition              ``{template}_{YYYY}``
Tenant aggregate view       ``{template}`` in the tenant schema
Public aggregate view       ``{template}`` in the public schema
==========================  =================================

Names are only ever *generated* here. Discovery goes through the catalog,
never by parsing object names, so a template called ``sales`` cannot pick
up partitions of a template called ``sales_eu``.
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Iterator
from datetime import date, timedelta

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(value: str, kind: str = "identifier") -> str:
    """Reject names that cannot be used unquoted as SQL identifiers."""
    if not _IDENTIFIER.match(value or ""):
        raise ValueError(f"Invalid {kind}: {value!r}")
    return value


def day_partition_name(template: str, target_date: date) -> str:
    return f"{template}_{target_date:%Y_%m_%d}"


def year_partition_name(template: str, year: int) -> str:
    return f"{template}_{year:04d}"


def tenant_view_name(template: str) -> str:
    return template


def public_view_name(template: str) -> str:
    return template


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from *start* to *end*, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def iter_year(year: int) -> Iterator[date]:
    return iter_dates(date(year, 1, 1), date(year, 12, 31))


__all__ = [
    "validate_identifier",
    "day_partition_name",
    "year_partition_name",
    "tenant_view_name",
    "public_view_name",
    "days_in_year",
    "iter_dates",
    "iter_year",
]
