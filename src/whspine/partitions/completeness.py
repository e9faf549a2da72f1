"""
Completeness checker: are all of a year's day partitions present?

Run before promotion to decide whether a year is ready to be folded. The
check is a pure read of the catalog: count the year's day partitions, and
only when the count falls short of the calendar, probe each date to list
the missing ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from whspine.core.errors import wrap_error
from whspine.core.logging import LogContext, get_logger
from whspine.core.naming import days_in_year, iter_year, validate_identifier
from whspine.core.result import Err, Ok, Result
from whspine.registry.catalog import Catalog

logger = get_logger(__name__)


@dataclass
class CompletenessReport:
    template: str
    schema: str
    year: int
    expected_days: int
    actual_count: int
    missing_dates: list[date] = field(default_factory=list)
    year_partition_exists: bool = False

    @property
    def missing_count(self) -> int:
        return len(self.missing_dates)

    @property
    def complete(self) -> bool:
        return self.missing_count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template,
            "schema": self.schema,
            "year": self.year,
            "expected_days": self.expected_days,
            "actual_count": self.actual_count,
            "missing_count": self.missing_count,
            "missing_dates": [d.isoformat() for d in self.missing_dates],
            "complete": self.complete,
            "year_partition_exists": self.year_partition_exists,
        }


class CompletenessChecker:
    """Compares catalogued day partitions against the calendar."""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def check(self, template: str, schema: str, year: int) -> Result[CompletenessReport]:
        with LogContext(template=template, schema=schema, year=year):
            try:
                validate_identifier(template, "template name")
                validate_identifier(schema, "schema")
                report = CompletenessReport(
                    template=template,
                    schema=schema,
                    year=year,
                    expected_days=days_in_year(year),
                    actual_count=self.catalog.count_days(template, schema, year),
                    year_partition_exists=self.catalog.get_year(template, schema, year) is not None,
                )
                if report.actual_count < report.expected_days:
                    report.missing_dates = [
                        day for day in iter_year(year) if self.catalog.get_day(template, schema, day) is None
                    ]
            except Exception as e:
                error = wrap_error(e).with_context(template=template, schema=schema, year=year)
                logger.error("completeness_check_failed", error=str(error))
                return Err(error)

            logger.info(
                "completeness_checked",
                expected_days=report.expected_days,
                actual_count=report.actual_count,
                missing_count=report.missing_count,
            )
            return Ok(report)


__all__ = ["CompletenessReport", "CompletenessChecker"]
