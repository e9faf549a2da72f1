"""
Window scheduler: best-effort upsert over a date range.

The nightly job re-runs the last two weeks so late-arriving rows land in
their day partitions. Each date is upserted with adjacent refresh and view
propagation disabled; a failing date is recorded and the loop moves on. The
tenant view is rebuilt once at the end if anything succeeded.

Pacing between extractions is not done here: the materializer's remote
source is wrapped in a :class:`~whspine.remote.PacedRemoteSource`.

Example::

    report = scheduler.run("sales", "acme-prod", "acme", date(2024, 1, 1), date(2024, 1, 14)).unwrap()
    report.success_count + report.error_count == report.total_dates == 14
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from whspine.core.errors import ErrorCategory, WarehouseError
from whspine.core.logging import LogContext, get_logger
from whspine.core.naming import iter_dates
from whspine.core.result import Err, Ok, Result
from whspine.partitions.lifecycle import PartitionLifecycle
from whspine.registry.templates import TemplateRegistry
from whspine.views.union import UnionViewCompiler

logger = get_logger(__name__)


@dataclass(frozen=True)
class DateResult:
    """Outcome of one date in a window."""

    target_date: date
    success: bool
    action: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"date": self.target_date.isoformat(), "success": self.success}
        if self.action is not None:
            result["action"] = self.action
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class WindowReport:
    """Tally of a window run."""

    template: str
    tenant: str
    schema: str
    start_date: date
    end_date: date
    per_date: list[DateResult] = field(default_factory=list)
    duration_seconds: float = 0.0
    view_rebuilt: bool = False
    view_error: str | None = None

    @property
    def total_dates(self) -> int:
        return len(self.per_date)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.per_date if r.success)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.per_date if not r.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template,
            "tenant": self.tenant,
            "schema": self.schema,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_dates": self.total_dates,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "duration_seconds": round(self.duration_seconds, 3),
            "view_rebuilt": self.view_rebuilt,
            "view_error": self.view_error,
            "date_results": [r.to_dict() for r in self.per_date],
        }


class WindowScheduler:
    """Runs the lifecycle controller over an inclusive date range."""

    def __init__(
        self,
        lifecycle: PartitionLifecycle,
        templates: TemplateRegistry,
        union: UnionViewCompiler,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.lifecycle = lifecycle
        self.templates = templates
        self.union = union
        self.clock = clock

    def run(
        self,
        template: str,
        connection_id: str,
        schema: str,
        start_date: date,
        end_date: date,
    ) -> Result[WindowReport]:
        with LogContext(template=template, tenant=connection_id, schema=schema):
            if start_date > end_date:
                error = WarehouseError(
                    f"start_date ({start_date}) must be <= end_date ({end_date})",
                    category=ErrorCategory.VALIDATION,
                ).with_context(template=template, schema=schema)
                logger.error("window_rejected", error=error.message)
                return Err(error)
            try:
                self.templates.get(template)
            except WarehouseError as e:
                logger.error("window_rejected", error=e.message)
                return Err(e)

            started = self.clock()
            report = WindowReport(template, connection_id, schema, start_date, end_date)
            logger.info("window_started", start_date=start_date.isoformat(), end_date=end_date.isoformat())

            for day in iter_dates(start_date, end_date):
                result = self.lifecycle.upsert(
                    template,
                    connection_id,
                    schema,
                    day,
                    refresh_adjacent=False,
                    propagate_view=False,
                )
                if result.is_ok():
                    report.per_date.append(DateResult(day, True, action=result.value.value))
                else:
                    report.per_date.append(DateResult(day, False, error=str(result.error)))

            if report.success_count > 0:
                rebuilt = self.union.rebuild(template, schema)
                report.view_rebuilt = rebuilt.is_ok()
                if rebuilt.is_err():
                    report.view_error = str(rebuilt.error)

            report.duration_seconds = self.clock() - started
            logger.info(
                "window_completed",
                total_dates=report.total_dates,
                success_count=report.success_count,
                error_count=report.error_count,
                duration_seconds=round(report.duration_seconds, 3),
            )
            return Ok(report)


__all__ = ["DateResult", "WindowReport", "WindowScheduler"]
