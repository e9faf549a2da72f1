"""
Promotion engine: merge a year's day partitions into one year partition.

Manifesto:
    Hundreds of day partitions per tenant per year are expensive to keep
    around and to union. Once a year is closed, its day partitions are
    folded into a single ``{template}_{YYYY}`` table. The merge is
    all-or-nothing: either every day partition of the year has been copied
    and dropped and the row counts reconcile, or nothing changed at all.

Architecture:
    ::

        promote(template, schema, year)
          │
          ├─ template exists?                          ── TemplateNotFoundError
          ├─ year partition in catalog or engine?      ── PartitionExistsError
          ├─ any day partitions for the year?          ── NoSourcesError
          │
          └─ BEGIN ─────────────────────────────────────────────────────────
               1. pre_count   (tenant view ∩ year, or Σ day partitions)
               2. CREATE TABLE {template}_{YYYY}; OWNER/GRANT; catalog row
               3. rebuild tenant view without the year's day partitions
               4. for day in name order:
                    INSERT INTO year SELECT ... FROM day; DROP day; catalog -day
               5. index plan on the year table (failures are fatal)
               6. rebuild tenant view (year table now a source)
               7. post_count = COUNT(year);  post != pre ── VerificationError
             COMMIT ─────────────── any exception ─► ROLLBACK (tables, catalog, view)

    The year table is created (step 2) before the exclusion rebuild (step 3)
    so the interim view always has at least one source, even for a tenant
    whose only partitions belong to the year being promoted.

    This holds one transaction across every merge; run it in a low-traffic
    window.

Tags:
    promotion, year-partition, transaction, verification
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from whspine.core.dialect import column_list
from whspine.core.errors import (
    NoSourcesError,
    PartitionExistsError,
    PromotionError,
    VerificationError,
    WarehouseError,
)
from whspine.core.logging import LogContext, get_logger
from whspine.core.naming import year_partition_name
from whspine.core.result import Err, Ok, Result
from whspine.core.storage import WarehouseStore
from whspine.partitions.materializer import apply_index_plan
from whspine.registry.catalog import Catalog, PartitionRecord, ViewKind
from whspine.registry.templates import Template, TemplateRegistry
from whspine.views.union import UnionViewCompiler

logger = get_logger(__name__)


@dataclass
class PromotionReport:
    """Outcome of a promotion (partial when it failed)."""

    template: str
    schema: str
    year: int
    year_table: str
    success: bool = False
    processed_count: int = 0
    total_records: int = 0
    pre_count: int | None = None
    post_count: int | None = None
    duration_seconds: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "template": self.template,
            "schema": self.schema,
            "year": self.year,
            "year_table": self.year_table,
            "processed_count": self.processed_count,
            "total_records": self.total_records,
            "pre_count": self.pre_count,
            "post_count": self.post_count,
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }


class PromotionEngine:
    """Folds a year's day partitions into a year partition."""

    def __init__(
        self,
        store: WarehouseStore,
        templates: TemplateRegistry,
        catalog: Catalog,
        union: UnionViewCompiler,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.templates = templates
        self.catalog = catalog
        self.union = union
        self.clock = clock

    def promote(self, template: str, schema: str, year: int) -> Result[PromotionReport]:
        year_table = year_partition_name(template, year)
        report = PromotionReport(template, schema, year, year_table)
        started = self.clock()

        with LogContext(template=template, schema=schema, year=year, object_name=year_table):
            # Preconditions: no side effects on failure
            try:
                tmpl = self.templates.get(template)
                if self.catalog.get_year(template, schema, year) is not None or self.catalog.object_exists(
                    schema, year_table
                ):
                    raise PartitionExistsError(f"Year partition already exists: {schema}.{year_table}")
                if self.catalog.count_days(template, schema, year) == 0:
                    raise NoSourcesError(f"No day partitions to promote for {template!r} {year} in {schema!r}")
            except WarehouseError as e:
                e.with_context(template=template, schema=schema, year=year)
                report.error = e.message
                logger.error("promotion_rejected", error=e.message)
                return Err(e)

            logger.info("promotion_started")
            try:
                with self.store.transaction():
                    self._promote(tmpl, schema, year, report)
            except Exception as e:
                report.success = False
                report.duration_seconds = self.clock() - started
                report.error = str(e)
                logger.error(
                    "promotion_rolled_back",
                    error=str(e),
                    processed_count=report.processed_count,
                    pre_count=report.pre_count,
                    post_count=report.post_count,
                )
                if isinstance(e, PromotionError):
                    e.report = report
                    e.with_context(template=template, schema=schema, year=year)
                    return Err(e)
                return Err(
                    PromotionError(
                        f"Promotion of {schema}.{year_table} failed and was rolled back: {e}",
                        report=report,
                        cause=e,
                    ).with_context(template=template, schema=schema, year=year)
                )

            report.success = True
            report.duration_seconds = self.clock() - started
            logger.info(
                "promotion_completed",
                processed_count=report.processed_count,
                total_records=report.total_records,
                pre_count=report.pre_count,
                post_count=report.post_count,
                duration_seconds=round(report.duration_seconds, 3),
            )
            return Ok(report)

    # ------------------------------------------------------------------
    # Steps (run inside the promotion transaction)
    # ------------------------------------------------------------------

    def _promote(self, tmpl: Template, schema: str, year: int, report: PromotionReport) -> None:
        days = self.catalog.list_days(tmpl.name, schema, year)

        report.pre_count = self._pre_count(tmpl, schema, year, days)
        logger.info("promotion_pre_count", pre_count=report.pre_count, day_partitions=len(days))

        year_q = self.store.qualify(schema, report.year_table)
        self.store.execute(self.store.dialect.create_table(year_q, tmpl.columns))
        self.store.grant(year_q, "TABLE")
        year_record = self.catalog.register_year(tmpl.name, schema, year)

        self.union.rebuild_or_raise(tmpl.name, schema, exclude_year=year)

        for record in days:
            copied = self._merge_day_partition(tmpl, schema, record, year_q)
            report.total_records += copied
            report.processed_count += 1
            logger.debug("day_partition_merged", day_partition=record.object_name, rows=copied)

        plan = apply_index_plan(self.store, tmpl, schema, report.year_table, strict=True)
        if plan.unique_key:
            self.catalog.set_unique_key(year_record, plan.unique_key)

        self.union.rebuild_or_raise(tmpl.name, schema)

        report.post_count = self.store.count_rows(year_q)
        if report.post_count != report.pre_count:
            raise VerificationError(report.pre_count, report.post_count)

    def _pre_count(self, tmpl: Template, schema: str, year: int, days: list[PartitionRecord]) -> int:
        """Rows of the tenant view that belong to *year*.

        With a ``date_column`` this filters the tenant view itself; otherwise
        it counts the union of that year's day partitions.
        """
        view = self.catalog.get_view(tmpl.name, schema, ViewKind.TENANT)
        if tmpl.date_column and view is not None:
            date_type = dict(tmpl.columns).get(tmpl.date_column, "")
            return int(
                self.store.scalar(
                    f"SELECT COUNT(*) FROM {self.store.qualify(schema, view.object_name)} "
                    f"WHERE {self.store.dialect.year_of(tmpl.date_column, date_type)} = ?",
                    (year,),
                )
                or 0
            )
        return sum(self.store.count_rows(self.store.qualify(schema, d.object_name)) for d in days)

    def _merge_day_partition(
        self, tmpl: Template, schema: str, record: PartitionRecord, year_q: str
    ) -> int:
        """Copy one day partition into the year table and drop it."""
        day_q = self.store.qualify(schema, record.object_name)
        cols = column_list(tmpl.columns)
        self.store.execute(f"INSERT INTO {year_q} ({cols}) SELECT {cols} FROM {day_q}")
        copied = self.store.conn.rowcount
        self.store.execute(self.store.dialect.drop_table(day_q))
        self.catalog.remove(record)
        return copied


__all__ = ["PromotionReport", "PromotionEngine"]
