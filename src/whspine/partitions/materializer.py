"""
Partition materializer: build and refresh one day partition.

Manifesto:
    A day partition is the result of running a template's extraction query
    for one date against one tenant's database. It either exists completely
    (table, rows, grants, catalog row) or not at all: extraction and load
    happen before anything is committed, so a failed remote query leaves
    nothing behind.

    Index plans are best-effort at creation. A partition missing an index is
    still correct, just slower; the failure is logged and the partition
    stands. The one index that matters for correctness is the first unique
    index: its columns become the partition's *unique key*, recorded in the
    catalog, and the non-blocking refresh needs it to diff old and new rows.

Architecture:
    ::

        create(template, tenant, schema, date)
          │
          ├─ templates.get(template)              ── TemplateNotFoundError
          ├─ resolver.resolve(tenant)             ── ConnectionNotFoundError
          ├─ catalog.get_day(...) exists?         ── Ok(ALREADY_EXISTS)
          ├─ source.fetch(remote, query(date))    ── RemoteExtractionError
          └─ BEGIN
               CREATE TABLE / INSERT rows / OWNER + GRANT
               per index: SAVEPOINT → CREATE INDEX (failure logged)
               catalog.register_day(unique_key)
             COMMIT                               ── Ok(CREATED)

        refresh(template, tenant, schema, date)
          ├─ partition + unique key from catalog  ── RefreshError if no key
          ├─ source.fetch(...)
          └─ BEGIN
               TEMP stage ← rows
               DELETE rows whose key left the source
               INSERT ... ON CONFLICT (key) DO UPDATE
             COMMIT                               ── Ok(row_count)

    Readers of the partition (and of the tenant view above it) see the old
    rows until the refresh commits; the table is never dropped or locked
    exclusively.

Tags:
    partitions, materializer, refresh, indexes, extraction
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from whspine.core.dialect import column_list
from whspine.core.errors import (
    IndexCreationError,
    NotFoundError,
    RefreshError,
    RemoteExtractionError,
    wrap_error,
)
from whspine.core.logging import LogContext, get_logger
from whspine.core.naming import day_partition_name, validate_identifier
from whspine.core.protocols import RemoteSource
from whspine.core.result import Err, Ok, Result
from whspine.core.storage import WarehouseStore
from whspine.registry.catalog import Catalog
from whspine.registry.connections import ConnectionResolver, RemoteConnection
from whspine.registry.templates import Template, TemplateRegistry

logger = get_logger(__name__)


class CreateOutcome(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


@dataclass
class IndexPlanResult:
    """What happened when an index plan was applied to one object."""

    applied: list[str] = field(default_factory=list)
    failed: list[IndexCreationError] = field(default_factory=list)
    unique_key: tuple[str, ...] | None = None


def apply_index_plan(
    store: WarehouseStore,
    template: Template,
    schema: str,
    object_name: str,
    *,
    strict: bool = False,
) -> IndexPlanResult:
    """Apply *template*'s index plan to ``schema.object_name``.

    Each statement runs in its own savepoint. With ``strict=False`` a failing
    statement is logged and skipped; with ``strict=True`` the first failure
    raises ``IndexCreationError``. ``unique_key`` is set only when the
    key-declaring unique index was actually created.
    """
    result = IndexPlanResult()
    key_position = template.unique_index_position()

    for position, stmt in enumerate(template.index_statements(store.dialect, schema, object_name)):
        try:
            with store.transaction():
                store.execute(stmt)
        except Exception as e:
            error = IndexCreationError(
                f"Index creation failed on {schema}.{object_name}: {e}", cause=e
            ).with_context(template=template.name, schema=schema, object_name=object_name)
            if strict:
                raise error from e
            logger.warning("index_creation_failed", statement=stmt, error=str(e))
            result.failed.append(error)
            continue
        result.applied.append(stmt)
        if position == key_position:
            result.unique_key = template.unique_key

    return result


class PartitionMaterializer:
    """Creates and refreshes day partitions.

    This is the only component that holds a :class:`ConnectionResolver`;
    callers identify the tenant by id and never handle credentials.
    """

    def __init__(
        self,
        store: WarehouseStore,
        templates: TemplateRegistry,
        resolver: ConnectionResolver,
        source: RemoteSource,
        catalog: Catalog,
    ):
        self.store = store
        self.templates = templates
        self.resolver = resolver
        self.source = source
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, template: str, schema: str, target_date: date) -> bool:
        return self.catalog.get_day(template, schema, target_date) is not None

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        template: str,
        connection_id: str,
        schema: str,
        target_date: date,
    ) -> Result[CreateOutcome]:
        """Materialize the day partition for *target_date* (idempotent)."""
        object_name = day_partition_name(template, target_date)
        with LogContext(
            template=template,
            tenant=connection_id,
            schema=schema,
            object_name=object_name,
            target_date=target_date.isoformat(),
        ):
            try:
                return Ok(self._create(template, connection_id, schema, target_date))
            except Exception as e:
                error = wrap_error(e).with_context(
                    template=template,
                    tenant=connection_id,
                    schema=schema,
                    object_name=object_name,
                    target_date=target_date,
                )
                logger.error("partition_create_failed", error=str(error), category=error.category.value)
                return Err(error)

    def _create(self, template: str, connection_id: str, schema: str, target_date: date) -> CreateOutcome:
        tmpl = self.templates.get(template)
        remote = self.resolver.resolve(connection_id)
        validate_identifier(schema, "schema")

        if self.exists(template, schema, target_date):
            logger.info("partition_already_exists")
            return CreateOutcome.ALREADY_EXISTS

        rows = self._extract(tmpl, remote, target_date)

        object_name = day_partition_name(template, target_date)
        qualified = self.store.qualify(schema, object_name)

        with self.store.transaction():
            self.store.ensure_schema(schema)
            self.store.execute(self.store.dialect.create_table(qualified, tmpl.columns))
            self._insert_rows(qualified, tmpl, rows)
            self.store.grant(qualified, "TABLE")
            plan = apply_index_plan(self.store, tmpl, schema, object_name)
            self.catalog.register_day(template, schema, target_date, unique_key=plan.unique_key)

        logger.info(
            "partition_created",
            rows=len(rows),
            indexes_applied=len(plan.applied),
            indexes_failed=len(plan.failed),
            unique_key=list(plan.unique_key) if plan.unique_key else None,
        )
        return CreateOutcome.CREATED

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(
        self,
        template: str,
        connection_id: str,
        schema: str,
        target_date: date,
    ) -> Result[int]:
        """Re-extract an existing day partition and apply the keyed diff.

        Returns the partition's row count after the refresh.
        """
        object_name = day_partition_name(template, target_date)
        with LogContext(
            template=template,
            tenant=connection_id,
            schema=schema,
            object_name=object_name,
            target_date=target_date.isoformat(),
        ):
            try:
                return Ok(self._refresh(template, connection_id, schema, target_date))
            except Exception as e:
                error = wrap_error(e, RefreshError).with_context(
                    template=template,
                    tenant=connection_id,
                    schema=schema,
                    object_name=object_name,
                    target_date=target_date,
                )
                logger.error("partition_refresh_failed", error=str(error), category=error.category.value)
                return Err(error)

    def _refresh(self, template: str, connection_id: str, schema: str, target_date: date) -> int:
        tmpl = self.templates.get(template)
        remote = self.resolver.resolve(connection_id)

        record = self.catalog.get_day(template, schema, target_date)
        if record is None:
            raise NotFoundError(f"Day partition not found: {schema}.{day_partition_name(template, target_date)}")
        if not record.unique_key:
            raise RefreshError(
                f"Partition {schema}.{record.object_name} has no unique key; "
                "a non-blocking refresh needs the unique index from the template's index plan"
            )

        rows = self._extract(tmpl, remote, target_date)
        key_positions = [tmpl.column_names.index(k) for k in record.unique_key]
        null_keyed = sum(1 for row in rows if any(row[i] is None for i in key_positions))
        if null_keyed:
            raise RefreshError(
                f"{null_keyed} extracted row(s) have NULL in unique key "
                f"({', '.join(record.unique_key)}); refusing to refresh {schema}.{record.object_name}"
            )

        dialect = self.store.dialect
        qualified = self.store.qualify(schema, record.object_name)
        stage = f"_wh_stage_{schema}_{record.object_name}"
        stage_ref = dialect.staging_name(stage)

        with self.store.transaction():
            self.store.execute(dialect.drop_staging_table(stage))
            self.store.execute(dialect.create_staging_table(stage, tmpl.columns))
            self._insert_rows(stage_ref, tmpl, rows)
            self.store.execute(dialect.delete_missing_keys(qualified, stage_ref, record.unique_key))
            removed = self.store.conn.rowcount
            self.store.execute(dialect.upsert_from(qualified, stage_ref, tmpl.columns, record.unique_key))
            self.store.execute(dialect.drop_staging_table(stage))
            self.catalog.mark_refreshed(record)
            count = self.store.count_rows(qualified)

        logger.info("partition_refreshed", rows=count, rows_removed=max(removed, 0))
        return count

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _extract(self, tmpl: Template, remote: RemoteConnection, target_date: date) -> list[tuple[Any, ...]]:
        rows = self.source.fetch(remote, tmpl.render_query(target_date))
        width = len(tmpl.columns)
        for row in rows:
            if len(row) != width:
                raise RemoteExtractionError(
                    f"Extraction returned {len(row)} columns, template {tmpl.name!r} declares {width}"
                )
        logger.debug("remote_extraction_completed", rows=len(rows))
        return rows

    def _insert_rows(self, target: str, tmpl: Template, rows: Sequence[tuple[Any, ...]]) -> None:
        if not rows:
            return
        placeholders = ", ".join("?" for _ in tmpl.columns)
        self.store.conn.executemany(
            f"INSERT INTO {target} ({column_list(tmpl.columns)}) VALUES ({placeholders})",
            rows,
        )


__all__ = ["CreateOutcome", "IndexPlanResult", "apply_index_plan", "PartitionMaterializer"]
