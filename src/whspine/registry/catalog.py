"""
Partition catalog: an explicit registry of partitions and aggregate views.

Every day and year partition the warehouse creates is recorded here, keyed
by ``(template, schema, kind, partition_key)``. Discovery ("which day
partitions of ``sales`` exist in ``acme`` for 2023?") is a keyed query on
this table, never a prefix scan of engine object names, so a template named
``sales`` can never pick up partitions of ``sales_eu``.

The catalog lives in the operational schema of the host database and is
written through the same :class:`~whspine.core.storage.WarehouseStore` as
the DDL, so a rolled-back promotion also rolls back its catalog changes.

Architecture:
    ::

        partitions
        ┌──────────┬────────┬──────┬───────────────┬──────────────────┬────────────┐
        │ template │ schema │ kind │ partition_key │ object_name      │ unique_key │
        ├──────────┼────────┼──────┼───────────────┼──────────────────┼────────────┤
        │ sales    │ acme   │ day  │ 2024-01-15    │ sales_2024_01_15 │ id         │
        │ sales    │ acme   │ year │ 2023          │ sales_2023       │ id         │
        └──────────┴────────┴──────┴───────────────┴──────────────────┴────────────┘

        aggregate_views
        ┌──────────┬────────┬────────┬─────────────┬──────────────┐
        │ template │ schema │ kind   │ object_name │ source_count │
        ├──────────┼────────┼────────┼─────────────┼──────────────┤
        │ sales    │ acme   │ tenant │ sales       │ 366          │
        │ sales    │ public │ public │ sales       │ 4            │
        └──────────┴────────┴────────┴─────────────┴──────────────┘

Tags:
    catalog, registry, partitions, views, discovery
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from whspine.core.naming import day_partition_name, year_partition_name
from whspine.core.schema import ops_table
from whspine.core.storage import WarehouseStore
from whspine.core.timestamps import utc_now_iso


class PartitionKind(str, Enum):
    DAY = "day"
    YEAR = "year"


class ViewKind(str, Enum):
    TENANT = "tenant"
    PUBLIC = "public"


def _encode_key(unique_key: tuple[str, ...] | None) -> str | None:
    return ",".join(unique_key) if unique_key else None


def _decode_key(value: str | None) -> tuple[str, ...] | None:
    return tuple(value.split(",")) if value else None


@dataclass(frozen=True)
class PartitionRecord:
    """One catalogued partition."""

    template: str
    schema: str
    kind: PartitionKind
    partition_key: str
    object_name: str
    unique_key: tuple[str, ...] | None = None
    created_at: str | None = None
    refreshed_at: str | None = None

    @property
    def target_date(self) -> date:
        return date.fromisoformat(self.partition_key)

    @property
    def year(self) -> int:
        return int(self.partition_key[:4])

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template,
            "schema": self.schema,
            "kind": self.kind.value,
            "partition_key": self.partition_key,
            "object_name": self.object_name,
            "unique_key": list(self.unique_key) if self.unique_key else None,
            "created_at": self.created_at,
            "refreshed_at": self.refreshed_at,
        }


@dataclass(frozen=True)
class ViewRecord:
    """One catalogued aggregate view."""

    template: str
    schema: str
    kind: ViewKind
    object_name: str
    source_count: int
    rebuilt_at: str


class Catalog:
    """Keyed access to the partition and view registries."""

    _P_COLUMNS = (
        "template_name, schema_name, kind, partition_key, object_name, "
        "unique_key, created_at, refreshed_at"
    )

    def __init__(
        self,
        store: WarehouseStore,
        ops_schema: str = "_wh",
        public_schema: str = "public",
    ):
        self.store = store
        self.ops_schema = ops_schema
        self.public_schema = public_schema
        self.partitions_table = ops_table(store, ops_schema, "partitions")
        self.views_table = ops_table(store, ops_schema, "views")

    # ------------------------------------------------------------------
    # Partitions: reads
    # ------------------------------------------------------------------

    @staticmethod
    def _record(row: Any) -> PartitionRecord:
        return PartitionRecord(
            template=row[0],
            schema=row[1],
            kind=PartitionKind(row[2]),
            partition_key=row[3],
            object_name=row[4],
            unique_key=_decode_key(row[5]),
            created_at=row[6],
            refreshed_at=row[7],
        )

    def _get(self, template: str, schema: str, kind: PartitionKind, key: str) -> PartitionRecord | None:
        row = self.store.fetchone(
            f"SELECT {self._P_COLUMNS} FROM {self.partitions_table} "
            "WHERE template_name = ? AND schema_name = ? AND kind = ? AND partition_key = ?",
            (template, schema, kind.value, key),
        )
        return self._record(row) if row else None

    def get_day(self, template: str, schema: str, target_date: date) -> PartitionRecord | None:
        return self._get(template, schema, PartitionKind.DAY, target_date.isoformat())

    def get_year(self, template: str, schema: str, year: int) -> PartitionRecord | None:
        return self._get(template, schema, PartitionKind.YEAR, f"{year:04d}")

    def list_days(self, template: str, schema: str, year: int | None = None) -> list[PartitionRecord]:
        """Day partitions in name order, optionally restricted to one year."""
        sql = (
            f"SELECT {self._P_COLUMNS} FROM {self.partitions_table} "
            "WHERE template_name = ? AND schema_name = ? AND kind = ?"
        )
        params: list[Any] = [template, schema, PartitionKind.DAY.value]
        if year is not None:
            sql += " AND partition_key >= ? AND partition_key <= ?"
            params += [f"{year:04d}-01-01", f"{year:04d}-12-31"]
        sql += " ORDER BY object_name"
        return [self._record(r) for r in self.store.fetchall(sql, params)]

    def count_days(self, template: str, schema: str, year: int) -> int:
        return int(
            self.store.scalar(
                f"SELECT COUNT(*) FROM {self.partitions_table} "
                "WHERE template_name = ? AND schema_name = ? AND kind = ? "
                "AND partition_key >= ? AND partition_key <= ?",
                (template, schema, PartitionKind.DAY.value, f"{year:04d}-01-01", f"{year:04d}-12-31"),
            )
            or 0
        )

    def list_years(self, template: str, schema: str) -> list[PartitionRecord]:
        """Year partitions in name order."""
        rows = self.store.fetchall(
            f"SELECT {self._P_COLUMNS} FROM {self.partitions_table} "
            "WHERE template_name = ? AND schema_name = ? AND kind = ? ORDER BY object_name",
            (template, schema, PartitionKind.YEAR.value),
        )
        return [self._record(r) for r in rows]

    # ------------------------------------------------------------------
    # Partitions: writes
    # ------------------------------------------------------------------

    def _register(
        self,
        template: str,
        schema: str,
        kind: PartitionKind,
        key: str,
        object_name: str,
        unique_key: tuple[str, ...] | None,
    ) -> PartitionRecord:
        now = utc_now_iso()
        self.store.execute(
            f"INSERT INTO {self.partitions_table} ({self._P_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (template, schema, kind.value, key, object_name, _encode_key(unique_key), now, None),
        )
        return PartitionRecord(template, schema, kind, key, object_name, unique_key, now)

    def register_day(
        self,
        template: str,
        schema: str,
        target_date: date,
        unique_key: tuple[str, ...] | None = None,
    ) -> PartitionRecord:
        return self._register(
            template,
            schema,
            PartitionKind.DAY,
            target_date.isoformat(),
            day_partition_name(template, target_date),
            unique_key,
        )

    def register_year(
        self,
        template: str,
        schema: str,
        year: int,
        unique_key: tuple[str, ...] | None = None,
    ) -> PartitionRecord:
        return self._register(
            template,
            schema,
            PartitionKind.YEAR,
            f"{year:04d}",
            year_partition_name(template, year),
            unique_key,
        )

    def set_unique_key(self, record: PartitionRecord, unique_key: tuple[str, ...] | None) -> None:
        self.store.execute(
            f"UPDATE {self.partitions_table} SET unique_key = ? "
            "WHERE template_name = ? AND schema_name = ? AND kind = ? AND partition_key = ?",
            (_encode_key(unique_key), record.template, record.schema, record.kind.value, record.partition_key),
        )

    def mark_refreshed(self, record: PartitionRecord) -> None:
        self.store.execute(
            f"UPDATE {self.partitions_table} SET refreshed_at = ? "
            "WHERE template_name = ? AND schema_name = ? AND kind = ? AND partition_key = ?",
            (utc_now_iso(), record.template, record.schema, record.kind.value, record.partition_key),
        )

    def remove(self, record: PartitionRecord) -> None:
        self.store.execute(
            f"DELETE FROM {self.partitions_table} "
            "WHERE template_name = ? AND schema_name = ? AND kind = ? AND partition_key = ?",
            (record.template, record.schema, record.kind.value, record.partition_key),
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def record_view(
        self,
        template: str,
        schema: str,
        kind: ViewKind,
        object_name: str,
        source_count: int,
    ) -> ViewRecord:
        now = utc_now_iso()
        self.store.execute(
            f"""
            INSERT INTO {self.views_table}
                (template_name, schema_name, kind, object_name, source_count, rebuilt_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (template_name, schema_name, kind) DO UPDATE SET
                object_name = excluded.object_name,
                source_count = excluded.source_count,
                rebuilt_at = excluded.rebuilt_at
            """,
            (template, schema, kind.value, object_name, source_count, now),
        )
        return ViewRecord(template, schema, kind, object_name, source_count, now)

    def get_view(self, template: str, schema: str, kind: ViewKind) -> ViewRecord | None:
        row = self.store.fetchone(
            f"SELECT template_name, schema_name, kind, object_name, source_count, rebuilt_at "
            f"FROM {self.views_table} WHERE template_name = ? AND schema_name = ? AND kind = ?",
            (template, schema, kind.value),
        )
        if row is None:
            return None
        return ViewRecord(row[0], row[1], ViewKind(row[2]), row[3], int(row[4]), row[5])

    def tenant_views(self, template: str) -> list[str]:
        """Schemas exposing a tenant view for *template*, sorted.

        Operational and public namespaces are never tenants.
        """
        rows = self.store.fetchall(
            f"SELECT schema_name FROM {self.views_table} "
            "WHERE template_name = ? AND kind = ? AND schema_name NOT IN (?, ?) "
            "ORDER BY schema_name",
            (template, ViewKind.TENANT.value, self.ops_schema, self.public_schema),
        )
        return [r[0] for r in rows]

    # ------------------------------------------------------------------
    # Engine introspection
    # ------------------------------------------------------------------

    def object_exists(self, schema: str, name: str) -> bool:
        return self.store.object_exists(schema, name)


__all__ = ["Catalog", "PartitionKind", "PartitionRecord", "ViewKind", "ViewRecord"]
