"""SQL dialect abstraction for the host warehouse.

The partition lifecycle issues the same logical DDL on every host engine
(create a namespace, create a table, replace a view, grant read access,
upsert from a staging table). ``Dialect`` renders those statements for a
concrete engine so the lifecycle code never contains backend-specific SQL.

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                  Partition lifecycle / views                      │
    │   d.create_table(d.qualify("acme", "sales_2024_01_15"), columns)  │
    └──────────────────────────────────────────────────────────────────┘
                   │                                   │
                   ▼                                   ▼
    ┌──────────────────────────────┐   ┌──────────────────────────────┐
    │ PostgreSQLDialect            │   │ SQLiteDialect                │
    │ "acme"."sales_2024_01_15"    │   │ "acme__sales_2024_01_15"     │
    │ CREATE OR REPLACE VIEW       │   │ DROP VIEW + CREATE VIEW      │
    │ ALTER ... OWNER / GRANT      │   │ (no roles)                   │
    └──────────────────────────────┘   └──────────────────────────────┘

SQLite has no schemas. Namespaces are flattened into the object name with a
double underscore, which keeps every tenant's objects in one database file
and lets views reference objects of other tenants (SQLite forbids views that
cross attached databases).

All statements use ``?`` placeholders; the PostgreSQL connection bridge
rewrites them to bound parameters.

Examples:
    >>> d = SQLiteDialect()
    >>> d.qualify("acme", "sales_2024")
    '"acme__sales_2024"'
    >>> PostgreSQLDialect().qualify("acme", "sales_2024")
    '"acme"."sales_2024"'
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from whspine.core.naming import validate_identifier

Column = tuple[str, str]


def quote(identifier: str) -> str:
    """Double-quote an identifier, escaping embedded quotes."""
    return '"' + identifier.replace('"', '""') + '"'


def quote_role(role: str) -> str:
    return role if role.upper() == "PUBLIC" else quote(role)


def column_list(columns: Sequence[Column] | Sequence[str]) -> str:
    names = [c[0] if isinstance(c, tuple) else c for c in columns]
    return ", ".join(quote(n) for n in names)


def _column_defs(columns: Sequence[Column]) -> str:
    return ", ".join(f"{quote(name)} {col_type}" for name, col_type in columns)


def _is_timestamptz(column_type: str) -> bool:
    normalized = " ".join(column_type.upper().split())
    return normalized.startswith("TIMESTAMPTZ") or "WITH TIME ZONE" in normalized


@runtime_checkable
class Dialect(Protocol):
    """Renders warehouse DDL/DML for one host engine."""

    @property
    def name(self) -> str: ...

    def qualify(self, schema: str, name: str) -> str: ...

    def create_schema(self, schema: str) -> list[str]: ...

    def create_table(self, qualified: str, columns: Sequence[Column]) -> str: ...

    def drop_table(self, qualified: str) -> str: ...

    def replace_view(self, qualified: str, select_sql: str) -> list[str]: ...

    def grants(self, qualified: str, kind: str, owner: str, reader: str) -> list[str]: ...

    def create_staging_table(self, name: str, columns: Sequence[Column]) -> str: ...

    def drop_staging_table(self, name: str) -> str: ...

    def staging_name(self, name: str) -> str: ...

    def upsert_from(
        self,
        target: str,
        source: str,
        columns: Sequence[Column],
        key_columns: Sequence[str],
    ) -> str: ...

    def delete_missing_keys(self, target: str, source: str, key_columns: Sequence[str]) -> str: ...

    def year_of(self, column: str, column_type: str = "") -> str: ...

    def object_exists(self, schema: str, name: str) -> tuple[str, tuple[str, ...]]: ...


class _BaseDialect:
    """Statements that read the same on every supported engine."""

    # NULL-safe equality operator
    null_safe_eq = "IS NOT DISTINCT FROM"

    def create_table(self, qualified: str, columns: Sequence[Column]) -> str:
        return f"CREATE TABLE {qualified} ({_column_defs(columns)})"

    def drop_table(self, qualified: str) -> str:
        return f"DROP TABLE {qualified}"

    def upsert_from(
        self,
        target: str,
        source: str,
        columns: Sequence[Column],
        key_columns: Sequence[str],
    ) -> str:
        cols = column_list(columns)
        keys = ", ".join(quote(k) for k in key_columns)
        updates = [quote(c) for c, _ in columns if c not in key_columns]
        # WHERE true disambiguates INSERT ... SELECT ... ON CONFLICT for SQLite
        head = f"INSERT INTO {target} ({cols}) SELECT {cols} FROM {source} WHERE true"
        if not updates:
            return f"{head} ON CONFLICT ({keys}) DO NOTHING"
        assignments = ", ".join(f"{c} = excluded.{c}" for c in updates)
        return f"{head} ON CONFLICT ({keys}) DO UPDATE SET {assignments}"

    def delete_missing_keys(self, target: str, source: str, key_columns: Sequence[str]) -> str:
        match = " AND ".join(
            f"s.{quote(k)} {self.null_safe_eq} {target}.{quote(k)}" for k in key_columns
        )
        return f"DELETE FROM {target} WHERE NOT EXISTS (SELECT 1 FROM {source} AS s WHERE {match})"


class SQLiteDialect(_BaseDialect):
    """SQLite host: flattened namespaces, no roles."""

    separator = "__"
    null_safe_eq = "IS"

    @property
    def name(self) -> str:
        return "sqlite"

    def qualify(self, schema: str, name: str) -> str:
        validate_identifier(schema, "schema")
        validate_identifier(name, "object name")
        return quote(f"{schema}{self.separator}{name}")

    def create_schema(self, schema: str) -> list[str]:
        validate_identifier(schema, "schema")
        return []

    def replace_view(self, qualified: str, select_sql: str) -> list[str]:
        return [f"DROP VIEW IF EXISTS {qualified}", f"CREATE VIEW {qualified} AS {select_sql}"]

    def grants(self, qualified: str, kind: str, owner: str, reader: str) -> list[str]:  # noqa: ARG002
        return []

    def staging_name(self, name: str) -> str:
        return f"temp.{quote(name)}"

    def create_staging_table(self, name: str, columns: Sequence[Column]) -> str:
        return f"CREATE TEMP TABLE {quote(name)} ({_column_defs(columns)})"

    def drop_staging_table(self, name: str) -> str:
        return f"DROP TABLE IF EXISTS temp.{quote(name)}"

    def year_of(self, column: str, column_type: str = "") -> str:  # noqa: ARG002
        # Offsets are normalised to UTC by strftime
        return f"CAST(strftime('%Y', {quote(column)}) AS INTEGER)"

    def object_exists(self, schema: str, name: str) -> tuple[str, tuple[str, ...]]:
        return (
            "SELECT 1 FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?",
            (f"{schema}{self.separator}{name}",),
        )


class PostgreSQLDialect(_BaseDialect):
    """PostgreSQL host: real schemas, ownership and read grants."""

    @property
    def name(self) -> str:
        return "postgresql"

    def qualify(self, schema: str, name: str) -> str:
        validate_identifier(schema, "schema")
        validate_identifier(name, "object name")
        return f"{quote(schema)}.{quote(name)}"

    def create_schema(self, schema: str) -> list[str]:
        validate_identifier(schema, "schema")
        return [f"CREATE SCHEMA IF NOT EXISTS {quote(schema)}"]

    def replace_view(self, qualified: str, select_sql: str) -> list[str]:
        # Dependent public views keep working because the column list is stable
        return [f"CREATE OR REPLACE VIEW {qualified} AS {select_sql}"]

    def grants(self, qualified: str, kind: str, owner: str, reader: str) -> list[str]:
        return [
            f"ALTER {kind} {qualified} OWNER TO {quote_role(owner)}",
            f"GRANT SELECT ON {qualified} TO {quote_role(reader)}",
        ]

    def staging_name(self, name: str) -> str:
        return f"pg_temp.{quote(name)}"

    def create_staging_table(self, name: str, columns: Sequence[Column]) -> str:
        return f"CREATE TEMP TABLE {quote(name)} ({_column_defs(columns)}) ON COMMIT DROP"

    def drop_staging_table(self, name: str) -> str:
        return f"DROP TABLE IF EXISTS pg_temp.{quote(name)}"

    def year_of(self, column: str, column_type: str = "") -> str:
        """Calendar year of *column*.

        ``timestamptz`` values are read in UTC, the zone day partitions are
        cut in, whatever the session ``TimeZone``.
        """
        expr = quote(column)
        if _is_timestamptz(column_type):
            expr = f"{expr} AT TIME ZONE 'UTC'"
        return f"CAST(EXTRACT(YEAR FROM {expr}) AS INTEGER)"

    def object_exists(self, schema: str, name: str) -> tuple[str, tuple[str, ...]]:
        return (
            "SELECT 1 FROM pg_catalog.pg_class c "
            "JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace "
            "WHERE n.nspname = ? AND c.relname = ?",
            (schema, name),
        )


# =========================================================================
# Registry / Factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (third-party hosts, test doubles)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Column",
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "quote",
    "column_list",
    "get_dialect",
    "register_dialect",
]
