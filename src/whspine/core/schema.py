"""
Operational tables of the warehouse.

The template registry, the tenant connection registry and the partition
catalog live in the operational schema (``_wh`` by default) of the host
database itself, so that catalog writes commit and roll back together with
the DDL they describe.

Architecture:
    ::

        Table Registry (OPS_TABLES):
        ┌────────────────────────────────────────────────────────────┐
        │ templates     → mv_templates                               │
        │ connections   → tenant_connections                         │
        │ partitions    → partitions      (day + year catalog)       │
        │ views         → aggregate_views (tenant + public catalog)  │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> store = WarehouseStore.from_url("memory")
    >>> create_ops_tables(store, "_wh")
    >>> store.object_exists("_wh", OPS_TABLES["partitions"])
    True

Guardrails:
    ❌ DON'T: Discover partitions by listing engine objects by prefix
    ✅ DO: Query the partitions table (see whspine.registry.catalog)

Tags:
    schema, ddl, catalog, registry, operational
"""

from __future__ import annotations

from whspine.core.storage import WarehouseStore

# =============================================================================
# TABLE NAMES
# =============================================================================

OPS_TABLES = {
    "templates": "mv_templates",
    "connections": "tenant_connections",
    "partitions": "partitions",
    "views": "aggregate_views",
}


# =============================================================================
# DDL ({table} is replaced with the dialect-qualified name)
# =============================================================================

OPS_DDL = {
    "templates": """
        CREATE TABLE IF NOT EXISTS {table} (
            template_name TEXT PRIMARY KEY,
            description TEXT,
            query_template TEXT NOT NULL,
            column_definitions TEXT NOT NULL,
            indexes TEXT,
            date_column TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "connections": """
        CREATE TABLE IF NOT EXISTS {table} (
            tenant_name TEXT PRIMARY KEY,
            host TEXT NOT NULL,
            port INTEGER NOT NULL DEFAULT 5432,
            dbname TEXT NOT NULL,
            username TEXT NOT NULL,
            password TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "partitions": """
        CREATE TABLE IF NOT EXISTS {table} (
            template_name TEXT NOT NULL,
            schema_name TEXT NOT NULL,
            kind TEXT NOT NULL CHECK (kind IN ('day', 'year')),
            partition_key TEXT NOT NULL,
            object_name TEXT NOT NULL,
            unique_key TEXT,
            created_at TEXT NOT NULL,
            refreshed_at TEXT,
            PRIMARY KEY (template_name, schema_name, kind, partition_key)
        )
    """,
    "views": """
        CREATE TABLE IF NOT EXISTS {table} (
            template_name TEXT NOT NULL,
            schema_name TEXT NOT NULL,
            kind TEXT NOT NULL CHECK (kind IN ('tenant', 'public')),
            object_name TEXT NOT NULL,
            source_count INTEGER NOT NULL,
            rebuilt_at TEXT NOT NULL,
            PRIMARY KEY (template_name, schema_name, kind)
        )
    """,
}


def ops_table(store: WarehouseStore, schema: str, name: str) -> str:
    """Qualified name of operational table *name* (a key of ``OPS_TABLES``)."""
    return store.qualify(schema, OPS_TABLES[name])


def create_ops_tables(store: WarehouseStore, schema: str) -> list[str]:
    """
    Create the operational schema and its tables.

    Safe to call multiple times (CREATE IF NOT EXISTS). Returns the logical
    names of the tables ensured.
    """
    with store.transaction():
        store.ensure_schema(schema)
        for name, ddl in OPS_DDL.items():
            store.execute(ddl.format(table=ops_table(store, schema, name)))
    return list(OPS_DDL)


__all__ = ["OPS_TABLES", "OPS_DDL", "ops_table", "create_ops_tables"]
