"""
Shared pytest fixtures for warehouse-spine tests.

This module provides:
- An in-memory SQLite host store with the operational tables
- In-memory template and connection registries
- A fake remote source keyed by (tenant, date)
- A fully wired ``Warehouse`` over all of the above

Usage:
    def test_something(wh, remote):
        remote.set_rows("acme-prod", date(2024, 1, 15), sales_rows(date(2024, 1, 15), 3))
        assert wh.materializer.create("sales", "acme-prod", "acme", date(2024, 1, 15)).is_ok()
"""

from __future__ import annotations

from datetime import date

import pytest
import structlog

from tests._support.fakes import FakeRemoteSource, make_sales_template, sales_rows
from whspine.core.dialect import SQLiteDialect
from whspine.core.schema import create_ops_tables
from whspine.core.settings import WarehouseSettings
from whspine.core.sqlite_conn import SqliteConnection
from whspine.core.storage import WarehouseStore
from whspine.registry.connections import InMemoryConnectionRegistry, TenantConnection
from whspine.registry.templates import InMemoryTemplateRegistry, Template
from whspine.warehouse import Warehouse


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any logging configuration a test (or the CLI) applied."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings() -> WarehouseSettings:
    return WarehouseSettings(database_url="memory", pacing_seconds=0)


@pytest.fixture
def store():
    s = WarehouseStore(SqliteConnection(":memory:"), SQLiteDialect())
    create_ops_tables(s, "_wh")
    yield s
    s.close()


@pytest.fixture
def sales_template() -> Template:
    return make_sales_template()


@pytest.fixture
def templates(sales_template) -> InMemoryTemplateRegistry:
    return InMemoryTemplateRegistry([sales_template])


@pytest.fixture
def connections() -> InMemoryConnectionRegistry:
    return InMemoryConnectionRegistry(
        [
            TenantConnection("acme-prod", "acme-db.internal", "acme", "reader", "s3cret"),
            TenantConnection("globex-prod", "globex-db.internal", "globex", "reader", "hunter2"),
        ]
    )


@pytest.fixture
def remote() -> FakeRemoteSource:
    return FakeRemoteSource()


@pytest.fixture
def wh(store, templates, connections, remote, settings) -> Warehouse:
    return Warehouse(store, templates, connections, remote, settings)


@pytest.fixture
def make_days(wh, remote):
    """Create day partitions: ``make_days("acme", dates, rows_per_day)`` → total rows."""

    def _make(schema: str, days: list[date], rows_per_day: int = 3, tenant: str = "acme-prod") -> int:
        for day in days:
            remote.set_rows(tenant, day, sales_rows(day, rows_per_day))
            wh.materializer.create("sales", tenant, schema, day).unwrap()
        return rows_per_day * len(days)

    return _make
