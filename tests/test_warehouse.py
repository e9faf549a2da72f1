"""Tests for wiring a Warehouse from settings."""

from datetime import date

from tests._support.fakes import make_sales_template, sales_rows
from whspine.core.settings import AdjacentRefreshPolicy, WarehouseSettings
from whspine.registry.connections import SqlConnectionRegistry, TenantConnection
from whspine.registry.templates import SqlTemplateRegistry
from whspine.remote import PacedRemoteSource
from whspine.warehouse import Warehouse


class TestFromSettings:
    def test_memory_end_to_end(self, remote):
        settings = WarehouseSettings(database_url="memory", pacing_seconds=0)
        with Warehouse.from_settings(settings, source=remote) as wh:
            assert isinstance(wh.templates, SqlTemplateRegistry)
            assert isinstance(wh.connections, SqlConnectionRegistry)
            assert wh.store.object_exists("_wh", "partitions")

            wh.templates.put(make_sales_template())
            wh.connections.put(TenantConnection("acme-prod", "h", "acme", "reader", "pw"))
            day = date(2024, 1, 15)
            remote.set_rows("acme-prod", day, sales_rows(day, 2))

            assert wh.lifecycle.upsert("sales", "acme-prod", "acme", day).is_ok()
            assert wh.public.rebuild("sales").unwrap() == 1
            assert wh.store.count_rows(wh.store.qualify("public", "sales")) == 2

    def test_default_source_is_paced(self):
        settings = WarehouseSettings(database_url="memory", pacing_seconds=2.5)
        with Warehouse.from_settings(settings) as wh:
            source = wh.materializer.source
            assert isinstance(source, PacedRemoteSource)
            assert source.limiter.interval == 2.5

    def test_settings_flow_into_components(self):
        settings = WarehouseSettings(
            database_url="memory",
            public_schema="reporting",
            tenant_tag_column="tenant",
            adjacent_refresh_policy=AdjacentRefreshPolicy.ALWAYS,
        )
        with Warehouse.from_settings(settings) as wh:
            assert wh.public.public_schema == "reporting"
            assert wh.public.tenant_tag_column == "tenant"
            assert wh.catalog.public_schema == "reporting"
            assert wh.lifecycle.adjacent_policy is AdjacentRefreshPolicy.ALWAYS
