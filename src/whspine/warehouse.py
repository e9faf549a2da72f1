"""
Warehouse: one object wiring the registries, catalog and operations.

Example::

    from whspine.warehouse import Warehouse

    with Warehouse.from_settings() as wh:
        wh.lifecycle.upsert("sales", "acme-prod", "acme", date.today())
        wh.public.rebuild("sales")

Tests build the same graph around an in-memory store, in-memory registries
and a fake remote source by calling the constructor directly.
"""

from __future__ import annotations

from typing import Any

from whspine.core.logging import get_logger
from whspine.core.protocols import RemoteSource
from whspine.core.rate_limit import MinIntervalLimiter
from whspine.core.schema import create_ops_tables
from whspine.core.secrets import SecretsResolver
from whspine.core.settings import WarehouseSettings, get_settings
from whspine.core.storage import WarehouseStore
from whspine.partitions.completeness import CompletenessChecker
from whspine.partitions.lifecycle import PartitionLifecycle
from whspine.partitions.materializer import PartitionMaterializer
from whspine.partitions.promotion import PromotionEngine
from whspine.partitions.window import WindowScheduler
from whspine.registry.catalog import Catalog
from whspine.registry.connections import (
    ConnectionRegistry,
    ConnectionResolver,
    SqlConnectionRegistry,
)
from whspine.registry.templates import SqlTemplateRegistry, TemplateRegistry
from whspine.remote import PacedRemoteSource, SqlAlchemyRemoteSource
from whspine.views.public import PublicAggregator
from whspine.views.union import UnionViewCompiler

logger = get_logger(__name__)


class Warehouse:
    """Component graph over one host store."""

    def __init__(
        self,
        store: WarehouseStore,
        templates: TemplateRegistry,
        connections: ConnectionRegistry,
        source: RemoteSource,
        settings: WarehouseSettings,
        *,
        secrets: SecretsResolver | None = None,
    ):
        self.store = store
        self.settings = settings
        self.templates = templates
        self.connections = connections
        self.catalog = Catalog(store, settings.operational_schema, settings.public_schema)

        self.union = UnionViewCompiler(store, templates, self.catalog)
        self.public = PublicAggregator(
            store,
            templates,
            self.catalog,
            public_schema=settings.public_schema,
            tenant_tag_column=settings.tenant_tag_column,
        )
        self.materializer = PartitionMaterializer(
            store,
            templates,
            ConnectionResolver(connections, secrets),
            source,
            self.catalog,
        )
        self.lifecycle = PartitionLifecycle(
            self.materializer,
            self.union,
            adjacent_policy=settings.adjacent_refresh_policy,
        )
        self.window = WindowScheduler(self.lifecycle, templates, self.union)
        self.promotion = PromotionEngine(store, templates, self.catalog, self.union)
        self.completeness = CompletenessChecker(self.catalog)

    @classmethod
    def from_settings(
        cls,
        settings: WarehouseSettings | None = None,
        *,
        source: RemoteSource | None = None,
        secrets: SecretsResolver | None = None,
    ) -> Warehouse:
        """Open the host database, ensure the operational tables, wire everything.

        Unless *source* is given, extractions go through SQLAlchemy and are
        paced by ``settings.pacing_seconds``.
        """
        settings = settings or get_settings()
        store = WarehouseStore.from_url(
            settings.database_url,
            owner_role=settings.owner_role,
            reader_role=settings.reader_role,
        )
        create_ops_tables(store, settings.operational_schema)

        if source is None:
            source = PacedRemoteSource(
                SqlAlchemyRemoteSource(
                    driver=settings.remote_driver,
                    connect_timeout=settings.remote_connect_timeout,
                ),
                MinIntervalLimiter(interval=settings.pacing_seconds),
            )

        logger.debug("warehouse_opened", backend=store.dialect.name)
        return cls(
            store,
            SqlTemplateRegistry(store, settings.operational_schema),
            SqlConnectionRegistry(store, settings.operational_schema),
            source,
            settings,
            secrets=secrets,
        )

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> Warehouse:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = ["Warehouse"]
