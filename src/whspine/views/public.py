"""
Public aggregator: the cross-tenant aggregate view.

``{public}.{template}`` is a ``UNION ALL`` over every tenant aggregate view
of the template, one branch per tenant schema, with a literal tenant-tag
column (``schema_name`` by default) appended so each row names its source.

Tenant schemas are enumerated from the catalog's view records, never from
the engine's schema list; the operational and public namespaces are
excluded.
"""

from __future__ import annotations

from whspine.core.dialect import column_list, quote
from whspine.core.errors import NoSourcesError, wrap_error
from whspine.core.logging import LogContext, get_logger
from whspine.core.naming import public_view_name, tenant_view_name
from whspine.core.result import Err, Ok, Result
from whspine.core.storage import WarehouseStore
from whspine.registry.catalog import Catalog, ViewKind
from whspine.registry.templates import TemplateRegistry

logger = get_logger(__name__)


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class PublicAggregator:
    """Rebuilds public aggregate views."""

    def __init__(
        self,
        store: WarehouseStore,
        templates: TemplateRegistry,
        catalog: Catalog,
        *,
        public_schema: str = "public",
        tenant_tag_column: str = "schema_name",
    ):
        self.store = store
        self.templates = templates
        self.catalog = catalog
        self.public_schema = public_schema
        self.tenant_tag_column = tenant_tag_column

    def rebuild(self, template: str) -> Result[int]:
        """Recompute ``{public}.{template}``; returns the number of tenants."""
        with LogContext(template=template, schema=self.public_schema):
            try:
                return Ok(self._rebuild(template))
            except Exception as e:
                error = wrap_error(e).with_context(template=template, schema=self.public_schema)
                logger.error("public_view_rebuild_failed", error=str(error))
                return Err(error)

    def _rebuild(self, template: str) -> int:
        tmpl = self.templates.get(template)
        tenants = self.catalog.tenant_views(template)
        if not tenants:
            raise NoSourcesError(f"No tenant views found for template {template!r}")

        cols = column_list(tmpl.columns)
        tag = quote(self.tenant_tag_column)
        select_sql = "\nUNION ALL\n".join(
            f"SELECT {cols}, {_literal(schema)} AS {tag} "
            f"FROM {self.store.qualify(schema, tenant_view_name(template))}"
            for schema in tenants
        )
        view_name = public_view_name(template)
        qualified = self.store.qualify(self.public_schema, view_name)

        with self.store.transaction():
            self.store.ensure_schema(self.public_schema)
            self.store.apply(self.store.dialect.replace_view(qualified, select_sql))
            self.store.grant(qualified, "VIEW")
            self.catalog.record_view(template, self.public_schema, ViewKind.PUBLIC, view_name, len(tenants))

        logger.info("public_view_rebuilt", tenants=len(tenants))
        return len(tenants)


__all__ = ["PublicAggregator"]
