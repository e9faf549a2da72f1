"""
Union view compiler: the per-tenant aggregate view.

``{schema}.{template}`` is a ``UNION ALL`` over every year partition and
then every day partition of the template in the schema, each in name
order, each branch selecting the template's columns explicitly. The view is
always recomputed from the catalog's current constituent set, so the view
can never drift from the catalog.

During promotion the view is rebuilt with ``exclude_year`` so the year's
day partitions drop out before the year table starts filling, which keeps
readers from ever seeing a row twice.

Example::

    compiler = UnionViewCompiler(store, templates, catalog)
    compiler.rebuild("sales", "acme")                     # Ok(367)
    compiler.rebuild("sales", "acme", exclude_year=2023)  # Ok(2)
"""

from __future__ import annotations

from whspine.core.dialect import column_list
from whspine.core.errors import NoSourcesError, wrap_error
from whspine.core.logging import LogContext, get_logger
from whspine.core.naming import tenant_view_name
from whspine.core.result import Err, Ok, Result
from whspine.core.storage import WarehouseStore
from whspine.registry.catalog import Catalog, ViewKind
from whspine.registry.templates import TemplateRegistry

logger = get_logger(__name__)


class UnionViewCompiler:
    """Rebuilds tenant aggregate views from the catalog."""

    def __init__(self, store: WarehouseStore, templates: TemplateRegistry, catalog: Catalog):
        self.store = store
        self.templates = templates
        self.catalog = catalog

    def sources(self, template: str, schema: str, exclude_year: int | None = None) -> list[str]:
        """Constituent object names: years first, then days, each in name order."""
        years = [r.object_name for r in self.catalog.list_years(template, schema)]
        days = [
            r.object_name
            for r in self.catalog.list_days(template, schema)
            if exclude_year is None or r.year != exclude_year
        ]
        return years + days

    def rebuild(self, template: str, schema: str, exclude_year: int | None = None) -> Result[int]:
        """Recompute ``{schema}.{template}``; returns the number of sources."""
        with LogContext(template=template, schema=schema):
            try:
                return Ok(self.rebuild_or_raise(template, schema, exclude_year))
            except Exception as e:
                error = wrap_error(e).with_context(template=template, schema=schema)
                logger.error("union_view_rebuild_failed", error=str(error))
                return Err(error)

    def rebuild_or_raise(self, template: str, schema: str, exclude_year: int | None = None) -> int:
        """As :meth:`rebuild`, raising instead of returning ``Err``.

        Used inside an enclosing transaction (promotion), where a failure
        must propagate to roll the whole transaction back.
        """
        tmpl = self.templates.get(template)
        names = self.sources(template, schema, exclude_year)
        if not names:
            raise NoSourcesError(
                f"No partitions found for template {template!r} in schema {schema!r}"
            ).with_context(template=template, schema=schema)

        cols = column_list(tmpl.columns)
        select_sql = "\nUNION ALL\n".join(
            f"SELECT {cols} FROM {self.store.qualify(schema, name)}" for name in names
        )
        view_name = tenant_view_name(template)
        qualified = self.store.qualify(schema, view_name)

        with self.store.transaction():
            self.store.apply(self.store.dialect.replace_view(qualified, select_sql))
            self.store.grant(qualified, "VIEW")
            self.catalog.record_view(template, schema, ViewKind.TENANT, view_name, len(names))

        logger.info("union_view_rebuilt", sources=len(names), exclude_year=exclude_year)
        return len(names)


__all__ = ["UnionViewCompiler"]
