"""Keyed stores injected into the partition lifecycle.

- ``templates``    Template definitions (query, columns, index plan)
- ``connections``  Tenant source databases + credential resolution boundary
- ``catalog``      Explicit registry of day/year partitions and aggregate views
"""

from whspine.registry.catalog import Catalog, PartitionKind, PartitionRecord, ViewKind
from whspine.registry.connections import (
    ConnectionResolver,
    InMemoryConnectionRegistry,
    RemoteConnection,
    SqlConnectionRegistry,
    TenantConnection,
)
from whspine.registry.templates import (
    InMemoryTemplateRegistry,
    SqlTemplateRegistry,
    Template,
    load_templates,
)

__all__ = [
    "Catalog",
    "PartitionKind",
    "PartitionRecord",
    "ViewKind",
    "ConnectionResolver",
    "InMemoryConnectionRegistry",
    "RemoteConnection",
    "SqlConnectionRegistry",
    "TenantConnection",
    "InMemoryTemplateRegistry",
    "SqlTemplateRegistry",
    "Template",
    "load_templates",
]
