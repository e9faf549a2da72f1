"""
Structural protocols shared across the warehouse.

Architecture:
    ::

        protocols.py
        ├── Connection:   sync host-database connection (SQLite, SQLAlchemy bridge)
        └── RemoteSource: executes one extraction query against a tenant database

    Consumers:
        core/storage.py, remote.py, partitions/materializer.py

Guardrails:
    ❌ DON'T: Duplicate these protocols in other modules
    ✅ DO: Import from whspine.core.protocols

    ❌ DON'T: Call ``commit()`` from domain code
    ✅ DO: Use ``WarehouseStore.transaction()`` so nesting works

Tags:
    protocol, connection, remote-source, contracts
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from whspine.registry.connections import RemoteConnection


@runtime_checkable
class Connection(Protocol):
    """Synchronous host connection.

    Statements use ``?`` placeholders on every backend. ``begin()`` opens an
    explicit transaction; outside of one every statement commits on its own.
    """

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Any: ...

    def executemany(self, sql: str, params: Sequence[Sequence[Any]]) -> Any: ...

    def fetchone(self) -> Any: ...

    def fetchall(self) -> list[Any]: ...

    @property
    def rowcount(self) -> int: ...

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class RemoteSource(Protocol):
    """Runs an extraction query against a tenant's remote database."""

    def fetch(self, connection: RemoteConnection, query: str) -> list[tuple[Any, ...]]: ...


__all__ = ["Connection", "RemoteSource"]
