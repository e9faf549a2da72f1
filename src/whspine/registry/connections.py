"""
Tenant connection registry and the credential-resolution boundary.

``TenantConnection`` is what an operator registers (host, port, database,
user and a stored password, either literal or a secret reference).
``ConnectionResolver`` turns it into a ``RemoteConnection`` whose password
is a masked :class:`~whspine.core.secrets.SecretValue`.

Only the partition materializer holds a resolver. Lifecycle, window and
promotion callers pass a tenant id and never see a credential.

Examples:
    >>> registry = InMemoryConnectionRegistry()
    >>> registry.put(TenantConnection("acme", "db.acme.internal", "acme", "reader", "env:ACME_PW"))
    >>> resolver = ConnectionResolver(registry, SecretsResolver())
    >>> resolver.resolve("acme")          # doctest: +SKIP
    RemoteConnection(tenant='acme', host='db.acme.internal', port=5432, ..., password=SecretValue('[REDACTED]'))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from whspine.core.errors import ConnectionNotFoundError, SecretResolutionError
from whspine.core.schema import ops_table
from whspine.core.secrets import SecretsResolver, SecretValue
from whspine.core.storage import WarehouseStore
from whspine.core.timestamps import utc_now_iso


@dataclass(frozen=True)
class TenantConnection:
    """A registered tenant source database.

    ``password`` is the stored form: a literal or an ``env:``/``file:``/
    ``secret:`` reference. It is excluded from ``repr``.
    """

    tenant: str
    host: str
    dbname: str
    username: str
    password: str = field(repr=False)
    port: int = 5432

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant": self.tenant,
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "username": self.username,
        }


@dataclass(frozen=True)
class RemoteConnection:
    """A resolved connection descriptor, safe to log."""

    tenant: str
    host: str
    port: int
    dbname: str
    username: str
    password: SecretValue


@runtime_checkable
class ConnectionRegistry(Protocol):
    """Keyed store of tenant connections."""

    def get(self, tenant: str) -> TenantConnection: ...

    def put(self, connection: TenantConnection) -> None: ...

    def list(self) -> list[TenantConnection]: ...

    def delete(self, tenant: str) -> bool: ...


class InMemoryConnectionRegistry:
    """Dict-backed registry."""

    def __init__(self, connections: list[TenantConnection] | None = None):
        self._connections: dict[str, TenantConnection] = {}
        for c in connections or []:
            self.put(c)

    def get(self, tenant: str) -> TenantConnection:
        try:
            return self._connections[tenant]
        except KeyError:
            raise ConnectionNotFoundError(tenant) from None

    def put(self, connection: TenantConnection) -> None:
        self._connections[connection.tenant] = connection

    def list(self) -> list[TenantConnection]:
        return [self._connections[k] for k in sorted(self._connections)]

    def delete(self, tenant: str) -> bool:
        return self._connections.pop(tenant, None) is not None


class SqlConnectionRegistry:
    """Registry stored in ``{ops}.tenant_connections`` on the host database."""

    _COLUMNS = "tenant_name, host, port, dbname, username, password"

    def __init__(self, store: WarehouseStore, ops_schema: str = "_wh"):
        self.store = store
        self.table = ops_table(store, ops_schema, "connections")

    @staticmethod
    def _from_row(row: Any) -> TenantConnection:
        return TenantConnection(
            tenant=row[0],
            host=row[1],
            port=int(row[2]),
            dbname=row[3],
            username=row[4],
            password=row[5],
        )

    def get(self, tenant: str) -> TenantConnection:
        row = self.store.fetchone(
            f"SELECT {self._COLUMNS} FROM {self.table} WHERE tenant_name = ?", (tenant,)
        )
        if row is None:
            raise ConnectionNotFoundError(tenant)
        return self._from_row(row)

    def put(self, connection: TenantConnection) -> None:
        now = utc_now_iso()
        with self.store.transaction():
            self.store.execute(
                f"""
                INSERT INTO {self.table} ({self._COLUMNS}, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (tenant_name) DO UPDATE SET
                    host = excluded.host,
                    port = excluded.port,
                    dbname = excluded.dbname,
                    username = excluded.username,
                    password = excluded.password,
                    updated_at = excluded.updated_at
                """,
                (
                    connection.tenant,
                    connection.host,
                    connection.port,
                    connection.dbname,
                    connection.username,
                    connection.password,
                    now,
                    now,
                ),
            )

    def list(self) -> list[TenantConnection]:
        rows = self.store.fetchall(
            f"SELECT {self._COLUMNS} FROM {self.table} ORDER BY tenant_name"
        )
        return [self._from_row(r) for r in rows]

    def delete(self, tenant: str) -> bool:
        with self.store.transaction():
            self.store.execute(f"DELETE FROM {self.table} WHERE tenant_name = ?", (tenant,))
            return self.store.conn.rowcount > 0


class ConnectionResolver:
    """Resolves a tenant id to a ``RemoteConnection`` with a masked password."""

    def __init__(self, registry: ConnectionRegistry, secrets: SecretsResolver | None = None):
        self.registry = registry
        self.secrets = secrets or SecretsResolver()

    def resolve(self, tenant: str) -> RemoteConnection:
        """
        Raises:
            ConnectionNotFoundError: No connection registered for *tenant*.
            SecretResolutionError: The stored password reference cannot be resolved.
        """
        conn = self.registry.get(tenant)
        try:
            password = self.secrets.resolve_password(conn.password)
        except SecretResolutionError as e:
            e.with_context(tenant=tenant)
            raise
        return RemoteConnection(
            tenant=conn.tenant,
            host=conn.host,
            port=conn.port,
            dbname=conn.dbname,
            username=conn.username,
            password=password,
        )


__all__ = [
    "TenantConnection",
    "RemoteConnection",
    "ConnectionRegistry",
    "InMemoryConnectionRegistry",
    "SqlConnectionRegistry",
    "ConnectionResolver",
]
