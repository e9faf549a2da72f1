"""
Host-warehouse storage with re-entrant transactions (SYNC-ONLY).

``WarehouseStore`` pairs one host :class:`~whspine.core.protocols.Connection`
with the :class:`~whspine.core.dialect.Dialect` that renders SQL for it, and
owns the transaction boundary for everything the warehouse writes.

Manifesto:
    Promotion must be all-or-nothing across hundreds of DDL statements, yet
    it reuses building blocks (the union view compiler, the catalog) that
    also run standalone. Those blocks therefore cannot open and commit their
    own transactions blindly. ``transaction()`` is re-entrant: the outermost
    call issues ``BEGIN``, every nested call becomes a ``SAVEPOINT``. A
    nested failure rolls back only to its savepoint; an outer failure
    discards everything.

Architecture:
    ::

        with store.transaction():              BEGIN
            ...
            with store.transaction():          SAVEPOINT wh_sp_1
                ...                            RELEASE SAVEPOINT wh_sp_1
            raise VerificationError(...)       ROLLBACK

Examples:
    >>> store = WarehouseStore.from_url("memory")
    >>> with store.transaction() as conn:
    ...     conn.execute(f"CREATE TABLE {store.qualify('acme', 't')} (id INTEGER)")
    >>> store.object_exists("acme", "t")
    True

Guardrails:
    ❌ DON'T: Call ``conn.commit()`` inside ``transaction()``
    ✅ DO: Let the context manager commit on exit

Tags:
    storage, transaction, savepoint, dialect, sync
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from whspine.core.connection import HostTarget, open_host
from whspine.core.dialect import Dialect, get_dialect
from whspine.core.logging import get_logger
from whspine.core.protocols import Connection

logger = get_logger(__name__)


class WarehouseStore:
    """Host connection + dialect + transaction management."""

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect,
        *,
        owner_role: str = "whadmin",
        reader_role: str = "PUBLIC",
        target: HostTarget | None = None,
    ):
        self.conn = conn
        self.dialect = dialect
        self.owner_role = owner_role
        self.reader_role = reader_role
        self.target = target
        self._depth = 0

    @classmethod
    def from_url(
        cls,
        url: str | None,
        *,
        owner_role: str = "whadmin",
        reader_role: str = "PUBLIC",
    ) -> WarehouseStore:
        conn, target = open_host(url)
        return cls(
            conn,
            get_dialect(target.backend),
            owner_role=owner_role,
            reader_role=reader_role,
            target=target,
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Open a transaction, or a savepoint when one is already open."""
        if self._depth == 0:
            self.conn.begin()
            self._depth = 1
            try:
                yield self.conn
            except BaseException:
                self._depth = 0
                self.conn.rollback()
                raise
            self._depth = 0
            self.conn.commit()
            return

        self._depth += 1
        savepoint = f"wh_sp_{self._depth}"
        self.conn.execute(f"SAVEPOINT {savepoint}")
        try:
            yield self.conn
        except BaseException:
            self.conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
            self.conn.execute(f"RELEASE SAVEPOINT {savepoint}")
            raise
        finally:
            self._depth -= 1
        self.conn.execute(f"RELEASE SAVEPOINT {savepoint}")

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Connection:
        self.conn.execute(sql, params)
        return self.conn

    def apply(self, statements: Iterable[str]) -> None:
        """Execute several statements in order."""
        for sql in statements:
            self.conn.execute(sql)

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[Any]:
        self.conn.execute(sql, params)
        return self.conn.fetchall()

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Any:
        self.conn.execute(sql, params)
        return self.conn.fetchone()

    def scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        row = self.fetchone(sql, params)
        return None if row is None else row[0]

    def count_rows(self, source: str) -> int:
        """``COUNT(*)`` over a qualified table/view or a parenthesised subquery."""
        return int(self.scalar(f"SELECT COUNT(*) FROM {source}") or 0)

    # ------------------------------------------------------------------
    # Object helpers
    # ------------------------------------------------------------------

    def qualify(self, schema: str, name: str) -> str:
        return self.dialect.qualify(schema, name)

    def ensure_schema(self, schema: str) -> None:
        self.apply(self.dialect.create_schema(schema))

    def object_exists(self, schema: str, name: str) -> bool:
        """Ask the engine itself whether a table or view exists."""
        sql, params = self.dialect.object_exists(schema, name)
        return self.fetchone(sql, params) is not None

    def grant(self, qualified: str, kind: str = "TABLE") -> None:
        """Apply ownership and read grants to a freshly created object."""
        self.apply(self.dialect.grants(qualified, kind, self.owner_role, self.reader_role))

    def close(self) -> None:
        self.conn.close()

    def __repr__(self) -> str:
        return f"WarehouseStore(dialect={self.dialect.name!r}, target={self.target!r})"


__all__ = ["WarehouseStore"]
