"""SQLAlchemy engine factory and Connection bridge.

This module provides:

* ``create_warehouse_engine`` -- Create a SA engine for the host warehouse.
* ``SAConnectionBridge``      -- Wraps a SA ``Connection`` to satisfy the
  ``whspine.core.protocols.Connection`` protocol, so the partition lifecycle
  issues the same ``?``-placeholder SQL on PostgreSQL as on SQLite.

Transactions follow SQLAlchemy 2.0 "commit as you go": outside ``begin()``
the bridge commits after every statement; inside, statements accumulate until
``commit()`` or ``rollback()``. Result rows are buffered eagerly so they stay
readable after the autocommit.

Tags:
    sqlalchemy, engine, bridge, connection, postgresql
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection as SAConnection
from sqlalchemy.engine import Engine


def create_warehouse_engine(url: str, **kwargs: Any) -> Engine:
    """Engine for the host warehouse.

    The bridge holds one connection for the life of the process, so pool
    settings stay at their defaults.
    """
    return create_engine(url, pool_pre_ping=True, **kwargs)


def to_named_params(sql: str, parameters: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """Rewrite ``?`` placeholders to ``:p0, :p1, ...`` for SA ``text()``."""
    rewritten, idx = [], 0
    for ch in sql:
        if ch == "?":
            rewritten.append(f":p{idx}")
            idx += 1
        else:
            rewritten.append(ch)
    mapping = {f"p{i}": v for i, v in enumerate(parameters)}
    return "".join(rewritten), mapping


class SAConnectionBridge:
    """Adapter that makes a SQLAlchemy ``Connection`` look like ``whspine.core.protocols.Connection``.

    Implements: ``execute``, ``executemany``, ``fetchone``, ``fetchall``,
    ``begin``, ``commit``, ``rollback``, ``close``.
    """

    def __init__(self, connection: SAConnection) -> None:
        self._conn = connection
        self._explicit = False
        self._rows: list[tuple[Any, ...]] = []
        self._pos = 0
        self._rowcount = -1

    # --- execute / executemany ---

    def execute(self, sql: str, parameters: Sequence[Any] = ()) -> SAConnectionBridge:
        if parameters:
            rewritten, mapping = to_named_params(sql, parameters)
            result = self._conn.execute(text(rewritten), mapping)
        else:
            result = self._conn.exec_driver_sql(sql)

        self._rowcount = result.rowcount
        self._rows = [tuple(r) for r in result.fetchall()] if result.returns_rows else []
        self._pos = 0

        if not self._explicit:
            self._conn.commit()
        return self

    def executemany(self, sql: str, seq_of_parameters: Sequence[Sequence[Any]]) -> SAConnectionBridge:
        rows = list(seq_of_parameters)
        if not rows:
            return self
        rewritten, _ = to_named_params(sql, rows[0])
        mappings = [to_named_params(sql, p)[1] for p in rows]
        result = self._conn.execute(text(rewritten), mappings)
        self._rowcount = result.rowcount
        self._rows, self._pos = [], 0
        if not self._explicit:
            self._conn.commit()
        return self

    # --- fetch ---

    def fetchone(self) -> tuple[Any, ...] | None:
        if self._pos >= len(self._rows):
            return None
        row = self._rows[self._pos]
        self._pos += 1
        return row

    def fetchall(self) -> list[tuple[Any, ...]]:
        rows = self._rows[self._pos:]
        self._pos = len(self._rows)
        return rows

    @property
    def rowcount(self) -> int:
        return self._rowcount

    # --- transaction ---

    def begin(self) -> None:
        if self._conn.in_transaction():
            # close the autobegun read transaction
            self._conn.commit()
        self._explicit = True

    def commit(self) -> None:
        self._explicit = False
        self._conn.commit()

    def rollback(self) -> None:
        self._explicit = False
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    @property
    def connection(self) -> SAConnection:
        """Access the underlying SA connection."""
        return self._conn
