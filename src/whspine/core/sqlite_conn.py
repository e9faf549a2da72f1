"""sqlite3 host connection in explicit-transaction mode.

The connection is opened with ``isolation_level=None`` so that
:class:`~whspine.core.storage.WarehouseStore`, not the ``sqlite3`` module,
decides where transactions start. The module's legacy implicit mode commits
before DDL; with an explicit ``BEGIN`` every ``CREATE``/``DROP`` inside the
transaction rolls back with the data, which the all-or-nothing promotion
depends on.

Usage::

    conn = SqliteConnection(":memory:")
    conn.begin()
    conn.execute("CREATE TABLE t (id INTEGER)")
    conn.execute("INSERT INTO t VALUES (?)", (1,))
    conn.rollback()                 # table is gone again
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

# Remote rows arrive with driver-native types; store them the way PostgreSQL
# renders them as text so year filters (strftime) keep working.
sqlite3.register_adapter(Decimal, str)
sqlite3.register_adapter(date, lambda d: d.isoformat())
sqlite3.register_adapter(datetime, lambda dt: dt.isoformat(sep=" "))


class SqliteConnection:
    """``Connection`` over one sqlite3 connection and one shared cursor.

    ``fetchone``/``fetchall``/``rowcount`` always refer to the last
    ``execute``. Rows are plain tuples.
    """

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        self._db = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        self._db.execute("PRAGMA foreign_keys=ON")
        self._cur = self._db.cursor()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        return self._cur.execute(sql, tuple(params))

    def executemany(self, sql: str, params: Sequence[Sequence[Any]]) -> sqlite3.Cursor:
        return self._cur.executemany(sql, [tuple(p) for p in params])

    def fetchone(self) -> tuple | None:
        return self._cur.fetchone()

    def fetchall(self) -> list[tuple]:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return self._cur.rowcount

    def begin(self) -> None:
        self._cur.execute("BEGIN")

    def commit(self) -> None:
        if self._db.in_transaction:
            self._cur.execute("COMMIT")

    def rollback(self) -> None:
        if self._db.in_transaction:
            self._cur.execute("ROLLBACK")

    def close(self) -> None:
        self._db.close()

    def __repr__(self) -> str:
        return f"SqliteConnection(path={self.path!r})"
