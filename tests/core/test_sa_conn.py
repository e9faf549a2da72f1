"""Tests for the SQLAlchemy connection bridge (run against SQLite)."""

import pytest
from sqlalchemy import create_engine

from whspine.core.sa_conn import SAConnectionBridge, to_named_params


class TestNamedParams:
    def test_rewrite(self):
        sql, params = to_named_params("SELECT * FROM t WHERE a = ? AND b = ?", (1, "x"))
        assert sql == "SELECT * FROM t WHERE a = :p0 AND b = :p1"
        assert params == {"p0": 1, "p1": "x"}

    def test_no_placeholders(self):
        assert to_named_params("SELECT 1", ()) == ("SELECT 1", {})


@pytest.fixture
def bridge():
    engine = create_engine("sqlite://")
    b = SAConnectionBridge(engine.connect())
    b.execute("CREATE TABLE t (id INTEGER)")
    yield b
    b.close()
    engine.dispose()


class TestBridge:
    def test_fetch_after_autocommit(self, bridge):
        bridge.execute("INSERT INTO t VALUES (?)", (1,))
        bridge.execute("INSERT INTO t VALUES (?)", (2,))
        bridge.execute("SELECT id FROM t ORDER BY id")
        assert bridge.fetchone() == (1,)
        assert bridge.fetchall() == [(2,)]
        assert bridge.fetchone() is None

    def test_rollback_inside_begin(self, bridge):
        bridge.begin()
        bridge.execute("INSERT INTO t VALUES (?)", (1,))
        bridge.rollback()
        bridge.execute("SELECT COUNT(*) FROM t")
        assert bridge.fetchone() == (0,)

    def test_executemany_rowcount(self, bridge):
        bridge.executemany("INSERT INTO t VALUES (?)", [(1,), (2,), (3,)])
        bridge.execute("DELETE FROM t WHERE id > ?", (1,))
        assert bridge.rowcount == 2

    def test_statement_without_parameters_is_sent_verbatim(self, bridge):
        bridge.execute("CREATE TABLE notes (body TEXT DEFAULT ' :draft')")
        bridge.execute("INSERT INTO notes DEFAULT VALUES")
        bridge.execute("SELECT body, ' :notabind' FROM notes")
        assert bridge.fetchone() == (" :draft", " :notabind")
