"""Tests for WarehouseStore: transactions, savepoints and object helpers."""

from __future__ import annotations

import pytest

from whspine.core.dialect import SQLiteDialect
from whspine.core.sqlite_conn import SqliteConnection
from whspine.core.storage import WarehouseStore


@pytest.fixture
def bare_store():
    s = WarehouseStore(SqliteConnection(":memory:"), SQLiteDialect())
    yield s
    s.close()


class TestTransactions:
    def test_commit(self, bare_store):
        with bare_store.transaction():
            bare_store.execute('CREATE TABLE "acme__t" (id INTEGER)')
            bare_store.execute('INSERT INTO "acme__t" VALUES (?)', (1,))
        assert bare_store.count_rows('"acme__t"') == 1
        assert not bare_store.in_transaction

    def test_rollback_undoes_ddl(self, bare_store):
        with pytest.raises(RuntimeError):
            with bare_store.transaction():
                bare_store.execute('CREATE TABLE "acme__t" (id INTEGER)')
                raise RuntimeError("boom")
        assert not bare_store.object_exists("acme", "t")
        assert not bare_store.in_transaction

    def test_nested_failure_rolls_back_to_savepoint(self, bare_store):
        with bare_store.transaction():
            bare_store.execute('CREATE TABLE "acme__t" (id INTEGER)')
            bare_store.execute('INSERT INTO "acme__t" VALUES (1)')
            with pytest.raises(RuntimeError):
                with bare_store.transaction():
                    bare_store.execute('INSERT INTO "acme__t" VALUES (2)')
                    raise RuntimeError("inner")
            bare_store.execute('INSERT INTO "acme__t" VALUES (3)')
        ids = [r[0] for r in bare_store.fetchall('SELECT id FROM "acme__t" ORDER BY id')]
        assert ids == [1, 3]

    def test_outer_failure_discards_released_savepoints(self, bare_store):
        bare_store.execute('CREATE TABLE "acme__t" (id INTEGER)')
        with pytest.raises(RuntimeError):
            with bare_store.transaction():
                with bare_store.transaction():
                    bare_store.execute('INSERT INTO "acme__t" VALUES (1)')
                raise RuntimeError("outer")
        assert bare_store.count_rows('"acme__t"') == 0

    def test_depth_tracking(self, bare_store):
        with bare_store.transaction():
            assert bare_store.in_transaction
            with bare_store.transaction():
                assert bare_store._depth == 2
            assert bare_store._depth == 1
        assert bare_store._depth == 0


class TestHelpers:
    def test_scalar_and_fetchone(self, bare_store):
        assert bare_store.scalar("SELECT 41 + 1") == 42
        assert bare_store.fetchone("SELECT 1, 2") == (1, 2)

    def test_count_rows_on_subquery(self, bare_store):
        assert bare_store.count_rows("(SELECT 1 UNION ALL SELECT 2)") == 2

    def test_object_exists_sees_tables_and_views(self, bare_store):
        bare_store.execute('CREATE TABLE "acme__t" (id INTEGER)')
        bare_store.execute('CREATE VIEW "acme__v" AS SELECT id FROM "acme__t"')
        assert bare_store.object_exists("acme", "t")
        assert bare_store.object_exists("acme", "v")
        assert not bare_store.object_exists("globex", "t")

    def test_grant_is_noop_on_sqlite(self, bare_store):
        bare_store.execute('CREATE TABLE "acme__t" (id INTEGER)')
        bare_store.grant('"acme__t"')

    def test_from_url_memory(self):
        s = WarehouseStore.from_url("memory", owner_role="owner", reader_role="readers")
        try:
            assert s.dialect.name == "sqlite"
            assert s.owner_role == "owner"
            assert s.target is not None and not s.target.persistent
        finally:
            s.close()

    def test_from_url_file(self, tmp_path):
        path = tmp_path / "nested" / "wh.db"
        s = WarehouseStore.from_url(str(path))
        try:
            assert path.exists()
            assert s.target.persistent
        finally:
            s.close()
