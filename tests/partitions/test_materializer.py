"""Tests for day partition creation and keyed refresh."""

from __future__ import annotations

from datetime import date

import pytest

from tests._support.fakes import SALES_INDEXES, make_sales_template, sales_rows
from whspine.core.errors import ErrorCategory, IndexCreationError, RefreshError, RemoteExtractionError
from whspine.partitions.materializer import CreateOutcome, apply_index_plan

DAY = date(2024, 1, 15)


def index_names(store) -> set[str]:
    return {r[0] for r in store.fetchall("SELECT name FROM sqlite_master WHERE type = 'index'")}


@pytest.fixture
def mat(wh):
    return wh.materializer


class TestCreate:
    def test_creates_partition(self, wh, mat, remote, store):
        remote.set_rows("acme-prod", DAY, sales_rows(DAY, 3))

        result = mat.create("sales", "acme-prod", "acme", DAY)

        assert result.unwrap() is CreateOutcome.CREATED
        assert store.object_exists("acme", "sales_2024_01_15")
        assert store.count_rows(store.qualify("acme", "sales_2024_01_15")) == 3
        record = wh.catalog.get_day("sales", "acme", DAY)
        assert record.object_name == "sales_2024_01_15"
        assert record.unique_key == ("id",)
        assert {"idx_acme_sales_2024_01_15_id", "idx_acme_sales_2024_01_15_sold_at"} <= index_names(store)

    def test_partition_has_declared_columns(self, mat, store):
        mat.create("sales", "acme-prod", "acme", DAY).unwrap()
        info = store.fetchall('PRAGMA table_info("acme__sales_2024_01_15")')
        assert [(r[1], r[2]) for r in info] == [
            ("id", "INTEGER"),
            ("amount", "NUMERIC(10,2)"),
            ("sold_at", "TIMESTAMP"),
        ]

    def test_query_is_rendered_for_the_date(self, mat, remote):
        mat.create("sales", "acme-prod", "acme", DAY)
        tenant, query = remote.calls[0]
        assert tenant == "acme-prod"
        assert "'2024-01-15'" in query

    def test_idempotent(self, mat, remote):
        remote.set_rows("acme-prod", DAY, sales_rows(DAY, 3))
        assert mat.create("sales", "acme-prod", "acme", DAY).unwrap() is CreateOutcome.CREATED
        assert mat.create("sales", "acme-prod", "acme", DAY).unwrap() is CreateOutcome.ALREADY_EXISTS
        assert len(remote.calls) == 1

    def test_empty_extraction_still_creates(self, mat, store):
        assert mat.create("sales", "acme-prod", "acme", DAY).is_ok()
        assert store.count_rows(store.qualify("acme", "sales_2024_01_15")) == 0

    def test_failed_extraction_leaves_nothing(self, wh, mat, remote, store):
        remote.fail_on("acme-prod", DAY)

        result = mat.create("sales", "acme-prod", "acme", DAY)

        assert result.is_err()
        assert isinstance(result.error, RemoteExtractionError)
        assert result.error.context.target_date == DAY
        assert not store.object_exists("acme", "sales_2024_01_15")
        assert wh.catalog.get_day("sales", "acme", DAY) is None

    def test_width_mismatch(self, mat, remote, store):
        remote.set_rows("acme-prod", DAY, [(1, 2.0)])
        result = mat.create("sales", "acme-prod", "acme", DAY)
        assert result.error.category == ErrorCategory.SOURCE
        assert not store.object_exists("acme", "sales_2024_01_15")

    def test_unknown_template(self, mat, remote):
        result = mat.create("returns", "acme-prod", "acme", DAY)
        assert result.error.category == ErrorCategory.NOT_FOUND
        assert remote.calls == []

    def test_unknown_tenant(self, mat, remote):
        result = mat.create("sales", "initech-prod", "initech", DAY)
        assert result.error.category == ErrorCategory.NOT_FOUND
        assert result.error.context.tenant == "initech-prod"
        assert remote.calls == []

    def test_invalid_schema(self, mat):
        result = mat.create("sales", "acme-prod", "acme-prod", DAY)
        assert result.error.category == ErrorCategory.VALIDATION

    def test_index_failure_is_not_fatal(self, wh, mat, templates, store):
        templates.put(
            make_sales_template(
                indexes=SALES_INDEXES + "\nCREATE INDEX idx_{VIEW_NAME}_bad ON {SCHEMA}.{VIEW_NAME} (no_such_column);"
            )
        )
        assert mat.create("sales", "acme-prod", "acme", DAY).unwrap() is CreateOutcome.CREATED
        assert wh.catalog.get_day("sales", "acme", DAY).unique_key == ("id",)
        assert "idx_sales_2024_01_15_bad" not in index_names(store)

    def test_failed_unique_index_means_no_key(self, wh, mat, remote):
        remote.set_rows("acme-prod", DAY, sales_rows(DAY, 2, start_id=7) + sales_rows(DAY, 1, start_id=7))
        assert mat.create("sales", "acme-prod", "acme", DAY).is_ok()
        assert wh.catalog.get_day("sales", "acme", DAY).unique_key is None


class TestRefresh:
    def test_keyed_diff(self, mat, remote, store):
        remote.set_rows("acme-prod", DAY, sales_rows(DAY, 3, start_id=1))
        mat.create("sales", "acme-prod", "acme", DAY).unwrap()

        # id 1 disappears, 2 and 3 change, 4 arrives late
        remote.set_rows("acme-prod", DAY, [(i, 99.0, f"{DAY} 11:00:00") for i in (2, 3, 4)])
        assert mat.refresh("sales", "acme-prod", "acme", DAY).unwrap() == 3

        rows = store.fetchall(f"SELECT id, amount FROM {store.qualify('acme', 'sales_2024_01_15')} ORDER BY id")
        assert [r[0] for r in rows] == [2, 3, 4]
        assert all(float(r[1]) == 99.0 for r in rows)

    def test_marks_catalog(self, wh, mat):
        mat.create("sales", "acme-prod", "acme", DAY).unwrap()
        mat.refresh("sales", "acme-prod", "acme", DAY).unwrap()
        assert wh.catalog.get_day("sales", "acme", DAY).refreshed_at is not None

    def test_requires_unique_key(self, mat, templates):
        templates.put(make_sales_template(indexes="CREATE INDEX i_{VIEW_NAME} ON {SCHEMA}.{VIEW_NAME} (sold_at)"))
        mat.create("sales", "acme-prod", "acme", DAY).unwrap()
        result = mat.refresh("sales", "acme-prod", "acme", DAY)
        assert isinstance(result.error, RefreshError)
        assert result.error.category == ErrorCategory.DDL

    def test_missing_partition(self, mat):
        assert mat.refresh("sales", "acme-prod", "acme", DAY).error.category == ErrorCategory.NOT_FOUND

    def test_failed_extraction_keeps_old_rows(self, mat, remote, store):
        remote.set_rows("acme-prod", DAY, sales_rows(DAY, 3))
        mat.create("sales", "acme-prod", "acme", DAY).unwrap()
        remote.fail_on("acme-prod", DAY)
        assert mat.refresh("sales", "acme-prod", "acme", DAY).is_err()
        assert store.count_rows(store.qualify("acme", "sales_2024_01_15")) == 3

    def test_null_key_in_extraction_is_rejected(self, mat, remote, store):
        remote.set_rows("acme-prod", DAY, sales_rows(DAY, 2, start_id=1))
        mat.create("sales", "acme-prod", "acme", DAY).unwrap()

        remote.set_rows("acme-prod", DAY, [(1, 5.0, f"{DAY} 11:00:00"), (None, 6.0, f"{DAY} 11:01:00")])
        for _ in range(3):
            result = mat.refresh("sales", "acme-prod", "acme", DAY)
            assert isinstance(result.error, RefreshError)
            assert "NULL" in result.error.message

        rows = store.fetchall(f"SELECT id FROM {store.qualify('acme', 'sales_2024_01_15')} ORDER BY id")
        assert [r[0] for r in rows] == [1, 2]

    def test_stale_null_keyed_rows_are_removed(self, mat, remote, store):
        remote.set_rows(
            "acme-prod",
            DAY,
            [(1, 1.0, f"{DAY} 10:00:00"), (2, 2.0, f"{DAY} 10:01:00"), (None, 3.0, f"{DAY} 10:02:00")],
        )
        mat.create("sales", "acme-prod", "acme", DAY).unwrap()

        remote.set_rows("acme-prod", DAY, [(1, 7.0, f"{DAY} 11:00:00")])
        assert mat.refresh("sales", "acme-prod", "acme", DAY).unwrap() == 1
        assert mat.refresh("sales", "acme-prod", "acme", DAY).unwrap() == 1

        rows = store.fetchall(f"SELECT id, amount FROM {store.qualify('acme', 'sales_2024_01_15')}")
        assert [(r[0], float(r[1])) for r in rows] == [(1, 7.0)]


class TestIndexPlan:
    def test_strict_raises(self, store, sales_template):
        store.execute(f"CREATE TABLE {store.qualify('acme', 'sales_2023')} (amount NUMERIC)")
        with pytest.raises(IndexCreationError) as exc:
            apply_index_plan(store, sales_template, "acme", "sales_2023", strict=True)
        assert exc.value.context.object_name == "sales_2023"

    def test_lenient_collects_failures(self, store, sales_template):
        store.execute(f"CREATE TABLE {store.qualify('acme', 'sales_2023')} (id INTEGER, amount NUMERIC)")
        plan = apply_index_plan(store, sales_template, "acme", "sales_2023")
        assert len(plan.applied) == 1
        assert len(plan.failed) == 1
        assert plan.unique_key == ("id",)
