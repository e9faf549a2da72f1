"""Tests for upsert (create-or-refresh) with adjacent-day refresh."""

from __future__ import annotations

from datetime import date

import pytest

from tests._support.fakes import sales_rows
from whspine.core.errors import ErrorCategory
from whspine.core.settings import AdjacentRefreshPolicy
from whspine.partitions.lifecycle import PartitionLifecycle, UpsertOutcome
from whspine.registry.catalog import ViewKind

D1 = date(2024, 1, 14)
D2 = date(2024, 1, 15)


def refreshed_at(wh, day):
    return wh.catalog.get_day("sales", "acme", day).refreshed_at


@pytest.fixture
def always(wh):
    return PartitionLifecycle(wh.materializer, wh.union, adjacent_policy=AdjacentRefreshPolicy.ALWAYS)


class TestUpsert:
    def test_first_call_creates_and_builds_view(self, wh, remote, store):
        remote.set_rows("acme-prod", D2, sales_rows(D2, 4))

        assert wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).unwrap() is UpsertOutcome.CREATED

        assert store.count_rows(store.qualify("acme", "sales")) == 4
        assert wh.catalog.get_view("sales", "acme", ViewKind.TENANT).source_count == 1

    def test_second_call_refreshes(self, wh, remote, store):
        remote.set_rows("acme-prod", D2, sales_rows(D2, 2))
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).unwrap()

        remote.set_rows("acme-prod", D2, sales_rows(D2, 5))
        assert wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).unwrap() is UpsertOutcome.REFRESHED
        assert store.count_rows(store.qualify("acme", "sales")) == 5

    def test_no_view_propagation(self, wh, store):
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D2, propagate_view=False).unwrap()
        assert not store.object_exists("acme", "sales")

    def test_target_failure_is_returned(self, wh, remote):
        remote.fail_on("acme-prod", D2)
        result = wh.lifecycle.upsert("sales", "acme-prod", "acme", D2)
        assert result.error.category == ErrorCategory.SOURCE

    def test_refresh_failure_is_returned(self, wh, remote):
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).unwrap()
        remote.fail_on("acme-prod", D2)
        assert wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).is_err()


class TestAdjacentBeforeCreate:
    def test_previous_day_refreshed_when_target_is_new(self, wh, remote, store):
        remote.set_rows("acme-prod", D1, sales_rows(D1, 2))
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D1).unwrap()

        remote.set_rows("acme-prod", D1, sales_rows(D1, 3))  # late row
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).unwrap()

        assert refreshed_at(wh, D1) is not None
        assert store.count_rows(store.qualify("acme", "sales_2024_01_14")) == 3

    def test_previous_day_untouched_when_target_exists(self, wh):
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D1).unwrap()
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).unwrap()
        wh.catalog.store.execute(
            f"UPDATE {wh.catalog.partitions_table} SET refreshed_at = NULL"
        )

        assert wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).unwrap() is UpsertOutcome.REFRESHED
        assert refreshed_at(wh, D1) is None

    def test_disabled(self, wh):
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D1).unwrap()
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D2, refresh_adjacent=False).unwrap()
        assert refreshed_at(wh, D1) is None

    def test_missing_previous_day_is_skipped(self, wh, remote):
        assert wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).is_ok()
        assert len(remote.calls) == 1

    def test_adjacent_failure_does_not_change_outcome(self, wh, remote):
        wh.lifecycle.upsert("sales", "acme-prod", "acme", D1).unwrap()
        remote.fail_on("acme-prod", D1)
        assert wh.lifecycle.upsert("sales", "acme-prod", "acme", D2).unwrap() is UpsertOutcome.CREATED


class TestAdjacentAlways:
    def test_previous_day_refreshed_on_every_upsert(self, wh, always):
        always.upsert("sales", "acme-prod", "acme", D1).unwrap()
        always.upsert("sales", "acme-prod", "acme", D2).unwrap()
        wh.catalog.store.execute(f"UPDATE {wh.catalog.partitions_table} SET refreshed_at = NULL")

        assert always.upsert("sales", "acme-prod", "acme", D2).unwrap() is UpsertOutcome.REFRESHED
        assert refreshed_at(wh, D1) is not None
