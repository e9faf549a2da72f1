"""
Partition lifecycle controller: create-or-refresh for one date.

``upsert`` is what the hourly job runs for "today": the first call of the
day creates the partition, later calls refresh it in place. When a new
partition is created the previous day is complete, and late rows for it may
still have arrived, so the previous day's partition is refreshed first.

Adjacent-day refresh policy (``adjacent_refresh_policy`` setting):

==================  ======================================================
``before_create``   Refresh the previous day only when the target partition
                    is about to be created (default).
``always``          Refresh the previous day on every upsert.
==================  ======================================================

Adjacent-day failures are logged and never change the outcome; failures on
the target date are returned.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum

from whspine.core.logging import LogContext, get_logger
from whspine.core.result import Err, Ok, Result
from whspine.core.settings import AdjacentRefreshPolicy
from whspine.partitions.materializer import CreateOutcome, PartitionMaterializer
from whspine.views.union import UnionViewCompiler

logger = get_logger(__name__)


class UpsertOutcome(str, Enum):
    CREATED = "created"
    REFRESHED = "refreshed"


class PartitionLifecycle:
    """Drives the materializer (and the union view on structural change)."""

    def __init__(
        self,
        materializer: PartitionMaterializer,
        union: UnionViewCompiler,
        *,
        adjacent_policy: AdjacentRefreshPolicy = AdjacentRefreshPolicy.BEFORE_CREATE,
    ):
        self.materializer = materializer
        self.union = union
        self.adjacent_policy = adjacent_policy

    def upsert(
        self,
        template: str,
        connection_id: str,
        schema: str,
        target_date: date,
        refresh_adjacent: bool = True,
        propagate_view: bool = True,
    ) -> Result[UpsertOutcome]:
        with LogContext(template=template, tenant=connection_id, schema=schema):
            target_exists = self.materializer.exists(template, schema, target_date)

            if refresh_adjacent and (
                self.adjacent_policy is AdjacentRefreshPolicy.ALWAYS or not target_exists
            ):
                self._refresh_adjacent(template, connection_id, schema, target_date - timedelta(days=1))

            with LogContext(target_date=target_date.isoformat()):
                if target_exists:
                    return self._refresh_target(template, connection_id, schema, target_date)

                created = self.materializer.create(template, connection_id, schema, target_date)
                if created.is_err():
                    return Err(created.error)
                if created.value is CreateOutcome.ALREADY_EXISTS:
                    return self._refresh_target(template, connection_id, schema, target_date)

                if propagate_view:
                    rebuilt = self.union.rebuild(template, schema)
                    if rebuilt.is_err():
                        return Err(rebuilt.error)

                logger.info("upsert_completed", outcome=UpsertOutcome.CREATED.value)
                return Ok(UpsertOutcome.CREATED)

    def _refresh_target(
        self, template: str, connection_id: str, schema: str, target_date: date
    ) -> Result[UpsertOutcome]:
        refreshed = self.materializer.refresh(template, connection_id, schema, target_date)
        if refreshed.is_err():
            return Err(refreshed.error)
        logger.info("upsert_completed", outcome=UpsertOutcome.REFRESHED.value, rows=refreshed.value)
        return Ok(UpsertOutcome.REFRESHED)

    def _refresh_adjacent(self, template: str, connection_id: str, schema: str, previous: date) -> None:
        with LogContext(target_date=previous.isoformat(), parent_operation="refresh_adjacent"):
            if not self.materializer.exists(template, schema, previous):
                logger.debug("adjacent_partition_missing")
                return
            result = self.materializer.refresh(template, connection_id, schema, previous)
            if result.is_err():
                logger.warning("adjacent_refresh_failed", error=str(result.error))
            else:
                logger.info("adjacent_refreshed", rows=result.value)


__all__ = ["UpsertOutcome", "PartitionLifecycle"]
