"""Partition lifecycle: create/refresh, window runs, promotion, completeness."""

from whspine.partitions.completeness import CompletenessChecker, CompletenessReport
from whspine.partitions.lifecycle import PartitionLifecycle, UpsertOutcome
from whspine.partitions.materializer import CreateOutcome, PartitionMaterializer, apply_index_plan
from whspine.partitions.promotion import PromotionEngine, PromotionReport
from whspine.partitions.window import DateResult, WindowReport, WindowScheduler

__all__ = [
    "CompletenessChecker",
    "CompletenessReport",
    "PartitionLifecycle",
    "UpsertOutcome",
    "CreateOutcome",
    "PartitionMaterializer",
    "apply_index_plan",
    "PromotionEngine",
    "PromotionReport",
    "DateResult",
    "WindowReport",
    "WindowScheduler",
]
