"""Aggregate views over partitions (per tenant) and over tenants (public)."""

from whspine.views.public import PublicAggregator
from whspine.views.union import UnionViewCompiler

__all__ = ["PublicAggregator", "UnionViewCompiler"]
