"""Statistics package."""

from pocket_ledger.stats.aggregator import StatisticsAggregator, shift_month

__all__ = ["StatisticsAggregator", "shift_month"]
