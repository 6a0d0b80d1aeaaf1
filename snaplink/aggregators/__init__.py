"""Data aggregation logic for analytics."""

from snaplink.aggregators.analytics_aggregator import (
    AnalyticsAggregator,
    Window,
    get_analytics_aggregator,
    rank_labels,
    resolve_window,
)

__all__ = [
    "AnalyticsAggregator",
    "Window",
    "get_analytics_aggregator",
    "rank_labels",
    "resolve_window",
]
