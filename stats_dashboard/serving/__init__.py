"""
Serving Layer Module

Metric cache, aggregation service, tree paging and the HTTP API.
"""
from .cache import InMemoryMetricCache, MetricCache, RedisMetricCache
from .dispatcher import AggregationService, ServiceState
from .paging import RowsPage, get_rows

__all__ = [
    "InMemoryMetricCache",
    "MetricCache",
    "RedisMetricCache",
    "AggregationService",
    "ServiceState",
    "RowsPage",
    "get_rows",
]
