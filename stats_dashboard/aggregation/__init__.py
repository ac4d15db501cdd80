"""
Aggregation Module

Day-window resolution, metric projection and hierarchical rollups.
"""
from .levels import Level, ORDERED_LEVELS, create_node_id, level_of, name_from_node_id
from .metrics import InvalidMetricError, Metric, parse_metric
from .window import WINDOW_DAYS, DayWindow, resolve, window_dates
from .engine import AggregationNode, WireTree, aggregate, compute_metric_tree, tree_to_wire

__all__ = [
    "Level",
    "ORDERED_LEVELS",
    "create_node_id",
    "level_of",
    "name_from_node_id",
    "InvalidMetricError",
    "Metric",
    "parse_metric",
    "WINDOW_DAYS",
    "DayWindow",
    "resolve",
    "window_dates",
    "AggregationNode",
    "WireTree",
    "aggregate",
    "compute_metric_tree",
    "tree_to_wire",
]
