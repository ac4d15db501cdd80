"""
Hierarchical Aggregation Engine

Builds the supplier -> brand -> type -> article tree for one metric from the
flat product batch, in two passes:

1. Per product: project the metric over the day window, populate the
   article node, create any missing ancestors, and fold the article into its
   type node's accumulator.
2. Bottom-up by level: finalize type nodes from their accumulators, then
   re-derive brand nodes from their finalized types, then suppliers from
   their finalized brands.

The run is pure and synchronous: identical input gives an identical tree.
"""

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

import numpy as np
import structlog

from .levels import Level, ORDERED_LEVELS, create_node_id, level_of, parent_id
from .metrics import Metric, parse_metric
from .projector import project_product
from .rollup import RollupAccumulator, RollupStrategy, strategy_for
from .window import DateLike, resolve, to_utc_date, utc_today

if TYPE_CHECKING:
    from stats_dashboard.ingestion.records import ProductRecord

logger = structlog.get_logger(__name__)

WireNode = Dict[str, Any]
WireTree = Dict[str, WireNode]


def series_to_wire(series: Optional[np.ndarray]) -> List[Optional[float]]:
    """NaN -> None, numpy scalars -> float"""
    if series is None:
        return []
    return [None if np.isnan(v) else float(v) for v in series]


@dataclass
class AggregationNode:
    """One node of the aggregation tree"""
    node_id: str
    child_ids: List[str] = field(default_factory=list)
    metric_data: Optional[np.ndarray] = None
    cell_count: Optional[np.ndarray] = None  # weighted rollups only, stripped on return
    sum: Optional[float] = None
    average: Optional[float] = None

    @property
    def level(self) -> Level:
        return level_of(self.node_id)

    def to_dict(self) -> WireNode:
        """Wire representation; None stands for "no data"/"not applicable"."""
        return {
            "childIds": list(self.child_ids),
            "metricData": series_to_wire(self.metric_data),
            "sum": self.sum,
            "average": self.average,
        }


class TreeBuilder:
    """
    Single-run builder for one metric.

    Example:
        tree = TreeBuilder(Metric.REVENUE, today).build(products)
    """

    def __init__(self, metric: Metric, today: DateLike, strategy: Optional[RollupStrategy] = None):
        self.metric = metric
        self.today = to_utc_date(today)
        self.strategy = strategy or strategy_for(metric)
        self.nodes: Dict[str, AggregationNode] = {}
        self.pending: Dict[Level, List[str]] = {level: [] for level in ORDERED_LEVELS[:-1]}
        self.accumulators: Dict[str, RollupAccumulator] = {}
        self.duplicates = 0
        self.stale = 0

    # -- pass 1 --------------------------------------------------------------

    def _ensure_node(self, node_id: str) -> AggregationNode:
        node = self.nodes.get(node_id)
        if node is None:
            node = AggregationNode(node_id=node_id)
            self.nodes[node_id] = node
            level = node.level
            if level in self.pending:
                self.pending[level].append(node_id)
            # ancestors are created first, so the parent already exists
            parent = parent_id(node_id)
            if parent is not None:
                self.nodes[parent].child_ids.append(node_id)
        return node

    def add_product(self, product: "ProductRecord") -> None:
        article_id = product.node_id
        if article_id in self.nodes:
            self.duplicates += 1
            logger.warning("Skipping duplicate product", node_id=article_id)
            return

        window = resolve(product, self.today)
        if window.is_empty:
            self.stale += 1
        series = project_product(product, self.metric, window=window)
        weights = self.strategy.leaf_weights(series)

        type_node = None
        for depth in range(len(ORDERED_LEVELS) - 1):
            type_node = self._ensure_node(create_node_id(*product.identity[: depth + 1]))

        article = self._ensure_node(article_id)
        article.metric_data = series
        article.cell_count = weights
        article.sum, article.average = self.strategy.summarize_leaf(series, window)

        acc = self.accumulators.get(type_node.node_id)
        if acc is None:
            acc = self.accumulators[type_node.node_id] = self.strategy.new_accumulator()
        self.strategy.fold(acc, series, weights)

    # -- pass 2 --------------------------------------------------------------

    def _finalize(self, node: AggregationNode, acc: RollupAccumulator) -> None:
        node.metric_data, node.cell_count = self.strategy.finalize_series(acc)
        node.sum, node.average = self.strategy.summarize(node.metric_data, node.cell_count)

    def finalize(self) -> None:
        for node_id in self.pending[Level.TYPE]:
            self._finalize(self.nodes[node_id], self.accumulators[node_id])

        for level in (Level.BRAND, Level.SUPPLIER):
            for node_id in self.pending[level]:
                node = self.nodes[node_id]
                acc = self.strategy.new_accumulator()
                for child_id in node.child_ids:
                    child = self.nodes[child_id]
                    self.strategy.fold(acc, child.metric_data, child.cell_count)
                self._finalize(node, acc)

        self.accumulators.clear()
        for node in self.nodes.values():
            node.cell_count = None

    def build(self, products: Iterable["ProductRecord"]) -> Dict[str, AggregationNode]:
        for product in products:
            self.add_product(product)
        self.finalize()
        return self.nodes


def aggregate(
    products: Iterable["ProductRecord"],
    metric: Union[str, Metric],
    today: Optional[DateLike] = None,
) -> Dict[str, AggregationNode]:
    """
    Aggregate a product batch into the hierarchy for one metric.

    Args:
        products: validated product records
        metric: metric tag; validated before any work is done
        today: reference date (UTC); defaults to the current UTC date

    Returns:
        Node id -> node, covering every supplier, brand, type and article

    Raises:
        InvalidMetricError: unknown metric
    """
    metric = parse_metric(metric)
    started = time.perf_counter()

    builder = TreeBuilder(metric, today if today is not None else utc_today())
    tree = builder.build(products)

    logger.info(
        "Aggregation completed",
        metric=metric.value,
        nodes=len(tree),
        articles=sum(1 for node_id in tree if level_of(node_id) == Level.ARTICLE),
        stale_products=builder.stale,
        duplicates=builder.duplicates,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return tree


def tree_to_wire(tree: Dict[str, AggregationNode]) -> WireTree:
    """Plain string-keyed map, as stored in the cache and sent to the grid"""
    return {node_id: node.to_dict() for node_id, node in tree.items()}


def compute_metric_tree(
    products: List["ProductRecord"],
    metric: Union[str, Metric],
    today: Optional[DateLike] = None,
) -> WireTree:
    """Executor entry point: aggregate and serialize in the worker"""
    return tree_to_wire(aggregate(products, metric, today))
