"""
Cache Warm-up

Steps of the daily warm-up flow: pick the metrics without a tree from today,
then build and store them one at a time off the event loop.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import structlog

from stats_dashboard.aggregation.engine import compute_metric_tree
from stats_dashboard.aggregation.metrics import Metric, parse_metric
from stats_dashboard.ingestion.records import ProductRecord
from .cache import MetricCache, is_fresh

logger = structlog.get_logger(__name__)


def resolve_metrics(metrics: Optional[Iterable[str]] = None) -> List[Metric]:
    """Validated metric list; every metric when none are given"""
    return [parse_metric(m) for m in metrics] if metrics else list(Metric)


async def stale_metrics(
    cache: MetricCache,
    metrics: Iterable[Metric],
    now: int,
    force: bool = False,
) -> List[Metric]:
    """Metrics whose cached tree was not built on the current UTC day"""
    metrics = list(metrics)
    if force:
        return metrics

    stale = []
    for metric in metrics:
        if is_fresh(await cache.get_timestamp(metric), now):
            logger.info("Metric already cached today", metric=metric.value)
        else:
            stale.append(metric)
    return stale


async def build_and_store(
    products: List[ProductRecord],
    metric: Metric,
    cache: MetricCache,
    built_at: int,
) -> Dict[str, Any]:
    """Aggregate one metric in a worker thread and persist it"""
    started = time.perf_counter()
    today = datetime.fromtimestamp(built_at / 1000, tz=timezone.utc)

    tree = await asyncio.to_thread(compute_metric_tree, products, metric, today)
    stored = await cache.put(metric, tree, built_at)

    result = {
        "metric": metric.value,
        "nodes": len(tree),
        "cached": stored,
        "duration_s": round(time.perf_counter() - started, 3),
    }
    logger.info("Metric tree warmed", **result)
    return result
