"""
Prefect Workflow Orchestration - Daily Cache Warm-up

Builds every metric tree once a day so the first dashboard visit after
midnight UTC is served from cache:
- Product batch fetched once, with retries
- Metrics aggregated one at a time, off the flow's event loop
- Each tree persisted with its build timestamp
"""

from typing import Any, Dict, List, Optional

from prefect import flow, task, get_run_logger

from stats_dashboard.aggregation.metrics import Metric
from stats_dashboard.config import get_settings
from stats_dashboard.data.generators import ProductStatsGenerator
from stats_dashboard.ingestion.client import StatsApiClient
from stats_dashboard.ingestion.records import ProductRecord
from stats_dashboard.serving.cache import MetricCache, RedisMetricCache, create_redis_client, now_ms
from stats_dashboard.serving.warmup import build_and_store, resolve_metrics, stale_metrics

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="fetch_products",
    description="Fetch the flat product list from the stats API",
    retries=3,
    retry_delay_seconds=60,
)
async def fetch_products() -> List[ProductRecord]:
    """Fetch products, or generate them when no stats API is configured"""
    logger = get_run_logger()

    if settings.stats_api.base_url:
        products = await StatsApiClient().fetch_products()
    else:
        logger.warning("No stats API configured, using synthetic products")
        products = ProductStatsGenerator().generate(settings.aggregation.synthetic_products)

    logger.info(f"Fetched {len(products)} products")
    return products


@task(
    name="aggregate_metric",
    description="Aggregate one metric tree and store it in the cache",
    retries=1,
    retry_delay_seconds=10,
)
async def aggregate_metric(
    products: List[ProductRecord],
    metric: Metric,
    cache: MetricCache,
    built_at: int,
) -> Dict[str, Any]:
    """Compute and persist one metric tree"""
    result = await build_and_store(products, metric, cache, built_at)
    get_run_logger().info(
        f"Metric {result['metric']}: {result['nodes']} nodes in {result['duration_s']}s, cached={result['cached']}"
    )
    return result


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="daily_cache_warm",
    description="Pre-compute every metric tree for the current UTC day",
    retries=1,
    retry_delay_seconds=300,
)
async def daily_cache_warm(
    metrics: Optional[List[str]] = None,
    force: bool = False,
) -> dict:
    """
    Daily cache warm-up.

    Args:
        metrics: metric tags to build (all metrics when omitted)
        force: rebuild metrics that already have a tree from today
    """
    logger = get_run_logger()

    cache = RedisMetricCache(create_redis_client())
    try:
        built_at = now_ms()
        selected = await stale_metrics(cache, resolve_metrics(metrics), built_at, force)

        if not selected:
            logger.info("All metrics are fresh")
            return {"status": "fresh", "metrics": []}

        products = await fetch_products()

        results = []
        for metric in selected:
            results.append(await aggregate_metric(products, metric, cache, built_at))

        failed = [r["metric"] for r in results if not r["cached"]]
        if failed:
            logger.warning(f"Trees computed but not cached: {failed}")

        return {
            "status": "success" if not failed else "partial",
            "built_at": built_at,
            "metrics": results,
        }
    finally:
        await cache.close()


if __name__ == "__main__":
    import asyncio

    result = asyncio.run(daily_cache_warm())
    print(f"Cache warm-up result: {result}")
