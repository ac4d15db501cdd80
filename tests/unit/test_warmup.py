"""
Unit Tests - Cache Warm-up
"""
import pytest

from stats_dashboard.aggregation.engine import compute_metric_tree
from stats_dashboard.aggregation.metrics import InvalidMetricError, Metric
from stats_dashboard.serving.cache import InMemoryMetricCache
from stats_dashboard.serving.warmup import build_and_store, resolve_metrics, stale_metrics

DAY_MS = 24 * 3600 * 1000


class TestResolveMetrics:
    """Tests for metric selection"""

    def test_defaults_to_every_metric(self):
        assert resolve_metrics() == list(Metric)
        assert resolve_metrics([]) == list(Metric)

    def test_validates_tags(self):
        assert resolve_metrics(["cost", "revenue"]) == [Metric.COST, Metric.REVENUE]
        with pytest.raises(InvalidMetricError):
            resolve_metrics(["price"])


class TestStaleMetrics:
    """Tests for skipping metrics already built today"""

    @pytest.mark.asyncio
    async def test_skips_fresh_entries(self, now_ms):
        cache = InMemoryMetricCache()
        await cache.put(Metric.COST, {}, now_ms - 3600 * 1000)
        await cache.put(Metric.ORDERS, {}, now_ms - DAY_MS)

        stale = await stale_metrics(cache, list(Metric), now_ms)

        assert Metric.COST not in stale
        assert Metric.ORDERS in stale
        assert len(stale) == 4

    @pytest.mark.asyncio
    async def test_force_rebuilds_everything(self, now_ms):
        cache = InMemoryMetricCache()
        await cache.put(Metric.COST, {}, now_ms)

        assert await stale_metrics(cache, [Metric.COST], now_ms, force=True) == [Metric.COST]


class TestBuildAndStore:
    """Tests for building a tree off the event loop"""

    @pytest.mark.asyncio
    async def test_builds_and_caches(self, sample_products, now_ms, today):
        cache = InMemoryMetricCache()

        result = await build_and_store(sample_products, Metric.BUYOUTS, cache, now_ms)

        expected = compute_metric_tree(sample_products, Metric.BUYOUTS, today)
        assert result["metric"] == "buyouts"
        assert result["nodes"] == len(expected)
        assert result["cached"] is True
        assert await cache.get(Metric.BUYOUTS) == expected
        assert await cache.get_timestamp(Metric.BUYOUTS) == now_ms
