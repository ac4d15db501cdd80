"""
Metric Tree Cache

Day-granularity cache of aggregated trees, one entry per metric:
- Redis store with namespaced keys and JSON serialization
- In-process store with the same contract
- UTC calendar-day freshness check

Cache failures never block a result: a failed read is a miss and a failed
write just leaves the metric uncached.
"""

import json
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import structlog
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from stats_dashboard.aggregation.engine import WireTree
from stats_dashboard.aggregation.metrics import Metric
from stats_dashboard.config import get_settings

logger = structlog.get_logger(__name__)


def now_ms() -> int:
    """Current epoch time in milliseconds"""
    return int(time.time() * 1000)


def utc_day_of(timestamp_ms: int) -> str:
    """UTC calendar date (YYYY-MM-DD) of an epoch-millis timestamp"""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


def is_same_utc_day(timestamp1: int, timestamp2: int) -> bool:
    """Whether two epoch-millis timestamps fall on the same UTC calendar day"""
    return utc_day_of(timestamp1) == utc_day_of(timestamp2)


def is_fresh(timestamp: Optional[int], now: Optional[int] = None) -> bool:
    """A cache entry is fresh only on the UTC day it was built"""
    if not timestamp:
        return False
    return is_same_utc_day(timestamp, now if now is not None else now_ms())


class MetricCache(ABC):
    """Cache store contract, keyed by metric"""

    @abstractmethod
    async def get(self, metric: Metric) -> Optional[WireTree]:
        """Cached tree, or None"""

    @abstractmethod
    async def get_timestamp(self, metric: Metric) -> Optional[int]:
        """Build timestamp (epoch millis) of the cached tree, or None"""

    @abstractmethod
    async def put(self, metric: Metric, tree: WireTree, timestamp: int) -> bool:
        """Store a tree with its build timestamp; True if persisted"""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


async def load_fresh(cache: MetricCache, metric: Metric, now: Optional[int] = None) -> Optional[WireTree]:
    """Cached tree for a metric if it was built today (UTC), else None"""
    timestamp = await cache.get_timestamp(metric)
    if not is_fresh(timestamp, now):
        logger.debug("Cache missing or stale", metric=metric.value, timestamp=timestamp)
        return None
    return await cache.get(metric)


class InMemoryMetricCache(MetricCache):
    """
    Process-local metric cache.

    Used when Redis is unreachable and in tests.
    """

    def __init__(self):
        self._entries: Dict[Metric, Tuple[WireTree, int]] = {}

    async def get(self, metric: Metric) -> Optional[WireTree]:
        entry = self._entries.get(metric)
        return entry[0] if entry else None

    async def get_timestamp(self, metric: Metric) -> Optional[int]:
        entry = self._entries.get(metric)
        return entry[1] if entry else None

    async def put(self, metric: Metric, tree: WireTree, timestamp: int) -> bool:
        self._entries[metric] = (tree, timestamp)
        return True


class RedisMetricCache(MetricCache):
    """
    Redis-backed metric cache.

    Example:
        cache = RedisMetricCache(create_redis_client())
        await cache.put(Metric.COST, tree, now_ms())
        tree = await cache.get(Metric.COST)
    """

    def __init__(self, client: Redis, namespace: Optional[str] = None):
        self.client = client
        self.namespace = namespace or get_settings().redis.namespace

    def _tree_key(self, metric: Metric) -> str:
        return f"{self.namespace}:tree:{metric.value}"

    def _timestamp_key(self, metric: Metric) -> str:
        return f"{self.namespace}:timestamp:{metric.value}"

    async def get(self, metric: Metric) -> Optional[WireTree]:
        try:
            value = await self.client.get(self._tree_key(metric))
        except RedisError as e:
            logger.warning("Cache read failed", metric=metric.value, error=str(e))
            return None

        if value is None:
            return None

        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("Cached tree is not valid JSON", metric=metric.value, error=str(e))
            return None

    async def get_timestamp(self, metric: Metric) -> Optional[int]:
        try:
            value = await self.client.get(self._timestamp_key(metric))
        except RedisError as e:
            logger.warning("Cache timestamp read failed", metric=metric.value, error=str(e))
            return None

        if value is None:
            return None

        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Cached timestamp is malformed", metric=metric.value, value=value)
            return None

    async def put(self, metric: Metric, tree: WireTree, timestamp: int) -> bool:
        try:
            serialized = json.dumps(tree)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize tree for cache", metric=metric.value, error=str(e))
            return False

        try:
            # tree and timestamp land together or not at all
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(self._tree_key(metric), serialized)
                pipe.set(self._timestamp_key(metric), str(timestamp))
                await pipe.execute()
        except RedisError as e:
            logger.warning("Cache write failed", metric=metric.value, error=str(e))
            return False

        logger.info("Metric tree cached", metric=metric.value, nodes=len(tree), bytes=len(serialized))
        return True

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis connection closed")


def create_redis_client() -> Redis:
    """Redis client over a connection pool built from settings"""
    redis_settings = get_settings().redis
    pool = ConnectionPool.from_url(
        redis_settings.get_url(),
        max_connections=redis_settings.max_connections,
        socket_timeout=redis_settings.socket_timeout,
        decode_responses=True,
    )
    return Redis(connection_pool=pool)


async def create_metric_cache() -> MetricCache:
    """Redis cache if reachable, otherwise the in-process cache"""
    client = create_redis_client()
    try:
        await client.ping()
        logger.info("Redis connection established")
        return RedisMetricCache(client)
    except (RedisError, OSError) as e:
        logger.warning("Redis unavailable, using in-memory cache", error=str(e))
        await client.aclose()
        return InMemoryMetricCache()
