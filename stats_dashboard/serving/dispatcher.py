"""
Aggregation Service

Owns the background executor and the metric cache, and turns metric
selections into trees:

- Explicit lifecycle: CREATED -> RUNNING -> DISPOSED
- Every selection gets a generation token; a result is installed only if its
  token is still the one the caller wants, stale results are dropped
- Strictly sequential queue: the selected metric first, then (prefetch) the
  other metrics without a fresh cache entry. One metric is computed and
  persisted before the next starts, so a single worker holds at most one
  product batch and one tree at a time
- In-flight computations are never aborted; a newer selection only reorders
  what has not started yet
"""

import asyncio
import time
from collections import defaultdict
from concurrent.futures import BrokenExecutor, Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import structlog
from prometheus_client import Counter, Histogram

from stats_dashboard.aggregation.engine import WireTree, compute_metric_tree
from stats_dashboard.aggregation.metrics import Metric, parse_metric
from stats_dashboard.config import get_settings
from stats_dashboard.ingestion.records import ProductRecord
from .cache import MetricCache, is_fresh, load_fresh, now_ms

logger = structlog.get_logger(__name__)
settings = get_settings()

ProductSource = Callable[[], Awaitable[List[ProductRecord]]]


# =============================================================================
# METRICS
# =============================================================================

AGGREGATION_RUNS = Counter(
    "stats_aggregation_runs_total",
    "Total number of metric tree aggregations",
    ["metric", "status"],
)

AGGREGATION_TIME = Histogram(
    "stats_aggregation_seconds",
    "Time spent aggregating one metric tree",
    ["metric"],
)

CACHE_LOOKUPS = Counter(
    "stats_cache_lookups_total",
    "Metric tree cache lookups",
    ["metric", "result"],
)


# =============================================================================
# STATE
# =============================================================================

class ServiceState(str, Enum):
    """Aggregation service lifecycle"""
    CREATED = "created"
    RUNNING = "running"
    DISPOSED = "disposed"


class ServiceStateError(RuntimeError):
    """Operation not allowed in the service's current state"""
    pass


@dataclass(frozen=True)
class RequestToken:
    """Identifies one metric request; generations increase monotonically"""
    generation: int
    metric: Metric


class SupersededRequestError(Exception):
    """A newer request replaced this one before its result arrived"""

    def __init__(self, token: RequestToken, current: Optional[RequestToken]):
        self.token = token
        self.current = current
        super().__init__(
            f"Request {token.generation} for {token.metric.value!r} was superseded"
            + (f" by request {current.generation} for {current.metric.value!r}" if current else "")
        )


def create_executor(kind: Optional[str] = None) -> Executor:
    """Single-worker executor; one aggregation at a time bounds peak memory"""
    kind = kind or settings.aggregation.executor
    if kind == "thread":
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="aggregation")
    return ProcessPoolExecutor(max_workers=1)


# =============================================================================
# SERVICE
# =============================================================================

class AggregationService:
    """
    Metric selection, background aggregation and caching.

    Example:
        service = AggregationService(cache, client.fetch_products)
        await service.start()
        tree = await service.select_metric("revenue")
        await service.dispose()
    """

    def __init__(
        self,
        cache: MetricCache,
        product_source: ProductSource,
        executor: Optional[Executor] = None,
        prefetch: Optional[bool] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.cache = cache
        self.product_source = product_source
        self.prefetch = settings.aggregation.prefetch if prefetch is None else prefetch
        self._executor = executor
        self._owns_executor = executor is None
        self._clock = clock

        self.state = ServiceState.CREATED
        self.current_metric: Optional[Metric] = None
        self.current_tree: Optional[WireTree] = None
        self._accepted_at: Optional[int] = None

        self._generation = 0
        self._desired: Optional[RequestToken] = None
        self._queue: List[Metric] = []
        self._in_flight: Optional[Metric] = None
        self._waiters: Dict[Metric, List[asyncio.Future]] = defaultdict(list)
        self._drain_task: Optional[asyncio.Task] = None
        self._products: Optional[List[ProductRecord]] = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Create the executor and accept requests"""
        if self.state != ServiceState.CREATED:
            raise ServiceStateError(f"Cannot start a {self.state.value} service")
        if self._executor is None:
            self._executor = create_executor()
        self.state = ServiceState.RUNNING
        logger.info(
            "Aggregation service started",
            executor=type(self._executor).__name__,
            prefetch=self.prefetch,
        )

    async def dispose(self) -> None:
        """Stop accepting requests, drop the queue and release the executor"""
        if self.state == ServiceState.DISPOSED:
            return
        self.state = ServiceState.DISPOSED
        self._queue.clear()

        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass

        self._reject_all(ServiceStateError("Aggregation service disposed"))

        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
        self._products = None
        logger.info("Aggregation service disposed")

    def _require_running(self) -> None:
        if self.state != ServiceState.RUNNING:
            raise ServiceStateError(f"Aggregation service is {self.state.value}")

    # -- request tokens ------------------------------------------------------

    def issue_token(self, metric: Metric) -> RequestToken:
        """Start a new request; it becomes the one whose result is wanted"""
        self._generation += 1
        token = RequestToken(generation=self._generation, metric=metric)
        self._desired = token
        return token

    def is_current(self, token: RequestToken) -> bool:
        return self._desired == token

    def accept_result(self, token: RequestToken, tree: WireTree) -> bool:
        """Install a result if its request is still current; drop it otherwise"""
        if not self.is_current(token):
            logger.info(
                "Discarding superseded result",
                metric=token.metric.value,
                generation=token.generation,
                current_generation=self._desired.generation if self._desired else None,
            )
            return False
        self.current_metric = token.metric
        self.current_tree = tree
        self._accepted_at = self._clock()
        return True

    # -- selection -----------------------------------------------------------

    async def select_metric(self, metric: Union[str, Metric]) -> WireTree:
        """
        Select a metric and get its tree.

        Served from cache when built today (UTC); otherwise computed in the
        background queue ahead of any prefetch work.

        Raises:
            InvalidMetricError: unknown metric (nothing is queued)
            SupersededRequestError: a newer selection arrived first
            ServiceStateError: service not running
        """
        self._require_running()
        metric = parse_metric(metric)
        token = self.issue_token(metric)

        tree = await self._read_cache(metric)
        if tree is None:
            tree = await self._wait_for(metric)

        if not self.accept_result(token, tree):
            raise SupersededRequestError(token, self._desired)
        return tree

    async def get_tree(self, metric: Union[str, Metric]) -> WireTree:
        """
        Tree of a metric for paging.

        Reuses the installed tree when it belongs to this metric and was
        installed today (UTC), so paging through one selection does not
        issue new requests; otherwise selects the metric.
        """
        self._require_running()
        metric = parse_metric(metric)
        if (
            self.current_metric == metric
            and self.current_tree is not None
            and is_fresh(self._accepted_at, self._clock())
        ):
            return self.current_tree
        return await self.select_metric(metric)

    async def _read_cache(self, metric: Metric) -> Optional[WireTree]:
        try:
            tree = await load_fresh(self.cache, metric, self._clock())
        except Exception as e:
            logger.warning("Cache lookup failed", metric=metric.value, error=str(e))
            tree = None
        CACHE_LOOKUPS.labels(metric=metric.value, result="hit" if tree is not None else "miss").inc()
        return tree

    async def _is_cached_today(self, metric: Metric) -> bool:
        try:
            return is_fresh(await self.cache.get_timestamp(metric), self._clock())
        except Exception as e:
            logger.warning("Cache timestamp lookup failed", metric=metric.value, error=str(e))
            return False

    async def _wait_for(self, metric: Metric) -> WireTree:
        future = asyncio.get_running_loop().create_future()
        self._waiters[metric].append(future)
        await self._schedule(metric)
        return await future

    async def _schedule(self, selected: Metric) -> None:
        """Rebuild the queue around the selected metric"""
        queue = [selected]
        queue += [m for m in self._waiters if m not in queue and self._waiters[m]]
        if self.prefetch:
            for metric in Metric:
                if metric not in queue and not await self._is_cached_today(metric):
                    queue.append(metric)

        # already running; its waiters are resolved when it finishes
        self._queue = [m for m in queue if m != self._in_flight]
        logger.info(
            "Metric queue scheduled",
            selected=selected.value,
            in_flight=self._in_flight.value if self._in_flight else None,
            queue=[m.value for m in self._queue],
        )

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain())

    # -- background queue ----------------------------------------------------

    async def _drain(self) -> None:
        try:
            while self._queue and self.state == ServiceState.RUNNING:
                metric = self._queue.pop(0)
                self._in_flight = metric

                try:
                    products = await self._snapshot()
                except Exception as e:
                    logger.error("Failed to load products", error=str(e))
                    self._queue.clear()
                    self._in_flight = None
                    self._reject_all(e)
                    break

                try:
                    tree = await self._compute(products, metric)
                except Exception as e:
                    logger.error("Aggregation failed", metric=metric.value, error=str(e), exc_info=True)
                    self._in_flight = None
                    self._reject(metric, e)
                    continue

                await self._persist(metric, tree)
                self._in_flight = None
                self._resolve(metric, tree)
        finally:
            self._in_flight = None
            if not self._queue:
                # the batch is only needed while metrics are pending
                self._products = None
                logger.info("Metric queue drained")

    async def _snapshot(self) -> List[ProductRecord]:
        if self._products is None:
            self._products = await self.product_source()
            logger.info("Product snapshot loaded", products=len(self._products))
        return self._products

    def _today(self) -> datetime:
        return datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc)

    async def _compute(self, products: List[ProductRecord], metric: Metric) -> WireTree:
        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        try:
            tree = await loop.run_in_executor(
                self._executor, compute_metric_tree, products, metric, self._today()
            )
        except BrokenExecutor:
            AGGREGATION_RUNS.labels(metric=metric.value, status="crashed").inc()
            if self._owns_executor and self.state == ServiceState.RUNNING:
                logger.warning("Aggregation worker crashed, replacing executor", metric=metric.value)
                self._executor = create_executor()
            raise
        except Exception:
            AGGREGATION_RUNS.labels(metric=metric.value, status="failed").inc()
            raise

        duration = time.perf_counter() - started
        AGGREGATION_TIME.labels(metric=metric.value).observe(duration)
        AGGREGATION_RUNS.labels(metric=metric.value, status="success").inc()
        logger.info("Metric tree computed", metric=metric.value, nodes=len(tree), duration_s=round(duration, 3))
        return tree

    async def _persist(self, metric: Metric, tree: WireTree) -> None:
        try:
            stored = await self.cache.put(metric, tree, self._clock())
        except Exception as e:
            logger.warning("Cache write failed", metric=metric.value, error=str(e))
            stored = False
        if not stored:
            logger.warning("Metric tree not cached", metric=metric.value)

    def _resolve(self, metric: Metric, tree: WireTree) -> None:
        for future in self._waiters.pop(metric, []):
            if not future.done():
                future.set_result(tree)

    def _reject(self, metric: Metric, error: BaseException) -> None:
        for future in self._waiters.pop(metric, []):
            if not future.done():
                future.set_exception(error)

    def _reject_all(self, error: BaseException) -> None:
        for metric in list(self._waiters):
            self._reject(metric, error)

    # -- introspection -------------------------------------------------------

    async def join(self) -> None:
        """Wait until the background queue is empty"""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "current_metric": self.current_metric.value if self.current_metric else None,
            "in_flight": self._in_flight.value if self._in_flight else None,
            "queue": [m.value for m in self._queue],
            "generation": self._generation,
        }
