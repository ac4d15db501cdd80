"""
Rollup Strategies

How child series combine into a parent series, and how a node's per-day
series reduces to its sum and average.

- AdditiveRollup: parent slot = sum of the defined child slots.
- WeightedRollup: parent slot = weighted mean of the defined child slots,
  weighted by the number of leaf-days behind each child slot ("cell count").
  Used for metrics whose values are averages (price), where summing across
  products is meaningless.

In both strategies a slot is "no data" (NaN) exactly when nothing defined
was folded into it. Divisions by an empty count give "no data".
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .metrics import Metric
from .window import WINDOW_DAYS, DayWindow

Summary = Tuple[Optional[float], Optional[float]]


def _zeros() -> np.ndarray:
    return np.zeros(WINDOW_DAYS)


@dataclass
class RollupAccumulator:
    """Running per-day totals and weights of one parent node"""
    totals: np.ndarray = field(default_factory=_zeros)
    weights: np.ndarray = field(default_factory=_zeros)


class RollupStrategy(ABC):
    """Abstract base class for rollup strategies"""

    def new_accumulator(self) -> RollupAccumulator:
        return RollupAccumulator()

    @abstractmethod
    def leaf_weights(self, series: np.ndarray) -> Optional[np.ndarray]:
        """Cell count of a leaf series, or None if not tracked"""

    @abstractmethod
    def fold(
        self,
        acc: RollupAccumulator,
        series: np.ndarray,
        weights: Optional[np.ndarray],
    ) -> None:
        """Fold one child's series into a parent accumulator"""

    @abstractmethod
    def finalize_series(
        self, acc: RollupAccumulator
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Per-day metric data and cell count of a fully accumulated parent"""

    @abstractmethod
    def summarize(
        self, metric_data: np.ndarray, cell_count: Optional[np.ndarray]
    ) -> Summary:
        """(sum, average) of an internal node"""

    @abstractmethod
    def summarize_leaf(self, series: np.ndarray, window: DayWindow) -> Summary:
        """(sum, average) of an article node"""


class AdditiveRollup(RollupStrategy):
    """Sum-then-divide rollup for counts and money totals"""

    def leaf_weights(self, series: np.ndarray) -> Optional[np.ndarray]:
        return None

    def fold(self, acc, series, weights):
        defined = ~np.isnan(series)
        acc.totals += np.where(defined, series, 0.0)
        acc.weights += defined

    def finalize_series(self, acc):
        return np.where(acc.weights > 0, acc.totals, np.nan), None

    def summarize(self, metric_data, cell_count):
        defined = ~np.isnan(metric_data)
        days = int(defined.sum())
        if days == 0:
            return None, None
        total = float(metric_data[defined].sum())
        return total, total / days

    def summarize_leaf(self, series, window):
        # Average per day in range, not per day that happens to have data
        defined = ~np.isnan(series)
        if not defined.any() or window.elements_to_take == 0:
            return None, None
        total = float(series[defined].sum())
        return total, total / window.elements_to_take


class WeightedRollup(RollupStrategy):
    """Weighted-average-of-averages rollup for non-additive metrics"""

    def leaf_weights(self, series: np.ndarray) -> Optional[np.ndarray]:
        # Absent, not zero-weight
        return np.where(np.isnan(series), np.nan, 1.0)

    def fold(self, acc, series, weights):
        defined = ~np.isnan(series) & ~np.isnan(weights) & (np.nan_to_num(weights) > 0)
        acc.totals += np.where(defined, series * weights, 0.0)
        acc.weights += np.where(defined, weights, 0.0)

    def finalize_series(self, acc):
        has_data = acc.weights > 0
        metric_data = np.divide(
            acc.totals,
            acc.weights,
            out=np.full(WINDOW_DAYS, np.nan),
            where=has_data,
        )
        cell_count = np.where(has_data, acc.weights, np.nan)
        return metric_data, cell_count

    def summarize(self, metric_data, cell_count):
        defined = ~np.isnan(metric_data) & ~np.isnan(cell_count)
        total_weight = float(cell_count[defined].sum())
        if total_weight == 0:
            return None, None
        weighted_sum = float((metric_data[defined] * cell_count[defined]).sum())
        return None, weighted_sum / total_weight

    def summarize_leaf(self, series, window):
        return self.summarize(series, self.leaf_weights(series))


_ADDITIVE = AdditiveRollup()
_WEIGHTED = WeightedRollup()


def strategy_for(metric: Metric) -> RollupStrategy:
    """Rollup strategy for a metric"""
    return _ADDITIVE if metric.is_additive else _WEIGHTED
