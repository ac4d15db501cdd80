"""
Metric Projector

Derives the per-day series of a logical metric from a product's padded raw
series. NaN marks "no data" and propagates through the arithmetic, so a
derived value is only defined where every operand is.
"""

from typing import TYPE_CHECKING, Optional

import numpy as np

from .metrics import InvalidMetricError, Metric
from .window import DateLike, DayWindow, pad_series, resolve

if TYPE_CHECKING:
    from stats_dashboard.ingestion.records import ProductRecord


def project(
    cost: np.ndarray,
    orders: np.ndarray,
    returns: np.ndarray,
    metric: Metric,
) -> np.ndarray:
    """
    Project padded raw series onto a metric.

    buyouts = orders - returns
    revenue = cost * (orders - returns)
    """
    if metric == Metric.COST:
        return cost.copy()
    if metric == Metric.ORDERS:
        return orders.copy()
    if metric == Metric.RETURNS:
        return returns.copy()
    if metric == Metric.BUYOUTS:
        return orders - returns
    if metric == Metric.REVENUE:
        return cost * (orders - returns)
    raise InvalidMetricError(metric)


def project_product(
    product: "ProductRecord",
    metric: Metric,
    today: Optional[DateLike] = None,
    window: Optional[DayWindow] = None,
) -> np.ndarray:
    """Resolve, pad and project one product's series"""
    window = window or resolve(product, today)
    return project(
        pad_series(product.cost, window),
        pad_series(product.orders, window),
        pad_series(product.returns, window),
        metric,
    )
