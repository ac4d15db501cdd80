"""
Logical Metrics

The fixed set of metrics the dashboard can aggregate. Callers must go
through parse_metric before any aggregation work starts.
"""

from enum import Enum
from typing import Union


class InvalidMetricError(ValueError):
    """Requested metric tag is not one of the supported metrics"""

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"Unknown metric {value!r}; expected one of: {[m.value for m in Metric]}"
        )


class Metric(str, Enum):
    """Supported metrics"""
    COST = "cost"
    ORDERS = "orders"
    RETURNS = "returns"
    REVENUE = "revenue"
    BUYOUTS = "buyouts"

    @property
    def is_additive(self) -> bool:
        """Whether a parent's value is the sum of its children's values"""
        return self not in NON_ADDITIVE_METRICS

    @property
    def label(self) -> str:
        return METRIC_LABELS[self]


# An average price cannot be summed across products
NON_ADDITIVE_METRICS = frozenset({Metric.COST})

METRIC_LABELS = {
    Metric.COST: "Cost",
    Metric.ORDERS: "Orders",
    Metric.RETURNS: "Returns",
    Metric.REVENUE: "Revenue",
    Metric.BUYOUTS: "Buyouts",
}


def parse_metric(value: Union[str, Metric]) -> Metric:
    """
    Validate a metric tag.

    Raises:
        InvalidMetricError: if the value is not a supported metric
    """
    if isinstance(value, Metric):
        return value
    try:
        return Metric(value)
    except ValueError:
        raise InvalidMetricError(value) from None
