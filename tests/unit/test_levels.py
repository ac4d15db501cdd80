"""
Unit Tests - Hierarchy Levels and Metrics
"""
import pytest

from stats_dashboard.aggregation.levels import (
    Level,
    create_node_id,
    level_of,
    name_from_node_id,
    parent_id,
)
from stats_dashboard.aggregation.metrics import (
    InvalidMetricError,
    Metric,
    parse_metric,
)


class TestNodeIds:
    """Tests for node id construction and level derivation"""

    def test_create_node_id_joins_present_segments(self):
        assert create_node_id("acme") == "acme"
        assert create_node_id("acme", "zeta") == "acme:zeta"
        assert create_node_id("acme", "zeta", "shoes", "a1") == "acme:zeta:shoes:a1"

    @pytest.mark.parametrize("node_id,level", [
        ("acme", Level.SUPPLIER),
        ("acme:zeta", Level.BRAND),
        ("acme:zeta:shoes", Level.TYPE),
        ("acme:zeta:shoes:a1", Level.ARTICLE),
    ])
    def test_level_from_separator_count(self, node_id, level):
        assert level_of(node_id) == level

    def test_too_many_segments_rejected(self):
        with pytest.raises(ValueError):
            level_of("a:b:c:d:e")

    def test_parent_id(self):
        assert parent_id("acme:zeta:shoes:a1") == "acme:zeta:shoes"
        assert parent_id("acme:zeta") == "acme"
        assert parent_id("acme") is None

    def test_name_is_own_segment_by_default(self):
        assert name_from_node_id("acme:zeta:shoes") == "shoes"
        assert name_from_node_id("acme") == "acme"

    def test_name_at_ancestor_level(self):
        assert name_from_node_id("acme:zeta:shoes:a1", Level.BRAND) == "zeta"
        assert name_from_node_id("acme:zeta", Level.ARTICLE) == ""


class TestMetrics:
    """Tests for metric parsing"""

    def test_parse_known_metrics(self):
        assert parse_metric("revenue") == Metric.REVENUE
        assert parse_metric(Metric.COST) is Metric.COST

    @pytest.mark.parametrize("value", ["price", "", "COST", None])
    def test_unknown_metric_rejected(self, value):
        with pytest.raises(InvalidMetricError) as exc_info:
            parse_metric(value)
        assert exc_info.value.value == value

    def test_only_cost_is_non_additive(self):
        assert not Metric.COST.is_additive
        assert all(m.is_additive for m in Metric if m != Metric.COST)

    def test_invalid_metric_is_value_error(self):
        assert issubclass(InvalidMetricError, ValueError)
