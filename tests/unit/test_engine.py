"""
Unit Tests - Hierarchical Aggregation
"""
import math

import numpy as np
import pytest

from stats_dashboard.aggregation.engine import aggregate, compute_metric_tree, tree_to_wire
from stats_dashboard.aggregation.levels import Level, level_of
from stats_dashboard.aggregation.metrics import InvalidMetricError, Metric
from stats_dashboard.aggregation.rollup import AdditiveRollup, WeightedRollup, strategy_for


def _children_values(tree, node, day):
    values = [tree[child_id]["metricData"][day] for child_id in node["childIds"]]
    return [v for v in values if v is not None]


class TestConcreteScenarios:
    """Hand-checked aggregation results"""

    def test_revenue_formula_totals(self, make_product, today):
        """cost step 0.25/day, cyclic orders and returns over 30 days"""
        product = make_product(
            cost=[150.50 + 0.25 * i for i in range(30)],
            orders=[20.0 + i % 10 for i in range(30)],
            returns=[5.0 + i % 8 for i in range(30)],
        )
        tree = tree_to_wire(aggregate([product], "revenue", today))

        for node_id in ("acme", "acme:zeta", "acme:zeta:shoes", "acme:zeta:shoes:a1"):
            assert tree[node_id]["sum"] == pytest.approx(74948.75)
            assert tree[node_id]["average"] == pytest.approx(2498.2917, abs=1e-3)

    def test_single_fresh_cost_product(self, make_product, today):
        tree = tree_to_wire(aggregate([make_product(cost=[100.0] * 30)], Metric.COST, today))

        assert tree["acme"]["average"] == 100.0
        assert tree["acme"]["sum"] is None
        assert tree["acme"]["metricData"] == [100.0] * 30

    def test_stale_product_is_no_data_not_zero(self, make_product, today):
        tree = tree_to_wire(aggregate([make_product(days_ago=31)], Metric.COST, today))

        for node in tree.values():
            assert node["metricData"] == [None] * 30
            assert node["average"] is None
            assert node["sum"] is None

    def test_stale_product_additive(self, make_product, today):
        tree = tree_to_wire(aggregate([make_product(days_ago=31)], Metric.ORDERS, today))

        assert tree["acme"]["metricData"] == [None] * 30
        assert tree["acme"]["sum"] is None
        assert tree["acme"]["average"] is None

    def test_mixed_staleness_weighted_by_valid_days(self, make_product, today):
        products = [
            make_product(article="a1", days_ago=10, cost=[50.0] * 30),
            make_product(brand="kappa", article="a2", days_ago=25, cost=[100.0] * 30),
        ]
        tree = tree_to_wire(aggregate(products, Metric.COST, today))

        # (50 x 20 + 100 x 5) / (20 + 5)
        assert tree["acme"]["average"] == pytest.approx(60.0)

    def test_mixed_staleness_within_one_type(self, make_product, today):
        products = [
            make_product(article="a1", days_ago=10, cost=[50.0] * 30),
            make_product(article="a2", days_ago=25, cost=[100.0] * 30),
        ]
        tree = tree_to_wire(aggregate(products, Metric.COST, today))

        shoes = tree["acme:zeta:shoes"]
        assert shoes["metricData"][10] == 50.0
        assert shoes["metricData"][25] == pytest.approx(75.0)
        assert tree["acme"]["average"] == pytest.approx(60.0)


class TestRollupInvariants:
    """Properties that hold for any product batch"""

    @pytest.mark.parametrize("metric", ["orders", "returns", "buyouts", "revenue"])
    def test_additive_parent_is_sum_of_defined_children(self, sample_products, today, metric):
        tree = compute_metric_tree(sample_products, metric, today)

        for node_id, node in tree.items():
            if level_of(node_id) == Level.ARTICLE:
                continue
            for day in range(30):
                defined = _children_values(tree, node, day)
                if defined:
                    assert node["metricData"][day] == pytest.approx(sum(defined))
                else:
                    assert node["metricData"][day] is None

    def test_cost_type_is_mean_of_defined_articles(self, sample_products, today):
        tree = compute_metric_tree(sample_products, Metric.COST, today)

        for node_id, node in tree.items():
            if level_of(node_id) != Level.TYPE:
                continue
            for day in range(30):
                defined = _children_values(tree, node, day)
                if defined:
                    assert node["metricData"][day] == pytest.approx(sum(defined) / len(defined))
                else:
                    assert node["metricData"][day] is None

    def test_cost_brand_weighted_by_articles_per_type(self, make_product, today):
        products = [
            make_product(article="a1", cost=[10.0] * 30),
            make_product(article="a2", cost=[20.0] * 30),
            make_product(type="boots", article="a3", cost=[40.0] * 30),
        ]
        tree = compute_metric_tree(products, Metric.COST, today)

        assert tree["acme:zeta:shoes"]["metricData"][0] == pytest.approx(15.0)
        assert tree["acme:zeta:boots"]["metricData"][0] == pytest.approx(40.0)
        # (15 x 2 + 40 x 1) / 3, not the plain mean of the two types
        for day in range(30):
            assert tree["acme:zeta"]["metricData"][day] == pytest.approx(70 / 3)
            assert tree["acme"]["metricData"][day] == pytest.approx(70 / 3)
        assert tree["acme"]["average"] == pytest.approx(70 / 3)

    def test_cost_upper_levels_are_mean_of_descendant_articles(self, sample_products, today):
        tree = compute_metric_tree(sample_products, Metric.COST, today)

        for node_id, node in tree.items():
            if level_of(node_id) not in (Level.BRAND, Level.SUPPLIER):
                continue
            articles = [
                tree[article_id] for article_id in tree
                if article_id.startswith(node_id + ":") and level_of(article_id) == Level.ARTICLE
            ]
            for day in range(30):
                defined = [a["metricData"][day] for a in articles if a["metricData"][day] is not None]
                if defined:
                    assert node["metricData"][day] == pytest.approx(sum(defined) / len(defined))
                else:
                    assert node["metricData"][day] is None

    def test_no_nan_or_inf_on_the_wire(self, sample_products, today):
        for metric in Metric:
            for node in compute_metric_tree(sample_products, metric, today).values():
                for value in node["metricData"] + [node["sum"], node["average"]]:
                    assert value is None or math.isfinite(value)

    def test_idempotent(self, sample_products, today):
        first = compute_metric_tree(sample_products, Metric.REVENUE, today)
        second = compute_metric_tree(sample_products, Metric.REVENUE, today)

        assert first == second

    def test_non_additive_sum_is_absent(self, sample_products, today):
        tree = compute_metric_tree(sample_products, Metric.COST, today)

        assert all(node["sum"] is None for node in tree.values())

    def test_cell_count_not_exposed(self, sample_products, today):
        nodes = aggregate(sample_products, Metric.COST, today)

        assert all(node.cell_count is None for node in nodes.values())
        assert all("cellCount" not in node.to_dict() for node in nodes.values())


class TestTreeShape:
    """Tests for node creation and child links"""

    def test_every_level_present(self, sample_products, today):
        tree = compute_metric_tree(sample_products, Metric.ORDERS, today)

        assert tree["acme"]["childIds"] == ["acme:zeta", "acme:kappa"]
        assert tree["acme:zeta"]["childIds"] == ["acme:zeta:shoes", "acme:zeta:boots"]
        assert tree["acme:zeta:shoes"]["childIds"] == ["acme:zeta:shoes:a1", "acme:zeta:shoes:a2"]
        assert tree["acme:zeta:shoes:a1"]["childIds"] == []
        assert sum(1 for node_id in tree if level_of(node_id) == Level.ARTICLE) == 6

    def test_stale_articles_kept_in_tree(self, sample_products, today):
        tree = compute_metric_tree(sample_products, Metric.ORDERS, today)

        assert tree["globex:omega:lamps:b2"]["metricData"] == [None] * 30

    def test_duplicate_identity_first_wins(self, make_product, today):
        products = [
            make_product(orders=[1.0] * 30, returns=[0.0] * 30),
            make_product(orders=[9.0] * 30, returns=[0.0] * 30),
        ]
        tree = compute_metric_tree(products, Metric.ORDERS, today)

        assert tree["acme:zeta:shoes"]["childIds"] == ["acme:zeta:shoes:a1"]
        assert tree["acme"]["sum"] == 30.0

    def test_empty_batch(self, today):
        assert compute_metric_tree([], Metric.ORDERS, today) == {}

    def test_invalid_metric_before_any_work(self, sample_products, today):
        consumed = []

        def products():
            for product in sample_products:
                consumed.append(product)
                yield product

        with pytest.raises(InvalidMetricError):
            aggregate(products(), "price", today)
        assert consumed == []


class TestLeafStatistics:
    """Tests for article sums and averages"""

    def test_window_shift(self, make_product, today):
        tree = compute_metric_tree(
            [make_product(days_ago=10, orders=[1.0] * 30)], Metric.ORDERS, today
        )
        article = tree["acme:zeta:shoes:a1"]

        assert article["metricData"][:10] == [None] * 10
        assert article["metricData"][10:] == [1.0] * 20
        assert article["sum"] == 20.0
        assert article["average"] == 1.0

    def test_additive_leaf_average_over_days_in_range(self, make_product, today):
        tree = compute_metric_tree(
            [make_product(orders=[4.0] + [None] * 29)], Metric.ORDERS, today
        )

        assert tree["acme:zeta:shoes:a1"]["average"] == pytest.approx(4.0 / 30)
        # internal nodes average over days with data
        assert tree["acme:zeta:shoes"]["average"] == 4.0

    def test_buyouts_undefined_where_returns_missing(self, make_product, today):
        tree = compute_metric_tree(
            [make_product(orders=[5.0, 5.0] + [5.0] * 28, returns=[1.0, None] + [1.0] * 28)],
            Metric.BUYOUTS,
            today,
        )
        data = tree["acme:zeta:shoes:a1"]["metricData"]

        assert data[0] == 4.0
        assert data[1] is None


class TestRollupStrategies:
    """Tests for strategy selection and weighted folding"""

    def test_strategy_for_metric(self):
        assert isinstance(strategy_for(Metric.COST), WeightedRollup)
        assert isinstance(strategy_for(Metric.REVENUE), AdditiveRollup)

    def test_weighted_fold_uses_cell_counts(self):
        strategy = WeightedRollup()
        acc = strategy.new_accumulator()
        strategy.fold(acc, np.full(30, 50.0), np.full(30, 3.0))
        strategy.fold(acc, np.full(30, 100.0), np.full(30, 1.0))

        metric_data, cell_count = strategy.finalize_series(acc)

        assert metric_data[0] == pytest.approx(62.5)
        assert cell_count[0] == 4.0

    def test_weighted_empty_slots_have_no_weight(self):
        strategy = WeightedRollup()
        acc = strategy.new_accumulator()
        series = np.full(30, np.nan)
        strategy.fold(acc, series, strategy.leaf_weights(series))

        metric_data, cell_count = strategy.finalize_series(acc)

        assert np.isnan(metric_data).all()
        assert np.isnan(cell_count).all()
        assert strategy.summarize(metric_data, cell_count) == (None, None)
