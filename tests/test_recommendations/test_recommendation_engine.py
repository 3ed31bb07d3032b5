"""
Tests for stock_forecaster/recommendations/engine.py.

What we test
------------
get_stock_recommendations():
  - 15 on hand using 3/day gives High priority, 48 units, cost at 70%.
  - Only low-stock products are considered; empty store -> [].
  - Output is sorted most urgent first; ties keep low-stock order.
  - A failing analysis for one product yields an aggregate-only fallback
    for that product only.
  - An analysis that degraded to neutral values is also replaced by the
    aggregate-only fallback.
  - A failing low-stock query propagates StoreError.
  - Worker count does not change the result.
build_fallback_recommendation():
  - Quantity, restock date and cover rules; priority is always Critical.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from stock_forecaster.config import AppConfig, RecommendationConfig
from stock_forecaster.exceptions import StoreError
from stock_forecaster.forecasting.analyzer import TrendAnalyzer
from stock_forecaster.models.recommendation import RecommendationPriority as P
from stock_forecaster.models.transaction import TransactionType
from stock_forecaster.recommendations.engine import (
    RecommendationEngine,
    build_fallback_recommendation,
)
from stock_forecaster.recommendations.scorer import FALLBACK_REASON

OUT = TransactionType.STOCK_OUT


@pytest.fixture
def engine(store, app_config) -> RecommendationEngine:
    return RecommendationEngine(store, config=app_config)


@pytest.fixture
def mixed_inventory(make_product, seed_ledger):
    """Four products: one healthy, three low with different urgency."""
    healthy = make_product(name="Healthy", current_stock=40, minimum_stock=5, maximum_stock=50)
    fast = make_product(name="Fast", current_stock=15, minimum_stock=20, maximum_stock=200)
    seed_ledger(fast.product_id, [(day, OUT, 10, "sale") for day in range(1, 28, 3)])
    empty = make_product(name="Empty", current_stock=0, minimum_stock=5, maximum_stock=50)
    slow = make_product(name="Slow", current_stock=9, minimum_stock=10, maximum_stock=100)
    seed_ledger(slow.product_id, [(5, OUT, 3, "sale")])
    return {"healthy": healthy, "fast": fast, "empty": empty, "slow": slow}


class TestGetStockRecommendations:
    def test_fast_mover_is_high_priority(self, engine, mixed_inventory, now):
        recs = {r.product_name: r for r in engine.get_stock_recommendations(now=now)}
        fast = recs["Fast"]
        assert fast.priority is P.HIGH
        assert fast.days_until_stockout == 5
        assert fast.recommended_order_quantity == 48
        assert fast.estimated_cost == pytest.approx(336.0)
        assert fast.predicted_restock_date == now + timedelta(days=1)
        assert fast.reason == "Stockout expected in 5 days at a rate of 3.0 units/day."
        assert fast.is_fallback is False
        assert fast.category == "Hardware"
        assert (fast.current_stock, fast.minimum_stock) == (15, 20)

    def test_only_low_stock_products(self, engine, mixed_inventory, now):
        names = {r.product_name for r in engine.get_stock_recommendations(now=now)}
        assert names == {"Fast", "Empty", "Slow"}

    def test_sorted_most_urgent_first(self, engine, mixed_inventory, now):
        recs = engine.get_stock_recommendations(now=now)
        assert [r.product_name for r in recs] == ["Empty", "Fast", "Slow"]
        assert [r.priority for r in recs] == [P.CRITICAL, P.HIGH, P.MEDIUM]
        assert recs[0].reason.startswith("Out of stock")

    def test_ties_keep_low_stock_order(self, engine, make_product, now):
        # No history: default cover equals current stock, all within 7 days -> High.
        make_product(name="B", current_stock=4, minimum_stock=5, maximum_stock=50)
        make_product(name="A", current_stock=4, minimum_stock=5, maximum_stock=50)
        make_product(name="C", current_stock=3, minimum_stock=5, maximum_stock=50)
        recs = engine.get_stock_recommendations(now=now)
        assert [r.priority for r in recs] == [P.HIGH, P.HIGH, P.HIGH]
        assert [r.product_name for r in recs] == ["C", "A", "B"]

    def test_no_history_uses_default_usage(self, engine, make_product, now):
        make_product(name="Quiet", current_stock=3, minimum_stock=5, maximum_stock=50)
        (rec,) = engine.get_stock_recommendations(now=now)
        # Default usage 1.0 -> optimal 21, order 18.
        assert rec.recommended_order_quantity == 18
        assert rec.days_until_stockout == 3
        assert rec.is_fallback is False

    def test_empty_store(self, engine, now):
        assert engine.get_stock_recommendations(now=now) == []

    def test_failing_product_falls_back_alone(self, store, mixed_inventory, now, monkeypatch):
        analyzer = TrendAnalyzer(store)
        real = analyzer.analyze_stock_trends
        broken_id = mixed_inventory["slow"].product_id

        def flaky(product_id, *args, **kwargs):
            if product_id == broken_id:
                raise StoreError("list_product_transactions_in_range")
            return real(product_id, *args, **kwargs)

        monkeypatch.setattr(analyzer, "analyze_stock_trends", flaky)
        recs = RecommendationEngine(store, analyzer).get_stock_recommendations(now=now)

        by_name = {r.product_name: r for r in recs}
        slow = by_name["Slow"]
        assert slow.is_fallback is True
        assert slow.reason == FALLBACK_REASON
        assert slow.recommended_order_quantity == mixed_inventory["slow"].recommended_order_quantity()
        assert slow.predicted_restock_date == now + timedelta(days=7)
        assert slow.days_until_stockout == 30
        assert slow.priority is P.CRITICAL
        assert [r.product_name for r in recs] == ["Empty", "Slow", "Fast"]
        assert by_name["Fast"].is_fallback is False
        assert by_name["Empty"].is_fallback is False
        assert len(recs) == 3

    def test_degraded_analysis_uses_aggregate_fallback(
        self, engine, mixed_inventory, now, monkeypatch
    ):
        from stock_forecaster.forecasting import usage

        def boom(*args, **kwargs):
            raise ArithmeticError("bad")

        monkeypatch.setattr(usage, "build_daily_trends", boom)
        recs = {r.product_name: r for r in engine.get_stock_recommendations(now=now)}
        # Products with history hit the fault; "Empty" has none and is unaffected.
        assert recs["Fast"].is_fallback is True
        assert recs["Slow"].is_fallback is True
        assert recs["Empty"].is_fallback is False

    def test_low_stock_query_failure_propagates(self, engine, store, now):
        store.conn.close()
        with pytest.raises(StoreError):
            engine.get_stock_recommendations(now=now)

    def test_worker_count_does_not_change_result(self, store, mixed_inventory, now):
        single = RecommendationEngine(
            store, config=AppConfig(recommendations=RecommendationConfig(max_workers=1))
        ).get_stock_recommendations(now=now)
        many = RecommendationEngine(
            store, config=AppConfig(recommendations=RecommendationConfig(max_workers=8))
        ).get_stock_recommendations(now=now)
        assert single == many

    def test_cost_ratio_from_config(self, store, mixed_inventory, now):
        config = AppConfig(recommendations=RecommendationConfig(wholesale_cost_ratio=0.5))
        recs = RecommendationEngine(store, config=config).get_stock_recommendations(now=now)
        fast = next(r for r in recs if r.product_name == "Fast")
        assert fast.estimated_cost == pytest.approx(240.0)


class TestFallbackRecommendation:
    def test_out_of_stock_fallback_is_critical(self, make_product, now):
        product = make_product(current_stock=0, minimum_stock=5, maximum_stock=50)
        rec = build_fallback_recommendation(product, now)
        assert rec.days_until_stockout == 0
        assert rec.priority is P.CRITICAL
        assert rec.recommended_order_quantity == 38
        assert rec.estimated_cost == pytest.approx(266.0)
        assert rec.is_fallback is True

    def test_in_stock_fallback_uses_thirty_days(self, make_product, now):
        product = make_product(current_stock=4, minimum_stock=5, maximum_stock=50)
        rec = build_fallback_recommendation(product, now)
        assert rec.days_until_stockout == 30
        assert rec.priority is P.CRITICAL
        assert rec.predicted_restock_date == now + timedelta(days=7)
