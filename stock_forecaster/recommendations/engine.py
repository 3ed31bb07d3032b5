"""
Batch reorder recommendations across all low-stock products.

Flow
----
1. ``products.get_low_stock()``  — current <= minimum, emptiest first. A
   failure here is not recoverable and propagates as ``StoreError``.
2. Fan out one task per product over a bounded ``ThreadPoolExecutor``
   (``recommendations.max_workers``). Each task:
     a. runs ``TrendAnalyzer.analyze_stock_trends``;
     b. derives reorder quantity and next restock date from that analysis;
     c. scores priority, reason and cost (``recommendations.scorer``).
3. Any exception inside a task, or an analysis that itself degraded to
   ``basis="fallback"``, yields an aggregate-only recommendation
   (``is_fallback=True``) for that product. Other products are unaffected.
4. Results are collected in low-stock order, then stable-sorted by priority
   so ties keep that order.

The engine has no side effects: nothing is written to the store.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from stock_forecaster.forecasting import usage
from stock_forecaster.forecasting.analyzer import TrendAnalyzer
from stock_forecaster.models.product import Product
from stock_forecaster.models.recommendation import StockRecommendation
from stock_forecaster.recommendations.scorer import (
    FALLBACK_REASON,
    WHOLESALE_COST_RATIO,
    build_reason,
    determine_priority,
    estimate_cost,
)
from stock_forecaster.utils.time_utils import ensure_utc, utcnow

if TYPE_CHECKING:
    from stock_forecaster.config import AppConfig
    from stock_forecaster.db.store import InventoryStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4
FALLBACK_RESTOCK_DAYS = 7


class RecommendationEngine:
    """Builds prioritized, cost-estimated reorder recommendations.

    Args:
        store: Store exposing ``products`` (``ProductStore``) and
            ``transactions`` (``TransactionStore``).
        analyzer: Trend analyzer to use. Built from ``store`` if omitted.
        config: Application config; ``recommendations`` is read.
    """

    def __init__(
        self,
        store: "InventoryStore",
        analyzer: Optional[TrendAnalyzer] = None,
        config: Optional["AppConfig"] = None,
    ) -> None:
        self._products = store.products
        self.analyzer = analyzer or TrendAnalyzer(store, config)
        if config is not None:
            self.max_workers = config.recommendations.max_workers
            self.cost_ratio = config.recommendations.wholesale_cost_ratio
        else:
            self.max_workers = DEFAULT_MAX_WORKERS
            self.cost_ratio = WHOLESALE_COST_RATIO

    def get_stock_recommendations(
        self, now: Optional[datetime] = None
    ) -> list[StockRecommendation]:
        """Recommend reorders for every low-stock product, most urgent first.

        Args:
            now: Reference time for analyses and restock dates (UTC).

        Returns:
            One ``StockRecommendation`` per low-stock product.

        Raises:
            StoreError: If the low-stock query itself fails.
        """
        now = ensure_utc(now) if now is not None else utcnow()
        products = self._products.get_low_stock()
        if not products:
            logger.info("No low-stock products; nothing to recommend.")
            return []

        workers = min(self.max_workers, len(products))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="recommend") as pool:
            futures = [pool.submit(self._recommend, product, now) for product in products]
            results = [future.result() for future in futures]

        results.sort(key=lambda r: r.priority)
        n_fallback = sum(1 for r in results if r.is_fallback)
        logger.info(
            "Built %d recommendations (%d fallback) with %d workers",
            len(results), n_fallback, workers,
        )
        return results

    def _recommend(self, product: Product, now: datetime) -> StockRecommendation:
        try:
            recommendation = self._recommend_from_analysis(product, now)
        except Exception:
            logger.exception(
                "Analysis failed for product %s; using aggregate fallback",
                product.product_id,
                extra={"product_id": product.product_id, "operation": "recommend"},
            )
            recommendation = None

        if recommendation is None:
            recommendation = build_fallback_recommendation(product, now, self.cost_ratio)
        return recommendation

    def _recommend_from_analysis(
        self, product: Product, now: datetime
    ) -> Optional[StockRecommendation]:
        analysis = self.analyzer.analyze_stock_trends(product.product_id, now=now)
        if analysis.basis == "fallback":
            logger.warning(
                "Analysis for product %s degraded to neutral values; using aggregate fallback",
                product.product_id,
            )
            return None

        optimal = usage.optimal_stock_level(
            analysis.average_daily_usage, product.minimum_stock, product.maximum_stock
        )
        quantity = usage.reorder_quantity(optimal, product.current_stock)
        priority = determine_priority(
            product.current_stock, product.minimum_stock, analysis.days_until_stockout
        )
        return StockRecommendation(
            product_id=product.product_id,
            product_name=product.name,
            category=product.category,
            current_stock=product.current_stock,
            minimum_stock=product.minimum_stock,
            recommended_order_quantity=quantity,
            predicted_restock_date=usage.next_restock_date(now, analysis.days_until_stockout),
            priority=priority,
            reason=build_reason(
                priority,
                product.current_stock,
                quantity,
                analysis.days_until_stockout,
                analysis.average_daily_usage,
            ),
            estimated_cost=estimate_cost(product.price, quantity, self.cost_ratio),
            days_until_stockout=analysis.days_until_stockout,
        )


def build_fallback_recommendation(
    product: Product,
    now: datetime,
    cost_ratio: float = WHOLESALE_COST_RATIO,
) -> StockRecommendation:
    """Aggregate-only recommendation used when no analysis is available.

    Quantity comes from ``Product.recommended_order_quantity()``; the restock
    date is a fixed week out; cover is 0 days when out of stock, else 30.
    Priority is scored with zero days of cover, so it is always Critical.
    """
    quantity = product.recommended_order_quantity()
    stockout_days = 0 if product.current_stock <= 0 else usage.FALLBACK_DAYS_UNTIL_STOCKOUT
    return StockRecommendation(
        product_id=product.product_id,
        product_name=product.name,
        category=product.category,
        current_stock=product.current_stock,
        minimum_stock=product.minimum_stock,
        recommended_order_quantity=quantity,
        predicted_restock_date=now + timedelta(days=FALLBACK_RESTOCK_DAYS),
        priority=determine_priority(product.current_stock, product.minimum_stock, 0),
        reason=FALLBACK_REASON,
        estimated_cost=estimate_cost(product.price, quantity, cost_ratio),
        days_until_stockout=stockout_days,
        is_fallback=True,
    )
