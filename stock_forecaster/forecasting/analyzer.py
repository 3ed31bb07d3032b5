"""
Store-backed trend analyzer.

``TrendAnalyzer.analyze_stock_trends`` replays a product's ledger over a
lookback window and returns a ``StockAnalysis``. Three outcomes:

  - ``basis="trend"``    — in-window entries exist; usage, turnover, stockout
                           and trend points are computed from them.
  - ``basis="default"``  — no in-window entries; conservative defaults
                           (usage 1.0, turnover 0.1, days = current stock,
                           order = ``Product.recommended_order_quantity()``).
  - ``basis="fallback"`` — an unexpected fault during the computation;
                           neutral values (usage 1.0, turnover 0.1, 30 days,
                           order 10), logged with the product id.

``NotFoundError``, ``InvalidArgumentError`` and ``StoreError`` are never
converted into a fallback; they reach the caller unchanged.

The ``predict_*`` methods expose the reorder policy of
``stock_forecaster.forecasting.usage`` per product.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from stock_forecaster.exceptions import InvalidArgumentError, NotFoundError, StoreError
from stock_forecaster.forecasting import usage
from stock_forecaster.models.analysis import StockAnalysis
from stock_forecaster.models.product import Product
from stock_forecaster.utils.time_utils import ensure_utc, utcnow, window_start

if TYPE_CHECKING:
    from stock_forecaster.config import AppConfig
    from stock_forecaster.db.store import InventoryStore

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 30


class TrendAnalyzer:
    """Consumption and stockout forecasting over the stock ledger.

    Args:
        store: Anything exposing ``products`` (``ProductStore``) and
            ``transactions`` (``TransactionStore``).
        config: Application config; only ``forecast.lookback_days`` is read.
    """

    def __init__(self, store: "InventoryStore", config: Optional["AppConfig"] = None) -> None:
        self._products = store.products
        self._transactions = store.transactions
        self.lookback_days = (
            config.forecast.lookback_days if config is not None else DEFAULT_LOOKBACK_DAYS
        )

    # ── Analysis ──────────────────────────────────────────────────────────────

    def analyze_stock_trends(
        self,
        product_id: str,
        days_back: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> StockAnalysis:
        """Analyze one product's consumption over the last ``days_back`` days.

        Args:
            product_id: Product to analyze.
            days_back: Lookback window in days. Defaults to
                ``forecast.lookback_days``.
            now: Analysis time (UTC). Defaults to the current time.

        Returns:
            A ``StockAnalysis``; see the module docstring for the three bases.

        Raises:
            InvalidArgumentError: If ``days_back < 1``.
            NotFoundError: If the product does not exist.
            StoreError: If the store fails.
        """
        days_back = self.lookback_days if days_back is None else days_back
        if days_back < 1:
            raise InvalidArgumentError(
                f"days_back must be >= 1, got {days_back}.", field="days_back"
            )
        now = ensure_utc(now) if now is not None else utcnow()

        product = self._load_product(product_id)
        try:
            return self._analyze(product, days_back, now)
        except (StoreError, NotFoundError, InvalidArgumentError):
            raise
        except Exception:
            logger.exception(
                "Error analyzing stock trends for product %s", product_id,
                extra={"product_id": product_id, "operation": "analyze_stock_trends"},
            )
            return _fallback_analysis(product_id, now)

    def _analyze(self, product: Product, days_back: int, now: datetime) -> StockAnalysis:
        entries = self._transactions.get_by_product_in_range(
            product.product_id, window_start(now, days_back), now
        )

        if not entries:
            logger.info(
                "No ledger entries in the last %d days for product %s; using defaults",
                days_back, product.product_id,
            )
            return StockAnalysis(
                product_id=product.product_id,
                product_name=product.name,
                average_daily_usage=usage.DEFAULT_DAILY_USAGE,
                stock_turnover_rate=usage.DEFAULT_TURNOVER_RATE,
                days_until_stockout=max(0, product.current_stock),
                recommendation=usage.default_recommendation_text(product.current_stock),
                suggested_order_quantity=product.recommended_order_quantity(),
                analysis_date=now,
                trends=[],
                basis="default",
            )

        daily_usage = usage.average_daily_usage(entries, days_back)
        turnover = usage.stock_turnover_rate(
            entries, product.minimum_stock, product.maximum_stock, days_back
        )
        stockout_days = usage.days_until_stockout(product.current_stock, daily_usage)
        optimal = usage.optimal_stock_level(
            daily_usage, product.minimum_stock, product.maximum_stock
        )
        suggested = usage.reorder_quantity(optimal, product.current_stock)

        analysis = StockAnalysis(
            product_id=product.product_id,
            product_name=product.name,
            average_daily_usage=daily_usage,
            stock_turnover_rate=turnover,
            days_until_stockout=stockout_days,
            recommendation=usage.recommendation_text(
                stockout_days, suggested, daily_usage, product.is_low_stock()
            ),
            suggested_order_quantity=suggested,
            analysis_date=now,
            trends=usage.build_daily_trends(entries),
            basis="trend",
        )
        logger.info(
            "Completed stock analysis for product %s: %s",
            product.product_id, analysis.recommendation,
        )
        return analysis

    # ── Predictions ───────────────────────────────────────────────────────────

    def predict_optimal_stock_level(
        self, product_id: str, now: Optional[datetime] = None
    ) -> int:
        """Usage over lead time + safety cover, clamped to the product's thresholds."""
        product = self._load_product(product_id)
        analysis = self.analyze_stock_trends(product_id, now=now)
        optimal = usage.optimal_stock_level(
            analysis.average_daily_usage, product.minimum_stock, product.maximum_stock
        )
        logger.info("Predicted optimal stock level %d for product %s", optimal, product_id)
        return optimal

    def predict_reorder_quantity(self, product_id: str, now: Optional[datetime] = None) -> int:
        """``max(0, optimal - current)`` for the product."""
        product = self._load_product(product_id)
        optimal = self.predict_optimal_stock_level(product_id, now=now)
        quantity = usage.reorder_quantity(optimal, product.current_stock)
        logger.info("Predicted reorder quantity %d for product %s", quantity, product_id)
        return quantity

    def predict_next_restock_date(
        self, product_id: str, now: Optional[datetime] = None
    ) -> datetime:
        """Date an order should be placed to arrive before the forecast stockout."""
        now = ensure_utc(now) if now is not None else utcnow()
        analysis = self.analyze_stock_trends(product_id, now=now)
        restock = usage.next_restock_date(now, analysis.days_until_stockout)
        logger.info(
            "Predicted next restock date %s for product %s",
            restock.date().isoformat(), product_id,
        )
        return restock

    def _load_product(self, product_id: str) -> Product:
        product = self._products.get_by_id(product_id)
        if product is None:
            raise NotFoundError(product_id)
        return product


# ── Private helpers ────────────────────────────────────────────────────────────

def _fallback_analysis(product_id: str, now: datetime) -> StockAnalysis:
    return StockAnalysis(
        product_id=product_id,
        product_name=usage.FALLBACK_PRODUCT_NAME,
        average_daily_usage=usage.DEFAULT_DAILY_USAGE,
        stock_turnover_rate=usage.DEFAULT_TURNOVER_RATE,
        days_until_stockout=usage.FALLBACK_DAYS_UNTIL_STOCKOUT,
        recommendation=usage.FALLBACK_RECOMMENDATION_TEXT,
        suggested_order_quantity=usage.FALLBACK_ORDER_QUANTITY,
        analysis_date=now,
        trends=[],
        basis="fallback",
    )
