"""
Consumption, stockout and trend math over ledger entries.

Every function here is pure: it takes already-loaded ledger entries and
product figures and returns numbers, dates or text. ``TrendAnalyzer`` wires
them to the store.

Reorder policy (fixed, not configurable)
----------------------------------------
    LEAD_TIME_DAYS       = 7     supplier lead time
    SAFETY_STOCK_DAYS    = 14    cover held on top of the lead time
    RESTOCK_BUFFER_DAYS  = 7     order this many days before the forecast stockout

    optimal stock   = clamp(int(usage * (lead + safety)), minimum, maximum)
    reorder qty     = max(0, optimal - current)
    next restock    = now + max(1, days_until_stockout - buffer) days

Stockout
--------
    usage > 0                 -> floor(current / usage)
    usage == 0, current > 0   -> NO_USAGE_STOCKOUT_DAYS (365)
    usage == 0, current <= 0  -> 0
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable

from stock_forecaster.models.analysis import StockTrend
from stock_forecaster.models.transaction import StockTransaction, TransactionType
from stock_forecaster.utils.time_utils import utc_date

LEAD_TIME_DAYS = 7
SAFETY_STOCK_DAYS = 14
RESTOCK_BUFFER_DAYS = 7
NO_USAGE_STOCKOUT_DAYS = 365

# Insufficient-history defaults
DEFAULT_DAILY_USAGE = 1.0
DEFAULT_TURNOVER_RATE = 0.1

# Neutral values used when an analysis fails unexpectedly
FALLBACK_DAYS_UNTIL_STOCKOUT = 30
FALLBACK_ORDER_QUANTITY = 10
FALLBACK_PRODUCT_NAME = "Unknown"

DEFAULT_TREND_REASON = "Regular transactions"


# ── Rates ─────────────────────────────────────────────────────────────────────

def average_daily_usage(transactions: Iterable[StockTransaction], days_back: int) -> float:
    """Mean units issued per day: total ``StockOut`` quantity / ``days_back``."""
    if days_back <= 0:
        return 0.0
    total_out = sum(
        t.quantity for t in transactions if t.transaction_type is TransactionType.STOCK_OUT
    )
    return total_out / days_back


def stock_turnover_rate(
    transactions: Iterable[StockTransaction],
    minimum_stock: int,
    maximum_stock: int,
    days_back: int,
) -> float:
    """Total movement (both directions) / average stock / ``days_back``.

    Average stock is the midpoint of the thresholds. Returns 0.0 when either
    divisor would be zero.
    """
    average_stock = (minimum_stock + maximum_stock) / 2
    if average_stock <= 0 or days_back <= 0:
        return 0.0
    total_movement = sum(t.quantity for t in transactions)
    return total_movement / average_stock / days_back


def days_until_stockout(current_stock: int, usage: float) -> int:
    """Whole days of cover at ``usage`` units/day."""
    if usage > 0:
        return max(0, math.floor(current_stock / usage))
    return NO_USAGE_STOCKOUT_DAYS if current_stock > 0 else 0


# ── Reorder policy ────────────────────────────────────────────────────────────

def optimal_stock_level(usage: float, minimum_stock: int, maximum_stock: int) -> int:
    """Usage over lead time + safety cover, clamped to ``[minimum, maximum]``."""
    target = int(usage * (LEAD_TIME_DAYS + SAFETY_STOCK_DAYS))
    return max(minimum_stock, min(maximum_stock, target))


def reorder_quantity(optimal_stock: int, current_stock: int) -> int:
    return max(0, optimal_stock - current_stock)


def next_restock_date(now: datetime, stockout_days: int) -> datetime:
    """Order date: ``RESTOCK_BUFFER_DAYS`` ahead of the stockout, at least tomorrow."""
    return now + timedelta(days=max(1, stockout_days - RESTOCK_BUFFER_DAYS))


# ── Trend reconstruction ──────────────────────────────────────────────────────

def build_daily_trends(transactions: Iterable[StockTransaction]) -> list[StockTrend]:
    """Replay ledger entries into one ``StockTrend`` per active UTC day.

    The running level starts at 0 and accumulates each day's net change.
    Reported levels are floored at 0; the running sum is not.

    Args:
        transactions: In-window ledger entries for a single product.

    Returns:
        Trend points ordered by date, oldest first. Empty if no entries.
    """
    by_day: dict[date, list[StockTransaction]] = defaultdict(list)
    for txn in sorted(transactions, key=lambda t: t.transaction_date):
        by_day[utc_date(txn.transaction_date)].append(txn)

    running = 0

    trends: list[StockTrend] = []
    for day in sorted(by_day):
        entries = by_day[day]
        daily_change = sum(t.signed_quantity for t in entries)
        running += daily_change
        reasons = [t.reason for t in entries if t.reason]
        trends.append(
            StockTrend(
                date=day,
                stock_level=max(0, running),
                daily_change=daily_change,
                reason=", ".join(reasons) if reasons else DEFAULT_TREND_REASON,
            )
        )
    return trends


# ── Recommendation text ───────────────────────────────────────────────────────

def recommendation_text(
    stockout_days: int,
    suggested_order_quantity: int,
    usage: float,
    is_low_stock: bool,
) -> str:
    """Pick the guidance sentence for a trend-based analysis.

    Tiers (first match wins):
        1. days <= 0       out of stock
        2. days <= 3       urgent
        3. days <= 7       warning
        4. low stock       below minimum
        5. usage > 0       normal, with the daily rate
        6. otherwise       insufficient data
    """
    if stockout_days <= 0:
        return "OUT OF STOCK: the product is out of stock. Reorder immediately."
    if stockout_days <= 3:
        return (
            f"URGENT: stockout expected in {stockout_days} days. "
            f"Order {suggested_order_quantity} units now."
        )
    if stockout_days <= 7:
        return (
            f"WARNING: stockout expected in {stockout_days} days. "
            f"Plan an order of {suggested_order_quantity} units."
        )
    if is_low_stock:
        return (
            "LOW STOCK: below the minimum threshold. "
            f"Order {suggested_order_quantity} units to avoid shortages."
        )
    if usage > 0:
        return (
            f"NORMAL: stock is stable at an average usage of {usage:.1f} units/day. "
            f"Stockout expected in {stockout_days} days."
        )
    return "Insufficient data for a specific recommendation."


def default_recommendation_text(current_stock: int) -> str:
    """Guidance used when the lookback window holds no ledger entries."""
    text = "Insufficient transaction history. Using default estimates."
    if current_stock <= 0:
        return f"OUT OF STOCK: the product is out of stock. {text}"
    return text


FALLBACK_RECOMMENDATION_TEXT = "Analysis failed. Using default values."
