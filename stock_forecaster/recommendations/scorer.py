"""
Reorder urgency scoring: priority tier, justification text and cost.

Priority rules (evaluated in order — first match wins)
------------------------------------------------------
    1. CRITICAL : current <= 0              OR  days_until_stockout <= 1
    2. HIGH     : current <= 0.5 * minimum  OR  days_until_stockout <= 7
    3. MEDIUM   : current <= minimum        OR  days_until_stockout <= 14
    4. LOW      : everything else

Estimated cost
--------------
    round(price * quantity * wholesale_cost_ratio, 2)

``wholesale_cost_ratio`` defaults to 0.7: retail price is used as a proxy
for the purchase price.
"""

from __future__ import annotations

from stock_forecaster.models.recommendation import RecommendationPriority

WHOLESALE_COST_RATIO = 0.7

FALLBACK_REASON = "Low stock, reorder immediately."


def determine_priority(
    current_stock:       int,
    minimum_stock:       int,
    days_until_stockout: int,
) -> RecommendationPriority:
    """Classify reorder urgency from stock position and forecast cover.

    Returns:
        The first matching ``RecommendationPriority`` from the module rules.
    """
    if current_stock <= 0 or days_until_stockout <= 1:
        return RecommendationPriority.CRITICAL
    if current_stock <= minimum_stock * 0.5 or days_until_stockout <= 7:
        return RecommendationPriority.HIGH
    if current_stock <= minimum_stock or days_until_stockout <= 14:
        return RecommendationPriority.MEDIUM
    return RecommendationPriority.LOW


def build_reason(
    priority:            RecommendationPriority,
    current_stock:       int,
    order_quantity:      int,
    days_until_stockout: int,
    average_daily_usage: float,
) -> str:
    """Human-readable justification matching the priority tier.

    Examples:
        "Out of stock. Reorder now: 56 units."
        "Stockout expected in 5 days at a rate of 2.0 units/day."
        "Below minimum threshold. Reorder 30 units."
        "Forecast reorder of 12 units based on current trend."
    """
    if priority is RecommendationPriority.CRITICAL:
        if current_stock <= 0:
            return f"Out of stock. Reorder now: {order_quantity} units."
        return f"Stockout imminent. Reorder now: {order_quantity} units."
    if priority is RecommendationPriority.HIGH:
        return (
            f"Stockout expected in {days_until_stockout} days "
            f"at a rate of {average_daily_usage:.1f} units/day."
        )
    if priority is RecommendationPriority.MEDIUM:
        return f"Below minimum threshold. Reorder {order_quantity} units."
    return f"Forecast reorder of {order_quantity} units based on current trend."


def estimate_cost(price: float, quantity: int, ratio: float = WHOLESALE_COST_RATIO) -> float:
    """Wholesale cost of ordering ``quantity`` units, rounded to cents."""
    return round(price * quantity * ratio, 2)
