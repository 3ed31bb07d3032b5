"""
Reorder recommendation output models.

``StockRecommendation`` is produced only by the recommendation engine and
is frozen once built. For a fixed product state and ledger, the set of
recommendations is a pure function of that data.
"""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, field_validator


class RecommendationPriority(IntEnum):
    """Reorder urgency. Lower value = more urgent; sorts most urgent first."""

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


class StockRecommendation(BaseModel):
    """A prioritized, cost-estimated reorder suggestion for one product.

    Attributes:
        product_id: Product the recommendation applies to.
        product_name: Product display name.
        category: Product category label.
        current_stock: Units on hand when the recommendation was built.
        minimum_stock: Low-stock threshold.
        recommended_order_quantity: Units to order.
        predicted_restock_date: When the order should be placed (UTC).
        priority: Urgency tier.
        reason: Human-readable justification.
        estimated_cost: Wholesale cost estimate of the order.
        days_until_stockout: Forecast days of cover.
        is_fallback: ``True`` when built from aggregate-only heuristics
            because the trend analysis could not be completed.
    """

    model_config = ConfigDict(frozen=True)

    product_id: str
    product_name: str
    category: str
    current_stock: int
    minimum_stock: int
    recommended_order_quantity: int
    predicted_restock_date: datetime
    priority: RecommendationPriority
    reason: str
    estimated_cost: float
    days_until_stockout: int
    is_fallback: bool = False

    @field_validator("reason")
    @classmethod
    def validate_reason_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("reason must not be empty.")
        return v.strip()

    @field_validator("recommended_order_quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"recommended_order_quantity must be non-negative, got {v}.")
        return v
