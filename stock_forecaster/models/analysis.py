"""
Stock analysis output models.

``StockAnalysis`` is a pure computation result produced by
``TrendAnalyzer.analyze_stock_trends``. It is never persisted and is
recomputed on every request.

``basis`` tags how the analysis was obtained:

  - ``"trend"``    — computed from in-window ledger history.
  - ``"default"``  — no history in the window; conservative defaults.
  - ``"fallback"`` — an internal fault occurred; neutral placeholder values.

The external contract always yields a usable analysis; ``basis`` exists so
that callers and logs can tell a real forecast from a degraded one.
"""

from __future__ import annotations

from datetime import date as CalendarDate
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

AnalysisBasis = Literal["trend", "default", "fallback"]


class StockTrend(BaseModel):
    """One day of reconstructed stock history.

    Attributes:
        date: UTC calendar day.
        stock_level: Reconstructed end-of-day stock level (floored at 0).
        daily_change: Net signed movement for the day.
        reason: Comma-joined reasons of the day's movements.
    """

    model_config = ConfigDict(frozen=True)

    date: CalendarDate
    stock_level: int
    daily_change: int
    reason: str


class StockAnalysis(BaseModel):
    """Consumption and stockout forecast for one product.

    Attributes:
        product_id: Analyzed product id.
        product_name: Product name at analysis time (``"Unknown"`` on fallback).
        average_daily_usage: Mean units issued per day over the lookback window.
        stock_turnover_rate: Total movement / average stock / lookback days.
        days_until_stockout: Whole days of cover at the current usage rate.
        recommendation: Human-readable guidance.
        suggested_order_quantity: Units to order now.
        analysis_date: UTC timestamp of the analysis.
        trends: Daily reconstructed stock points, oldest first.
        basis: How the analysis was obtained (see module docstring).
    """

    model_config = ConfigDict(frozen=True)

    product_id: str
    product_name: str
    average_daily_usage: float
    stock_turnover_rate: float
    days_until_stockout: int
    recommendation: str
    suggested_order_quantity: int
    analysis_date: datetime
    trends: list[StockTrend] = []
    basis: AnalysisBasis = "trend"

    @field_validator("average_daily_usage")
    @classmethod
    def validate_usage(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"average_daily_usage must be non-negative, got {v}.")
        return v
