"""
Stock transaction ledger entries.

A ``StockTransaction`` records one stock movement for one product. Entries
are frozen: once created they are never updated or deleted by this package.
They are only ever created as a side effect of a successful ``Product``
mutation, and are replayed by the trend analyzer.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stock_forecaster.exceptions import InvalidArgumentError
from stock_forecaster.utils.time_utils import ensure_utc, utcnow


class TransactionType(StrEnum):
    """Direction of a stock movement."""

    STOCK_IN = "StockIn"
    STOCK_OUT = "StockOut"


class StockTransaction(BaseModel):
    """One immutable stock movement.

    Attributes:
        transaction_id: Opaque unique id (uuid4 string).
        product_id: Owning product id.
        transaction_type: ``StockIn`` or ``StockOut``.
        quantity: Units moved; always strictly positive.
        reason: Free-text reason; may be empty.
        transaction_date: UTC timestamp of the movement.
    """

    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(default_factory=lambda: str(uuid4()))
    product_id: str
    transaction_type: TransactionType
    quantity: int
    reason: str = ""
    transaction_date: datetime = Field(default_factory=utcnow)

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v <= 0:
            raise InvalidArgumentError(
                f"Transaction quantity must be positive, got {v}.", field="quantity"
            )
        return v

    @field_validator("reason", mode="before")
    @classmethod
    def normalize_reason(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("transaction_date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def signed_quantity(self) -> int:
        """``+quantity`` for stock in, ``-quantity`` for stock out."""
        if self.transaction_type == TransactionType.STOCK_IN:
            return self.quantity
        return -self.quantity
