"""
Product — the stock aggregate.

``Product`` holds one product's authoritative stock level and is the only
object allowed to create ledger entries. Quantity invariants:

  - ``current_stock >= 0`` at all times.
  - ``maximum_stock > minimum_stock >= 0``.
  - A stock mutation that would push ``current_stock`` above
    ``maximum_stock`` (or below zero) is rejected, never clamped.

Rejected mutations caused by bad input raise ``InvalidArgumentError``.
Capacity-exceeded and insufficient-stock are expected business outcomes and
are reported through a ``False`` return value instead.

Each successful mutation appends a ``StockTransaction`` to a private pending
list. The store persists the pending entries together with the product row
(see ``InventoryStore.save_product``) and then drains them with
``pop_pending_transactions()``.

``Product`` is the only model that is NOT frozen; everything else in
``stock_forecaster.models`` is immutable.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from stock_forecaster.exceptions import InvalidArgumentError
from stock_forecaster.models.transaction import StockTransaction, TransactionType
from stock_forecaster.utils.time_utils import ensure_utc, utcnow

DEFAULT_CATEGORY = "Uncategorized"
OPTIMAL_STOCK_RATIO = 0.75
INITIAL_STOCK_REASON = "Initial stock"


class Product(BaseModel):
    """The stock aggregate for one product.

    Attributes:
        product_id: Opaque unique id (uuid4 string).
        name: Display name; never empty.
        description: Free-text description.
        category: Category label; blank values become ``"Uncategorized"``.
        price: Unit retail price (>= 0).
        current_stock: Units on hand (>= 0).
        minimum_stock: Low-stock threshold (>= 0).
        maximum_stock: Capacity; strictly greater than ``minimum_stock``.
        version: Optimistic concurrency token, bumped by the store on save.
        created_at: UTC creation timestamp.
        updated_at: UTC timestamp of the last mutation.
    """

    model_config = ConfigDict(frozen=False)

    product_id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    description: str = ""
    category: str = DEFAULT_CATEGORY
    price: float
    current_stock: int = 0
    minimum_stock: int
    maximum_stock: int
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    _pending: list[StockTransaction] = PrivateAttr(default_factory=list)

    # ── Validation ────────────────────────────────────────────────────────────

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: float) -> float:
        return _check_price(v)

    @field_validator("description", mode="before")
    @classmethod
    def normalize_description(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: object) -> object:
        return _normalize_category(v)

    @field_validator("current_stock")
    @classmethod
    def validate_current_stock(cls, v: int) -> int:
        if v < 0:
            raise InvalidArgumentError(
                f"current_stock cannot be negative, got {v}.", field="current_stock"
            )
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_limits(self) -> "Product":
        _check_limits(self.minimum_stock, self.maximum_stock)
        return self

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def create(
        cls,
        name: str,
        description: Optional[str],
        category: Optional[str],
        price: float,
        minimum_stock: int,
        maximum_stock: int,
        initial_stock: int = 0,
    ) -> "Product":
        """Create a new product, recording an ``Initial stock`` entry if stocked.

        Raises:
            InvalidArgumentError: On an empty name, negative price, negative
                minimum, ``maximum_stock <= minimum_stock``, or an initial
                stock outside ``[0, maximum_stock]``.
        """
        _check_name(name)
        _check_price(price)
        _check_limits(minimum_stock, maximum_stock)
        if initial_stock < 0:
            raise InvalidArgumentError(
                f"Initial stock cannot be negative, got {initial_stock}.",
                field="initial_stock",
            )
        if initial_stock > maximum_stock:
            raise InvalidArgumentError(
                f"Initial stock {initial_stock} exceeds maximum stock {maximum_stock}.",
                field="initial_stock",
            )

        now = utcnow()
        product = cls(
            name=name,
            description=description,
            category=category,
            price=price,
            current_stock=initial_stock,
            minimum_stock=minimum_stock,
            maximum_stock=maximum_stock,
            created_at=now,
            updated_at=now,
        )
        if initial_stock > 0:
            product._record(TransactionType.STOCK_IN, initial_stock, INITIAL_STOCK_REASON)
        return product

    # ── Descriptive updates ───────────────────────────────────────────────────

    def update_info(self, name: str, description: Optional[str], price: float) -> None:
        """Replace name, description and price. No ledger entry is written."""
        _check_name(name)
        _check_price(price)
        self.name = name
        self.description = description or ""
        self.price = price
        self._touch()

    def update_category(self, category: Optional[str]) -> None:
        """Replace the category label; blank becomes ``"Uncategorized"``."""
        self.category = _normalize_category(category)
        self._touch()

    def update_stock_limits(self, minimum_stock: int, maximum_stock: int) -> None:
        """Replace the stock thresholds.

        Current stock is not revalidated: a product may sit outside the new
        bounds until its next movement.
        """
        _check_limits(minimum_stock, maximum_stock)
        self.minimum_stock = minimum_stock
        self.maximum_stock = maximum_stock
        self._touch()

    # ── Stock movements ───────────────────────────────────────────────────────

    def add_stock(self, quantity: int, reason: str = "Stock added") -> bool:
        """Receive ``quantity`` units.

        Returns:
            ``True`` on success; ``False`` (state untouched) if the result
            would exceed ``maximum_stock``.

        Raises:
            InvalidArgumentError: If ``quantity <= 0``.
        """
        _check_quantity(quantity)
        if self.current_stock + quantity > self.maximum_stock:
            return False

        self.current_stock += quantity
        self._record(TransactionType.STOCK_IN, quantity, reason)
        self._touch()
        return True

    def remove_stock(self, quantity: int, reason: str = "Stock removed") -> bool:
        """Issue ``quantity`` units.

        Returns:
            ``True`` on success; ``False`` (state untouched) if fewer than
            ``quantity`` units are on hand.

        Raises:
            InvalidArgumentError: If ``quantity <= 0``.
        """
        _check_quantity(quantity)
        if self.current_stock < quantity:
            return False

        self.current_stock -= quantity
        self._record(TransactionType.STOCK_OUT, quantity, reason)
        self._touch()
        return True

    # ── Predicates ────────────────────────────────────────────────────────────

    def is_low_stock(self) -> bool:
        return self.current_stock <= self.minimum_stock

    def is_over_stock(self) -> bool:
        return self.current_stock >= self.maximum_stock

    def recommended_order_quantity(self) -> int:
        """Deterministic reorder quantity used when no forecast is available.

        Zero unless low on stock; otherwise the gap to 75% of capacity
        (rounded half up).
        """
        if not self.is_low_stock():
            return 0
        # Round half up, not truncate: max 50 targets 38, not 37.
        optimal = math.floor(self.maximum_stock * OPTIMAL_STOCK_RATIO + 0.5)
        return max(0, optimal - self.current_stock)

    # ── Pending ledger entries ────────────────────────────────────────────────

    @property
    def pending_transactions(self) -> tuple[StockTransaction, ...]:
        """Ledger entries produced since the last successful save."""
        return tuple(self._pending)

    def pop_pending_transactions(self) -> list[StockTransaction]:
        """Return and clear the pending ledger entries."""
        pending, self._pending = self._pending, []
        return pending

    def _record(self, transaction_type: TransactionType, quantity: int, reason: str) -> None:
        self._pending.append(
            StockTransaction(
                product_id=self.product_id,
                transaction_type=transaction_type,
                quantity=quantity,
                reason=reason,
            )
        )

    def _touch(self) -> None:
        self.updated_at = utcnow()


# ── Private helpers ────────────────────────────────────────────────────────────

def _check_name(name: str) -> str:
    if not name or not name.strip():
        raise InvalidArgumentError("Product name cannot be empty.", field="name")
    return name


def _check_price(price: float) -> float:
    if price < 0:
        raise InvalidArgumentError(f"Price cannot be negative, got {price}.", field="price")
    return price


def _check_limits(minimum_stock: int, maximum_stock: int) -> None:
    if minimum_stock < 0:
        raise InvalidArgumentError(
            f"Minimum stock cannot be negative, got {minimum_stock}.",
            field="minimum_stock",
        )
    if maximum_stock <= minimum_stock:
        raise InvalidArgumentError(
            f"Maximum stock ({maximum_stock}) must be greater than "
            f"minimum stock ({minimum_stock}).",
            field="maximum_stock",
        )


def _check_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise InvalidArgumentError(
            f"Quantity must be positive, got {quantity}.", field="quantity"
        )


def _normalize_category(category: object) -> object:
    if category is None or (isinstance(category, str) and not category.strip()):
        return DEFAULT_CATEGORY
    return category
