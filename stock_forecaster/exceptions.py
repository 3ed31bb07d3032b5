"""
Error taxonomy for inventory operations.

  - ``InvalidArgumentError``    — malformed input (non-positive quantity, bad
                                  min/max relationship, empty name). Always
                                  surfaced to the caller, never corrected.
  - ``NotFoundError``           — unknown product id.
  - ``StoreError``              — the backing store failed. The message is
                                  deliberately opaque; details are logged.
  - ``ConcurrencyConflictError``— a version-checked write lost a race.

Capacity-exceeded and insufficient-stock are NOT exceptions: ``Product.add_stock``
and ``Product.remove_stock`` return ``False`` for those routine outcomes.

``InvalidArgumentError`` intentionally does not subclass ``ValueError`` so that
raising it from a pydantic validator propagates it unchanged instead of being
wrapped in a ``ValidationError``.
"""

from __future__ import annotations

from typing import Optional


class InventoryError(Exception):
    """Base class for all errors raised by ``stock_forecaster``."""


class InvalidArgumentError(InventoryError):
    """Raised when an operation receives malformed input.

    Attributes:
        field: Name of the offending argument, or ``None`` if not attributable.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class NotFoundError(InventoryError):
    """Raised when a product id does not exist in the store.

    Attributes:
        product_id: The id that was looked up.
    """

    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"Product '{product_id}' not found.")


class StoreError(InventoryError):
    """Raised when the backing store is unreachable or fails a statement.

    Attributes:
        operation: Short label of the failed store operation.
    """

    def __init__(self, operation: str, message: Optional[str] = None) -> None:
        self.operation = operation
        super().__init__(message or f"Store operation '{operation}' failed.")


class ConcurrencyConflictError(StoreError):
    """Raised when a product row changed between load and save.

    Attributes:
        product_id:       The product whose write was rejected.
        expected_version: The version the writer loaded.
    """

    def __init__(self, product_id: str, expected_version: int) -> None:
        self.product_id = product_id
        self.expected_version = expected_version
        super().__init__(
            "update_product",
            f"Product '{product_id}' was modified concurrently "
            f"(expected version {expected_version}).",
        )
