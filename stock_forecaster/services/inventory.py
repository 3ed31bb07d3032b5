"""
Inventory application service.

``InventoryService`` is the only entry point that mutates stock. Every
mutation follows the same reload → mutate → save cycle:

  1. Load the ``Product`` aggregate (``NotFoundError`` if absent).
  2. Apply the mutation on the aggregate (validation happens here).
  3. ``InventoryStore.save_product()`` writes the row (version-checked) and
     the new ledger entries inside one savepoint.

If step 3 loses an optimistic-concurrency race, the cycle restarts from a
fresh load, up to ``inventory.max_write_retries`` extra attempts; after that
``ConcurrencyConflictError`` reaches the caller. Every other ``StoreError``
propagates immediately.

``add_stock`` / ``remove_stock`` return ``False`` for the expected business
outcomes (capacity exceeded, insufficient stock). Nothing is written then.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

from stock_forecaster.exceptions import ConcurrencyConflictError, NotFoundError
from stock_forecaster.models.product import Product
from stock_forecaster.models.transaction import StockTransaction

if TYPE_CHECKING:
    from stock_forecaster.config import AppConfig
    from stock_forecaster.db.store import InventoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_WRITE_RETRIES = 3


class InventoryService:
    """Product lifecycle and stock movements on top of an ``InventoryStore``.

    Args:
        store: The unit of work to read from and write to.
        config: Application config; ``inventory`` is read.
    """

    def __init__(self, store: "InventoryStore", config: Optional["AppConfig"] = None) -> None:
        self.store = store
        if config is not None:
            self.max_write_retries = config.inventory.max_write_retries
            self.default_category: Optional[str] = config.inventory.default_category
        else:
            self.max_write_retries = DEFAULT_MAX_WRITE_RETRIES
            self.default_category = None

    # ── Product lifecycle ─────────────────────────────────────────────────────

    def create_product(
        self,
        name: str,
        description: Optional[str],
        category: Optional[str],
        price: float,
        minimum_stock: int,
        maximum_stock: int,
        initial_stock: int = 0,
    ) -> Product:
        """Create and persist a product, with its ``Initial stock`` entry if stocked."""
        if (category is None or not category.strip()) and self.default_category:
            category = self.default_category
        product = Product.create(
            name=name,
            description=description,
            category=category,
            price=price,
            minimum_stock=minimum_stock,
            maximum_stock=maximum_stock,
            initial_stock=initial_stock,
        )
        self.store.save_product(product, is_new=True)
        logger.info(
            "Created product %s (%s) with %d units",
            product.product_id, product.name, product.current_stock,
        )
        return product

    def get_product(self, product_id: str) -> Product:
        """Load a product.

        Raises:
            NotFoundError: If the id is unknown.
        """
        product = self.store.products.get_by_id(product_id)
        if product is None:
            raise NotFoundError(product_id)
        return product

    def get_all_products(self) -> list[Product]:
        return self.store.products.get_all()

    def get_products_by_category(self, category: str) -> list[Product]:
        return self.store.products.get_by_category(category)

    def get_low_stock_products(self) -> list[Product]:
        return self.store.products.get_low_stock()

    def update_product(
        self,
        product_id: str,
        name: str,
        description: Optional[str],
        price: float,
    ) -> Product:
        """Replace name, description and price."""
        def apply(product: Product) -> Product:
            product.update_info(name, description, price)
            return product

        return self._mutate(product_id, apply, operation="update_product")

    def update_category(self, product_id: str, category: Optional[str]) -> Product:
        def apply(product: Product) -> Product:
            product.update_category(category)
            return product

        return self._mutate(product_id, apply, operation="update_category")

    def update_stock_limits(
        self, product_id: str, minimum_stock: int, maximum_stock: int
    ) -> Product:
        """Replace the low-stock threshold and capacity."""
        def apply(product: Product) -> Product:
            product.update_stock_limits(minimum_stock, maximum_stock)
            return product

        return self._mutate(product_id, apply, operation="update_stock_limits")

    def delete_product(self, product_id: str) -> None:
        """Delete a product and, by cascade, its ledger.

        Raises:
            NotFoundError: If the id is unknown.
        """
        with self.store.atomic():
            deleted = self.store.products.delete(product_id)
        if not deleted:
            raise NotFoundError(product_id)
        logger.info("Deleted product %s", product_id)

    def get_all_categories(self) -> list[str]:
        return self.store.products.get_all_categories()

    # ── Stock movements ───────────────────────────────────────────────────────

    def add_stock(self, product_id: str, quantity: int, reason: Optional[str] = None) -> bool:
        """Receive stock.

        Returns:
            ``False`` if the delivery would exceed the product's capacity.

        Raises:
            InvalidArgumentError: If ``quantity <= 0``.
            NotFoundError: If the id is unknown.
        """
        def receive(product: Product) -> bool:
            if reason:
                return product.add_stock(quantity, reason)
            return product.add_stock(quantity)

        ok = self._mutate(product_id, receive, operation="add_stock")
        if not ok:
            logger.info("Stock in of %d rejected for product %s: capacity exceeded", quantity, product_id)
        return ok

    def remove_stock(self, product_id: str, quantity: int, reason: Optional[str] = None) -> bool:
        """Issue stock.

        Returns:
            ``False`` if fewer than ``quantity`` units are on hand.

        Raises:
            InvalidArgumentError: If ``quantity <= 0``.
            NotFoundError: If the id is unknown.
        """
        def issue(product: Product) -> bool:
            if reason:
                return product.remove_stock(quantity, reason)
            return product.remove_stock(quantity)

        ok = self._mutate(product_id, issue, operation="remove_stock")
        if not ok:
            logger.info("Stock out of %d rejected for product %s: insufficient stock", quantity, product_id)
        return ok

    # ── Ledger queries ────────────────────────────────────────────────────────

    def get_product_transactions(self, product_id: str) -> list[StockTransaction]:
        """Ledger of one product, newest first.

        Raises:
            NotFoundError: If the id is unknown.
        """
        if not self.store.products.exists(product_id):
            raise NotFoundError(product_id)
        return self.store.transactions.get_by_product_id(product_id)

    def get_recent_transactions(self, count: int = 50) -> list[StockTransaction]:
        return self.store.transactions.get_recent(count)

    # ── Internals ─────────────────────────────────────────────────────────────

    def _mutate(
        self,
        product_id: str,
        mutation: Callable[[Product], T],
        operation: str,
    ) -> T:
        """Run the reload → mutate → save cycle with conflict retries.

        A mutation returning ``False`` is a rejected business outcome; the
        product is not saved.
        """
        attempts = self.max_write_retries + 1
        for attempt in range(1, attempts + 1):
            product = self.get_product(product_id)
            result = mutation(product)
            if result is False:
                return result
            try:
                self.store.save_product(product)
            except ConcurrencyConflictError:
                if attempt == attempts:
                    logger.error(
                        "%s for product %s gave up after %d attempts",
                        operation, product_id, attempts,
                        extra={"product_id": product_id, "operation": operation},
                    )
                    raise
                logger.warning(
                    "%s for product %s hit a concurrent write (attempt %d/%d); retrying",
                    operation, product_id, attempt, attempts,
                    extra={"product_id": product_id, "operation": operation},
                )
                continue
            return result
        raise AssertionError("unreachable")
