"""
Store contracts and the SQLite unit of work.

The analysis and recommendation code depends only on the two protocols
below, so any backing store that can load/save products and append/list
ledger entries can be plugged in:

  - ``ProductStore``      — keyed by product id, returns ``Product`` aggregates.
  - ``TransactionStore``  — append-only ledger access.

``InventoryStore`` is the SQLite implementation. It owns one connection and
one re-entrant lock shared by both repositories, and provides:

  - ``atomic()``        — a savepoint scope; everything inside commits
                          together or not at all.
  - ``save_product()``  — writes the product row (insert or version-checked
                          update) and its pending ledger entries in one
                          ``atomic()`` scope.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Optional, Protocol

from stock_forecaster.db.repositories.product_repo import ProductRepository
from stock_forecaster.db.repositories.transaction_repo import StockTransactionRepository
from stock_forecaster.exceptions import StoreError
from stock_forecaster.models.product import Product
from stock_forecaster.models.transaction import StockTransaction

logger = logging.getLogger(__name__)


class ProductStore(Protocol):
    def get_by_id(self, product_id: str) -> Optional[Product]: ...
    def get_all(self) -> list[Product]: ...
    def get_by_category(self, category: str) -> list[Product]: ...
    def get_low_stock(self) -> list[Product]: ...
    def add(self, product: Product) -> Product: ...
    def update(self, product: Product) -> Product: ...
    def delete(self, product_id: str) -> bool: ...
    def exists(self, product_id: str) -> bool: ...
    def get_all_categories(self) -> list[str]: ...


class TransactionStore(Protocol):
    def add(self, transaction: StockTransaction) -> None: ...
    def add_many(self, transactions: list[StockTransaction]) -> int: ...
    def get_by_product_id(self, product_id: str) -> list[StockTransaction]: ...
    def get_by_date_range(self, start: datetime, end: datetime) -> list[StockTransaction]: ...
    def get_by_product_in_range(
        self, product_id: str, start: datetime, end: datetime
    ) -> list[StockTransaction]: ...
    def get_recent(self, count: int = 50) -> list[StockTransaction]: ...


class InventoryStore:
    """SQLite-backed product + ledger store.

    Attributes:
        conn: The shared ``sqlite3.Connection``.
        products: Product repository.
        transactions: Ledger repository.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._lock = threading.RLock()
        self._depth = 0
        self.products = ProductRepository(conn, self._lock)
        self.transactions = StockTransactionRepository(conn, self._lock)

    @contextmanager
    def atomic(self) -> Generator[None, None, None]:
        """Run the enclosed statements inside a (nestable) savepoint.

        Holds the connection lock for the whole scope so no other thread's
        statement can land inside it.

        Raises:
            StoreError: If the savepoint itself cannot be opened or released.
        """
        with self._lock:
            name = f"inventory_sp_{self._depth}"
            self._savepoint(f"SAVEPOINT {name};")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                self._savepoint(f"ROLLBACK TO SAVEPOINT {name};")
                self._savepoint(f"RELEASE SAVEPOINT {name};")
                raise
            self._depth -= 1
            self._savepoint(f"RELEASE SAVEPOINT {name};")

    def save_product(self, product: Product, is_new: bool = False) -> Product:
        """Persist a product row together with its pending ledger entries.

        Pending entries are drained from the aggregate only after the
        savepoint is released. On failure the aggregate keeps its pending
        entries and its loaded version.

        Args:
            product: The aggregate to persist.
            is_new: Insert instead of a version-checked update.

        Returns:
            The same ``product`` instance.

        Raises:
            ConcurrencyConflictError: If the row changed since it was loaded.
            StoreError: On any other store failure.
        """
        pending = list(product.pending_transactions)
        loaded_version = product.version
        try:
            with self.atomic():
                if is_new:
                    self.products.add(product)
                else:
                    self.products.update(product)
                self.transactions.add_many(pending)
        except Exception:
            product.version = loaded_version
            raise

        product.pop_pending_transactions()
        logger.debug(
            "Saved product %s (version=%d, ledger entries=%d)",
            product.product_id, product.version, len(pending),
        )
        return product

    def commit(self) -> None:
        """Commit any open implicit transaction on the connection."""
        with self._lock:
            try:
                self.conn.commit()
            except sqlite3.Error as exc:
                logger.error("Commit failed: %s", exc, extra={"operation": "commit"})
                raise StoreError("commit") from exc

    def _savepoint(self, sql: str) -> None:
        try:
            self.conn.execute(sql)
        except sqlite3.Error as exc:
            logger.error("Savepoint statement failed: %s | %s", sql, exc)
            raise StoreError("savepoint") from exc
