"""
Repository for the ``products`` table.

``update()`` is version-checked: it only succeeds when the stored row still
carries the version the caller loaded, then bumps it. A lost race raises
``ConcurrencyConflictError`` and leaves the row untouched.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from stock_forecaster.db.repositories.base import BaseRepository
from stock_forecaster.exceptions import ConcurrencyConflictError
from stock_forecaster.models.product import Product
from stock_forecaster.utils.time_utils import from_db_timestamp, to_db_timestamp

logger = logging.getLogger(__name__)


class ProductRepository(BaseRepository):
    """Read/write access to the ``products`` table."""

    def add(self, product: Product) -> Product:
        """Insert a new product row.

        Args:
            product: The ``Product`` to persist.

        Returns:
            The same ``product`` instance.
        """
        self.execute(
            """
            INSERT INTO products (
                product_id, name, description, category, price,
                current_stock, minimum_stock, maximum_stock, version,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                product.product_id,
                product.name,
                product.description,
                product.category,
                product.price,
                product.current_stock,
                product.minimum_stock,
                product.maximum_stock,
                product.version,
                to_db_timestamp(product.created_at),
                to_db_timestamp(product.updated_at),
            ),
            operation="add_product",
        )
        return product

    def update(self, product: Product) -> Product:
        """Write the product's current state if its version is unchanged.

        On success ``product.version`` is incremented in place.

        Args:
            product: The mutated ``Product``; ``product.version`` must be the
                version it was loaded with.

        Returns:
            The same ``product`` instance.

        Raises:
            ConcurrencyConflictError: If the stored version differs (or the
                row no longer exists).
        """
        cursor = self.execute(
            """
            UPDATE products
            SET name = ?, description = ?, category = ?, price = ?,
                current_stock = ?, minimum_stock = ?, maximum_stock = ?,
                updated_at = ?, version = version + 1
            WHERE product_id = ? AND version = ?;
            """,
            (
                product.name,
                product.description,
                product.category,
                product.price,
                product.current_stock,
                product.minimum_stock,
                product.maximum_stock,
                to_db_timestamp(product.updated_at),
                product.product_id,
                product.version,
            ),
            operation="update_product",
        )
        if cursor.rowcount == 0:
            raise ConcurrencyConflictError(product.product_id, product.version)
        product.version += 1
        return product

    def get_by_id(self, product_id: str) -> Optional[Product]:
        """Fetch a product by id, or ``None``."""
        row = self.fetchone(
            "SELECT * FROM products WHERE product_id = ?;",
            (product_id,),
            operation="get_product",
        )
        return _row_to_product(row) if row else None

    def get_all(self) -> list[Product]:
        """Fetch all products ordered by name."""
        rows = self.fetchall(
            "SELECT * FROM products ORDER BY name, product_id;",
            operation="list_products",
        )
        return [_row_to_product(r) for r in rows]

    def get_by_category(self, category: str) -> list[Product]:
        """Fetch products in a category (case-insensitive), ordered by name."""
        rows = self.fetchall(
            """
            SELECT * FROM products
            WHERE lower(category) = lower(?)
            ORDER BY name, product_id;
            """,
            (category,),
            operation="list_products_by_category",
        )
        return [_row_to_product(r) for r in rows]

    def get_low_stock(self) -> list[Product]:
        """Fetch products with ``current_stock <= minimum_stock``.

        Ordered by current stock ascending, then name, so the emptiest
        products come first and ties are deterministic.
        """
        rows = self.fetchall(
            """
            SELECT * FROM products
            WHERE current_stock <= minimum_stock
            ORDER BY current_stock, name, product_id;
            """,
            operation="list_low_stock",
        )
        return [_row_to_product(r) for r in rows]

    def delete(self, product_id: str) -> bool:
        """Delete a product (its ledger rows cascade).

        Returns:
            ``True`` if a row was deleted.
        """
        cursor = self.execute(
            "DELETE FROM products WHERE product_id = ?;",
            (product_id,),
            operation="delete_product",
        )
        return cursor.rowcount > 0

    def exists(self, product_id: str) -> bool:
        row = self.fetchone(
            "SELECT 1 AS found FROM products WHERE product_id = ?;",
            (product_id,),
            operation="product_exists",
        )
        return row is not None

    def get_all_categories(self) -> list[str]:
        """Return the distinct category labels, sorted."""
        rows = self.fetchall(
            "SELECT DISTINCT category FROM products ORDER BY category;",
            operation="list_categories",
        )
        return [row["category"] for row in rows]

    def count(self) -> int:
        """Return total number of products."""
        row = self.fetchone("SELECT COUNT(*) AS n FROM products;", operation="count_products")
        assert row is not None
        return int(row["n"])


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        product_id=row["product_id"],
        name=row["name"],
        description=row["description"],
        category=row["category"],
        price=row["price"],
        current_stock=row["current_stock"],
        minimum_stock=row["minimum_stock"],
        maximum_stock=row["maximum_stock"],
        version=row["version"],
        created_at=from_db_timestamp(row["created_at"]),
        updated_at=from_db_timestamp(row["updated_at"]),
    )
