"""
Shared pytest fixtures for the Stock Forecaster test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the schema
    applied. Created anew for each test that requests it.
  - ``store`` / ``service``: An ``InventoryStore`` and ``InventoryService``
    over that connection.
  - ``now``: A fixed UTC reference time so window arithmetic is reproducible.
  - ``make_product`` / ``seed_ledger``: factories for persisted products and
    back-dated ledger entries.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import pytest

from stock_forecaster.config import AppConfig
from stock_forecaster.db.connection import open_connection
from stock_forecaster.db.schema import apply_schema
from stock_forecaster.db.store import InventoryStore
from stock_forecaster.models.product import Product
from stock_forecaster.models.transaction import StockTransaction, TransactionType
from stock_forecaster.services.inventory import InventoryService

FIXED_NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the schema applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = open_connection(":memory:")
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(in_memory_db) -> InventoryStore:
    return InventoryStore(in_memory_db)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def service(store, app_config) -> InventoryService:
    return InventoryService(store, app_config)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


# ── Domain object factories ───────────────────────────────────────────────────

@pytest.fixture
def make_product(store) -> Callable[..., Product]:
    """Persist a product with the given stock figures and no ledger entries.

    Usage::

        product = make_product(current_stock=15, minimum_stock=20, maximum_stock=200)
    """

    def _make(
        name: str = "Widget",
        current_stock: int = 25,
        minimum_stock: int = 5,
        maximum_stock: int = 50,
        price: float = 10.0,
        category: str = "Hardware",
    ) -> Product:
        product = Product(
            name=name,
            description=f"{name} for tests",
            category=category,
            price=price,
            current_stock=current_stock,
            minimum_stock=minimum_stock,
            maximum_stock=maximum_stock,
            created_at=FIXED_NOW - timedelta(days=90),
            updated_at=FIXED_NOW - timedelta(days=90),
        )
        return store.save_product(product, is_new=True)

    return _make


@pytest.fixture
def seed_ledger(store) -> Callable[..., list[StockTransaction]]:
    """Append back-dated ledger entries for a product.

    Each entry is ``(days_before_now, type, quantity, reason)``. The product
    row is not touched: callers set ``current_stock`` to match.
    """

    def _seed(
        product_id: str,
        entries: list[tuple[float, TransactionType, int, str]],
        reference: datetime = FIXED_NOW,
    ) -> list[StockTransaction]:
        txns = [
            StockTransaction(
                product_id=product_id,
                transaction_type=txn_type,
                quantity=quantity,
                reason=reason,
                transaction_date=reference - timedelta(days=days_ago),
            )
            for days_ago, txn_type, quantity, reason in entries
        ]
        with store.atomic():
            store.transactions.add_many(txns)
        return txns

    return _seed


@pytest.fixture
def sample_product() -> Product:
    """An unsaved product: min 5, max 50, 25 on hand (one ``Initial stock`` entry)."""
    return Product.create(
        name="Widget",
        description="A standard widget",
        category="Hardware",
        price=10.0,
        minimum_stock=5,
        maximum_stock=50,
        initial_stock=25,
    )
