"""
SQLite schema DDL.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.

Tables (in FK order):
  1. products            — current state of each stock aggregate, with a
                           ``version`` column for optimistic concurrency.
  2. stock_transactions  — append-only ledger (→ products, ON DELETE CASCADE).

Timestamps are stored as fixed-width UTC text (see
``stock_forecaster.utils.time_utils.to_db_timestamp``) so range predicates
can compare strings directly.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_PRODUCTS = """
CREATE TABLE IF NOT EXISTS products (
    product_id      TEXT    PRIMARY KEY,
    name            TEXT    NOT NULL CHECK (length(trim(name)) > 0),
    description     TEXT    NOT NULL DEFAULT '',
    category        TEXT    NOT NULL DEFAULT 'Uncategorized',
    price           REAL    NOT NULL CHECK (price >= 0),
    current_stock   INTEGER NOT NULL CHECK (current_stock >= 0),
    minimum_stock   INTEGER NOT NULL CHECK (minimum_stock >= 0),
    maximum_stock   INTEGER NOT NULL,
    version         INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL,
    CHECK (maximum_stock > minimum_stock)
);
CREATE INDEX IF NOT EXISTS idx_products_category ON products (category);
CREATE INDEX IF NOT EXISTS idx_products_name ON products (name);
CREATE INDEX IF NOT EXISTS idx_products_current_stock ON products (current_stock);
"""

_DDL_STOCK_TRANSACTIONS = """
CREATE TABLE IF NOT EXISTS stock_transactions (
    transaction_id      TEXT    PRIMARY KEY,
    product_id          TEXT    NOT NULL REFERENCES products(product_id) ON DELETE CASCADE,
    transaction_type    TEXT    NOT NULL CHECK (transaction_type IN ('StockIn', 'StockOut')),
    quantity            INTEGER NOT NULL CHECK (quantity > 0),
    reason              TEXT    NOT NULL DEFAULT '',
    transaction_date    TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_stock_tx_product ON stock_transactions (product_id);
CREATE INDEX IF NOT EXISTS idx_stock_tx_date ON stock_transactions (transaction_date);
CREATE INDEX IF NOT EXISTS idx_stock_tx_product_date
    ON stock_transactions (product_id, transaction_date);
"""

_ALL_DDL = [_DDL_PRODUCTS, _DDL_STOCK_TRANSACTIONS]

ALL_TABLE_NAMES = ["products", "stock_transactions"]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they do not exist.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
