"""
Repository for the append-only ``stock_transactions`` ledger.

There is intentionally no update or delete method: ledger rows are only
ever inserted (and removed by the ``ON DELETE CASCADE`` of their product).
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from stock_forecaster.db.repositories.base import BaseRepository
from stock_forecaster.models.transaction import StockTransaction, TransactionType
from stock_forecaster.utils.time_utils import from_db_timestamp, to_db_timestamp

logger = logging.getLogger(__name__)


class StockTransactionRepository(BaseRepository):
    """Append/list access to the ``stock_transactions`` table."""

    def add(self, transaction: StockTransaction) -> None:
        """Append one ledger entry."""
        self.execute(
            """
            INSERT INTO stock_transactions (
                transaction_id, product_id, transaction_type,
                quantity, reason, transaction_date
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            _to_params(transaction),
            operation="add_transaction",
        )

    def add_many(self, transactions: list[StockTransaction]) -> int:
        """Append several ledger entries.

        Returns:
            Number of entries written.
        """
        if not transactions:
            return 0
        self.executemany(
            """
            INSERT INTO stock_transactions (
                transaction_id, product_id, transaction_type,
                quantity, reason, transaction_date
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            [_to_params(t) for t in transactions],
            operation="add_transactions",
        )
        return len(transactions)

    def get_by_product_id(self, product_id: str) -> list[StockTransaction]:
        """All entries for a product, newest first."""
        rows = self.fetchall(
            """
            SELECT * FROM stock_transactions
            WHERE product_id = ?
            ORDER BY transaction_date DESC, rowid DESC;
            """,
            (product_id,),
            operation="list_product_transactions",
        )
        return [_row_to_transaction(r) for r in rows]

    def get_by_date_range(self, start: datetime, end: datetime) -> list[StockTransaction]:
        """All entries with ``start <= transaction_date <= end``, newest first."""
        rows = self.fetchall(
            """
            SELECT * FROM stock_transactions
            WHERE transaction_date >= ? AND transaction_date <= ?
            ORDER BY transaction_date DESC, rowid DESC;
            """,
            (to_db_timestamp(start), to_db_timestamp(end)),
            operation="list_transactions_by_date",
        )
        return [_row_to_transaction(r) for r in rows]

    def get_by_product_in_range(
        self,
        product_id: str,
        start: datetime,
        end: datetime,
    ) -> list[StockTransaction]:
        """Entries for one product within ``[start, end]``, oldest first.

        This is the replay order used by the trend analyzer.
        """
        rows = self.fetchall(
            """
            SELECT * FROM stock_transactions
            WHERE product_id = ?
              AND transaction_date >= ? AND transaction_date <= ?
            ORDER BY transaction_date ASC, rowid ASC;
            """,
            (product_id, to_db_timestamp(start), to_db_timestamp(end)),
            operation="list_product_transactions_in_range",
        )
        return [_row_to_transaction(r) for r in rows]

    def get_recent(self, count: int = 50) -> list[StockTransaction]:
        """The ``count`` most recent entries across all products."""
        rows = self.fetchall(
            """
            SELECT * FROM stock_transactions
            ORDER BY transaction_date DESC, rowid DESC
            LIMIT ?;
            """,
            (count,),
            operation="list_recent_transactions",
        )
        return [_row_to_transaction(r) for r in rows]

    def count_for_product(self, product_id: str) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) AS n FROM stock_transactions WHERE product_id = ?;",
            (product_id,),
            operation="count_transactions",
        )
        assert row is not None
        return int(row["n"])


# ── Private helpers ────────────────────────────────────────────────────────────

def _to_params(transaction: StockTransaction) -> tuple:
    return (
        transaction.transaction_id,
        transaction.product_id,
        transaction.transaction_type.value,
        transaction.quantity,
        transaction.reason,
        to_db_timestamp(transaction.transaction_date),
    )


def _row_to_transaction(row: sqlite3.Row) -> StockTransaction:
    return StockTransaction(
        transaction_id=row["transaction_id"],
        product_id=row["product_id"],
        transaction_type=TransactionType(row["transaction_type"]),
        quantity=row["quantity"],
        reason=row["reason"],
        transaction_date=from_db_timestamp(row["transaction_date"]),
    )
