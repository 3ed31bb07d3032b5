"""
Base repository providing shared SQLite execution helpers.

All repositories inherit from ``BaseRepository`` and receive a
``sqlite3.Connection`` plus the re-entrant lock that guards it. Both are
owned by ``InventoryStore``; repositories never open or close connections.

Design:
  - No ORM — all SQL is explicit and lives in repository methods.
  - Repositories speak pydantic models, not raw dicts.
  - Every ``sqlite3.Error`` is logged with the failing operation and
    re-raised as an opaque ``StoreError`` so callers can tell a store outage
    apart from validation or not-found errors without seeing driver details.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Any, Optional

from stock_forecaster.exceptions import StoreError

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
        lock: Re-entrant lock serializing use of ``conn`` across threads.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.conn = conn
        self.lock = lock or threading.RLock()

    def execute(self, sql: str, params: Params = (), operation: str = "execute") -> sqlite3.Cursor:
        """Execute a single SQL statement.

        Args:
            sql: SQL string with ``?`` or ``:name`` placeholders.
            params: Positional tuple or named dict of parameters.
            operation: Label used in logs and in the raised ``StoreError``.

        Returns:
            The resulting ``sqlite3.Cursor``.

        Raises:
            StoreError: If SQLite rejects the statement.
        """
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        with self.lock:
            try:
                return self.conn.execute(sql, params)
            except sqlite3.Error as exc:
                logger.error(
                    "Store operation %s failed: %s", operation, exc,
                    extra={"operation": operation},
                )
                raise StoreError(operation) from exc

    def executemany(
        self,
        sql: str,
        params_list: list[Params],
        operation: str = "executemany",
    ) -> sqlite3.Cursor:
        """Execute a SQL statement once per element of ``params_list``."""
        logger.debug("SQL (many): %s | count: %d", sql.strip(), len(params_list))
        with self.lock:
            try:
                return self.conn.executemany(sql, params_list)
            except sqlite3.Error as exc:
                logger.error(
                    "Store operation %s failed: %s", operation, exc,
                    extra={"operation": operation},
                )
                raise StoreError(operation) from exc

    def fetchone(
        self,
        sql: str,
        params: Params = (),
        operation: str = "fetchone",
    ) -> Optional[sqlite3.Row]:
        """Execute a query and return the first row, or ``None``."""
        with self.lock:
            return self.execute(sql, params, operation).fetchone()

    def fetchall(
        self,
        sql: str,
        params: Params = (),
        operation: str = "fetchall",
    ) -> list[sqlite3.Row]:
        """Execute a query and return all rows."""
        with self.lock:
            return self.execute(sql, params, operation).fetchall()
