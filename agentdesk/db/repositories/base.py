"""Base repository class."""

from typing import Any, List, Optional, Sequence

import duckdb
from ...utils.logger import get_app_logger


class BaseRepository:
    """Shared query plumbing for DuckDB-backed repositories."""

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        """
        Initialize repository with database connection.

        Args:
            conn: DuckDB connection instance
        """
        self.conn = conn
        self.logger = get_app_logger()

    def _write(self, action: str, query: str, params: Sequence[Any] = ()) -> bool:
        """
        Run a write statement, reporting failure as False.

        Args:
            action: What is being done, for the error log
            query: SQL statement
            params: Positional parameters

        Returns:
            True if the statement succeeded
        """
        try:
            self.conn.execute(query, list(params))
            return True
        except duckdb.Error as e:
            self.logger.error(f"Failed to {action}: {e}")
            return False

    def _fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[tuple]:
        return self.conn.execute(query, list(params)).fetchone()

    def _fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[tuple]:
        return self.conn.execute(query, list(params)).fetchall()
