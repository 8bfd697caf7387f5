"""DuckDB connection and schema bootstrap."""

from pathlib import Path
from typing import Optional

import duckdb

from ..utils.logger import get_app_logger

IN_MEMORY = ":memory:"

# Conversation records only; the message log stays in the conversation's volume
SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id VARCHAR PRIMARY KEY,
        status VARCHAR NOT NULL,
        session_id VARCHAR,
        sandbox_id VARCHAR,
        agent_pid BIGINT,
        volume_id VARCHAR NOT NULL,
        error_message VARCHAR,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
)


class DatabaseConnection:
    """Owns the DuckDB connection shared by the repositories."""

    def __init__(self, db_path: str = "./data/agentdesk.db"):
        """
        Open (creating if needed) the database and its tables.

        Args:
            db_path: DuckDB file, or ":memory:"
        """
        self.db_path = db_path
        self.logger = get_app_logger()
        self.conn: Optional[duckdb.DuckDBPyConnection] = None

        if db_path != IN_MEMORY:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self.conn = duckdb.connect(db_path)
        except duckdb.Error as e:
            self.logger.error(f"Cannot open DuckDB at {db_path}: {e}")
            raise
        self.logger.info(f"Connected to DuckDB at {db_path}")

        self._init_schema()

    def _init_schema(self):
        """Create missing tables; safe to run repeatedly."""
        for statement in SCHEMA:
            self.conn.execute(statement)
        self.logger.debug(f"Schema ready ({len(SCHEMA)} statements)")

    def close(self):
        """Close the connection; further calls are no-ops."""
        if self.conn is None:
            return
        self.conn.close()
        self.conn = None
        self.logger.info(f"Closed DuckDB at {self.db_path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
