"""DuckDB Storage Adapter.

This adapter implements the StoragePort contract on top of DuckDB, an
in-process analytical database. Each record collection is stored as one row of
a key/value table whose value is the JSON-encoded document list.

Architecture:
    - Implements StoragePort (Hexagonal Architecture)
    - Isolated from domain core - only depends on ports and configuration
    - Each save replaces the whole collection in a single statement
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import duckdb

from src.domain.ports import Result, StorageError, StoragePort
from src.infrastructure.config_manager import StorageConfig

logger = logging.getLogger(__name__)

TABLE_NAME = "collections"


class DuckDBStorageAdapter(StoragePort):
    """DuckDB implementation of StoragePort.

    Parameters:
        storage_config: StorageConfig from configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)

    Example Usage:
        ```python
        adapter = DuckDBStorageAdapter(db_path="data/intake.duckdb")
        store = RecordStore(adapter)
        ```
    """

    def __init__(
        self,
        storage_config: Optional[StorageConfig] = None,
        db_path: Optional[str] = None,
    ):
        """Initialize DuckDB adapter.

        If both storage_config and db_path are provided, storage_config takes
        precedence. If neither is provided, defaults to an in-memory database.
        The connection is established lazily on the first operation.

        Raises:
            StorageError: If the config names another backend or the database
                directory does not exist
        """
        if storage_config:
            if storage_config.storage_type != "duckdb":
                raise StorageError(
                    f"StorageConfig type '{storage_config.storage_type}' does not match DuckDB adapter",
                    operation="__init__"
                )
            self.db_path = storage_config.get_db_path()
        elif db_path:
            self.db_path = db_path
        else:
            self.db_path = ":memory:"

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise StorageError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection, creating the table on first use."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except duckdb.Error as e:
                raise StorageError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                ) from e

        if not self._initialized:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                    key VARCHAR PRIMARY KEY,
                    documents VARCHAR NOT NULL,
                    document_count INTEGER NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)
            self._initialized = True
            logger.debug("DuckDB collection table ready")

        return self._connection

    def load(self, key: str) -> Result[Optional[list[dict]]]:
        """Load the documents stored under a key (None if never written)."""
        try:
            conn = self._get_connection()
            row = conn.execute(
                f"SELECT documents FROM {TABLE_NAME} WHERE key = ?", [key]
            ).fetchone()
            if row is None:
                return Result.success_result(None)
            return Result.success_result(json.loads(row[0]))

        except (StorageError, duckdb.Error, json.JSONDecodeError) as e:
            error_msg = f"Failed to load collection '{key}': {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation="load", details={"key": key}),
                error_type="StorageError"
            )

    def save(self, key: str, documents: list[dict]) -> Result[int]:
        """Replace the documents stored under a key."""
        try:
            payload = json.dumps(documents)
            conn = self._get_connection()
            conn.execute(
                f"INSERT OR REPLACE INTO {TABLE_NAME} (key, documents, document_count, updated_at) "
                "VALUES (?, ?, ?, ?)",
                [key, payload, len(documents), datetime.now(timezone.utc).replace(tzinfo=None)]
            )
            logger.debug(f"Saved {len(documents)} document(s) to '{key}'")
            return Result.success_result(len(documents))

        except (StorageError, duckdb.Error, TypeError, ValueError) as e:
            error_msg = f"Failed to save collection '{key}': {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation="save", details={"key": key}),
                error_type="StorageError"
            )

    def clear(self) -> Result[None]:
        """Remove every collection."""
        try:
            conn = self._get_connection()
            conn.execute(f"DELETE FROM {TABLE_NAME}")
            logger.info("Cleared all collections")
            return Result.success_result(None)

        except (StorageError, duckdb.Error) as e:
            error_msg = f"Failed to clear storage: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation="clear"),
                error_type="StorageError"
            )

    def close(self) -> None:
        """Close storage connection and release resources."""
        if self._connection is not None:
            try:
                self._connection.close()
                logger.info("Closed DuckDB connection")
            except duckdb.Error as e:
                logger.warning(f"Error closing connection: {str(e)}")
            finally:
                self._connection = None
                self._initialized = False
