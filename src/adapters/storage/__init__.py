"""Storage adapters for Intake-Relay.

This module contains storage adapters that implement the StoragePort interface
for persisting the record collections.
"""

from src.adapters.storage.duckdb_adapter import DuckDBStorageAdapter
from src.adapters.storage.memory_adapter import InMemoryStorageAdapter

__all__ = ["DuckDBStorageAdapter", "InMemoryStorageAdapter"]
