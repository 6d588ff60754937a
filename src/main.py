"""Main entry point for the Intake-Relay ingestion pipeline.

This module wires configuration, storage and the ingestion orchestrator
together, and provides a plain argparse entry point for scripted runs. The
richer interactive interface lives in src.cli.

Architecture:
    - Follows Hexagonal Architecture principles
    - Storage adapter is configured via configuration manager
    - Source adapter is selected from the location (URL or file path)
"""

import argparse
import logging
import random
import sys
from typing import Optional

from src.adapters.sources import get_source
from src.adapters.storage import DuckDBStorageAdapter, InMemoryStorageAdapter
from src.domain.hl7.encoder import MessageHeader
from src.domain.ports import Result, StorageError, StoragePort
from src.domain.services.ingestion_orchestrator import IngestionOrchestrator, IngestionSummary
from src.domain.services.record_store import RecordStore
from src.infrastructure.config_manager import MessagingConfig, StorageConfig, get_storage_config
from src.infrastructure.logging_config import setup_logging
from src.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def create_storage_adapter(storage_config: Optional[StorageConfig] = None) -> StoragePort:
    """Create storage adapter based on configuration.

    Returns:
        StoragePort: Configured storage adapter instance

    Raises:
        ValueError: If storage type is unsupported
    """
    storage_config = storage_config or get_storage_config()

    if storage_config.storage_type == "duckdb":
        logger.info(f"Initializing DuckDB adapter with path: {storage_config.get_db_path()}")
        return DuckDBStorageAdapter(storage_config=storage_config)
    elif storage_config.storage_type == "memory":
        logger.info("Initializing in-memory storage adapter")
        return InMemoryStorageAdapter()
    else:
        raise ValueError(f"Unsupported storage type: {storage_config.storage_type}")


def create_record_store(storage: Optional[StoragePort] = None) -> RecordStore:
    return RecordStore(storage or create_storage_adapter())


def create_orchestrator(
    store: RecordStore,
    messaging_config: Optional[MessagingConfig] = None,
    rng: Optional[random.Random] = None,
) -> IngestionOrchestrator:
    """Build an orchestrator whose MSH identifiers come from configuration."""
    messaging_config = messaging_config or settings.messaging_config
    header = MessageHeader(**messaging_config.model_dump())
    return IngestionOrchestrator(store, rng=rng, header=header)


def process_ingestion(
    location: str,
    store: RecordStore,
    timeout: Optional[float] = None,
) -> Result[IngestionSummary]:
    """Ingest one form export into a store.

    Parameters:
        location: Published sheet URL or local CSV path
        store: Record store receiving the records
        timeout: Fetch timeout in seconds for URLs (defaults to settings)

    Returns:
        Result[IngestionSummary]
    """
    source = get_source(location, timeout=timeout if timeout is not None else settings.fetch_timeout)
    orchestrator = create_orchestrator(store)
    return orchestrator.ingest_from(source)


def main():
    """Main entry point for the Intake-Relay ingestion pipeline."""
    parser = argparse.ArgumentParser(
        description=f"{settings.app_name} - Clinical Form Intake Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest a local export
  python -m src.main --input data/responses.csv

  # Ingest a published sheet into a DuckDB file
  export IR_STORAGE_TYPE=duckdb
  export IR_DB_PATH=data/intake.duckdb
  python -m src.main --input "https://docs.google.com/spreadsheets/d/<id>/pub?output=csv"
        """
    )
    parser.add_argument("--input", "-i", required=True, type=str, help="Published sheet URL or CSV file path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    setup_logging(use_json=settings.log_json, log_level="DEBUG" if args.verbose else settings.log_level)
    logger.info(f"Starting {settings.app_name}...")

    try:
        storage = create_storage_adapter()
    except (ValueError, StorageError) as e:
        logger.error(f"Failed to create storage adapter: {str(e)}")
        sys.exit(1)

    try:
        store = create_record_store(storage)
        result = process_ingestion(args.input, store)
        if result.is_failure():
            logger.error(f"Ingestion failed: {result.error}")
            sys.exit(1)

        summary = result.value
        logger.info(summary.message)
        sys.exit(1 if summary.failed else 0)
    finally:
        storage.close()


if __name__ == "__main__":
    main()
