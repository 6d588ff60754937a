"""Domain Services.

This package contains domain services that implement business logic
without infrastructure dependencies.
"""

from src.domain.services.change_detector import ChangeDetector
from src.domain.services.ingestion_orchestrator import IngestionOrchestrator, IngestionSummary
from src.domain.services.record_store import RecordStore
from src.domain.services.row_extractor import RawRecord, RowExtractor, read_records
from src.domain.services.schema_detector import ColumnMap, detect_columns

__all__ = [
    'ChangeDetector',
    'ColumnMap',
    'IngestionOrchestrator',
    'IngestionSummary',
    'RecordStore',
    'RawRecord',
    'RowExtractor',
    'detect_columns',
    'read_records',
]
