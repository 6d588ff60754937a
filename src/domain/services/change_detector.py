"""Change Detection Service.

Detects field-level changes between the stored version of a record and its
replacement, producing ChangeEvent objects for the ingestion log.

Architecture:
    - Pure domain service with no infrastructure dependencies
    - Compares JSON-mode dumps so nested models, dates and enums compare by value
    - Bookkeeping fields (version, last_updated) are never reported as changes
"""

import json
import logging
import math
from typing import Any, Optional

from pydantic import BaseModel

from src.domain.cdc_models import ChangeEvent
from src.domain.enums import ChangeType

logger = logging.getLogger(__name__)

# Fields maintained by the store itself rather than by ingested data.
BOOKKEEPING_FIELDS = frozenset({"id", "version", "last_updated"})


class ChangeDetector:
    """Service for detecting field-level changes between records.

    Parameters:
        ingestion_id: ID of the current ingestion run
    """

    def __init__(self, ingestion_id: Optional[str] = None):
        self.ingestion_id = ingestion_id

    def detect_changes(
        self,
        old: BaseModel,
        new: BaseModel,
        collection: str,
        record_id: str,
    ) -> list[ChangeEvent]:
        """Compare two versions of a record field by field.

        Parameters:
            old: Stored version
            new: Replacement version
            collection: Collection name for the events
            record_id: Id of the record

        Returns:
            One UPDATE event per field whose value differs
        """
        old_doc = old.model_dump(mode="json")
        new_doc = new.model_dump(mode="json")

        events = []
        for field_name in new_doc:
            if field_name in BOOKKEEPING_FIELDS:
                continue
            old_value = old_doc.get(field_name)
            new_value = new_doc[field_name]
            if self.values_equal(old_value, new_value):
                continue
            events.append(ChangeEvent(
                collection=collection,
                record_id=record_id,
                field_name=field_name,
                old_value=old_value,
                new_value=new_value,
                change_type=ChangeType.UPDATE,
                ingestion_id=self.ingestion_id,
            ))
        return events

    def generate_insert_changes(
        self,
        record: BaseModel,
        collection: str,
        record_id: str,
    ) -> list[ChangeEvent]:
        """Generate INSERT events for every data field of a new record."""
        document = record.model_dump(mode="json")
        return [
            ChangeEvent(
                collection=collection,
                record_id=record_id,
                field_name=field_name,
                old_value=None,
                new_value=value,
                change_type=ChangeType.INSERT,
                ingestion_id=self.ingestion_id,
            )
            for field_name, value in document.items()
            if field_name not in BOOKKEEPING_FIELDS
        ]

    @staticmethod
    def values_equal(old: Any, new: Any) -> bool:
        """Compare two values accounting for NaN, None, lists and dicts.

        Parameters:
            old: Old value
            new: New value

        Returns:
            True if values are equal, False otherwise
        """
        if isinstance(old, (list, tuple)) and isinstance(new, (list, tuple)):
            return _canonical(old) == _canonical(new)
        if isinstance(old, (list, tuple)) or isinstance(new, (list, tuple)):
            return False

        if isinstance(old, dict) and isinstance(new, dict):
            return _canonical(old) == _canonical(new)
        if isinstance(old, dict) or isinstance(new, dict):
            return False

        if _is_null(old) and _is_null(new):
            return True
        if _is_null(old) or _is_null(new):
            return False

        return old == new


def _is_null(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)
