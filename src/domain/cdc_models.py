"""Change Data Capture (CDC) Models.

This module defines models for tracking field-level changes to stored patient
records. The record store emits these on every upsert so the orchestrator can
log what an ingestion actually changed.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Events are immutable once created
    - Follows Hexagonal Architecture: Domain Core is isolated from Adapters
"""

import json
import math
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.domain.enums import ChangeType
from src.domain.utils import utc_now


class ChangeEvent(BaseModel):
    """Represents a single field-level change in a record.

    Parameters:
        collection: Name of the record collection (patients)
        record_id: Id of the changed record
        field_name: Name of the field that changed
        old_value: Previous value (None for INSERT)
        new_value: New value
        change_type: INSERT or UPDATE
        changed_at: Timestamp when change occurred
        ingestion_id: ID of the ingestion run that caused this change
    """

    collection: str = Field(..., description="Name of the record collection")
    record_id: str = Field(..., description="Id of the changed record")
    field_name: str = Field(..., description="Name of the field that changed")
    old_value: Optional[Any] = Field(None, description="Previous value (before change)")
    new_value: Optional[Any] = Field(None, description="New value (after change)")
    change_type: ChangeType = Field(..., description="Type of change: INSERT or UPDATE")
    changed_at: datetime = Field(default_factory=utc_now, description="Timestamp when change occurred")
    ingestion_id: Optional[str] = Field(None, description="ID of the ingestion run")

    def to_audit_dict(self) -> dict:
        """Flatten to a dictionary with string-serialized values, for logging.

        Returns:
            Dictionary with serialized old/new values
        """
        return {
            'change_id': str(uuid.uuid4()),
            'collection': self.collection,
            'record_id': self.record_id,
            'field_name': self.field_name,
            'old_value': self._serialize_value(self.old_value),
            'new_value': self._serialize_value(self.new_value),
            'change_type': self.change_type.value,
            'changed_at': self.changed_at.isoformat(),
            'ingestion_id': self.ingestion_id,
        }

    @staticmethod
    def _serialize_value(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, float) and math.isnan(value):
            return None
        if isinstance(value, (list, dict)):
            return json.dumps(value, sort_keys=True, default=str)
        return str(value)

    model_config = ConfigDict(frozen=True)
