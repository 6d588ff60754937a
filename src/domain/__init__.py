"""Domain layer for Intake-Relay.

This module contains the core business logic and canonical record schemas.
All domain models are pure Python with no external dependencies beyond Pydantic.
"""

from .canonical_records import (
    EncounterRecord,
    IngestionLogEntry,
    NormalizedFormRow,
    ObservationRecord,
    PatientRecord,
)

__all__ = [
    "EncounterRecord",
    "IngestionLogEntry",
    "NormalizedFormRow",
    "ObservationRecord",
    "PatientRecord",
]
