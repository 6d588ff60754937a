"""Record Store.

Owns the four persisted collections (patients, encounters, observations, logs)
on top of a StoragePort. Patients are upserted with version lineage; every
other collection is append-only.

Architecture:
    - The store is an explicit handle injected into whoever needs it
    - Collections are loaded and saved whole through the storage port
    - Storage failures surface as StorageError
"""

import logging
import threading
from datetime import date
from typing import Optional, Type, TypeVar

from pydantic import BaseModel

from src.domain.canonical_records import (
    ContactPoint,
    EncounterRecord,
    HumanName,
    IngestionLogEntry,
    ObservationRecord,
    PatientRecord,
    patient_reference,
)
from src.domain.cdc_models import ChangeEvent
from src.domain.enums import AdministrativeGender, ContactPointSystem
from src.domain.ports import Result, StorageError, StoragePort
from src.domain.services.change_detector import BOOKKEEPING_FIELDS, ChangeDetector
from src.domain.utils import Clock, utc_now

logger = logging.getLogger(__name__)

PATIENTS = "patients"
ENCOUNTERS = "encounters"
OBSERVATIONS = "observations"
LOGS = "logs"
COLLECTIONS = (PATIENTS, ENCOUNTERS, OBSERVATIONS, LOGS)

DEMO_PATIENT_ID = "p-demo-1"

R = TypeVar("R", bound=BaseModel)


def demo_patient(now) -> PatientRecord:
    """The single patient a fresh or reset store starts with."""
    return PatientRecord(
        id=DEMO_PATIENT_ID,
        active=True,
        name=[HumanName(use="official", family="Demo", given=["User"])],
        gender=AdministrativeGender.OTHER,
        birth_date=date(2000, 1, 1),
        telecom=[ContactPoint(system=ContactPointSystem.EMAIL, value="demo@example.com")],
        triage_level="P4",
        version=1,
        last_updated=now,
    )


class RecordStore:
    """Persistent patient, encounter, observation and log collections.

    Parameters:
        storage: Key-value storage port holding the collections
        clock: Source of last_updated timestamps
        seed_if_empty: Seed the demo patient when storage has never held patients

    Raises:
        StorageError: If initial seeding fails
    """

    def __init__(self, storage: StoragePort, clock: Clock = utc_now, seed_if_empty: bool = True):
        self.storage = storage
        self.clock = clock
        self._lock = threading.RLock()

        if seed_if_empty and self._load_documents(PATIENTS) is None:
            logger.info("Empty storage; seeding demo patient")
            self._save(PATIENTS, [demo_patient(self.clock())])

    def lock(self) -> threading.RLock:
        """Re-entrant lock serializing whole batches against this store."""
        return self._lock

    # ------------------------------------------------------------------
    # Storage plumbing
    # ------------------------------------------------------------------

    def _load_documents(self, key: str) -> Optional[list[dict]]:
        result = self.storage.load(key)
        _raise_on_failure(result, "load", key)
        return result.value

    def _load(self, key: str, model: Type[R]) -> list[R]:
        return [model.model_validate(doc) for doc in self._load_documents(key) or []]

    def _save(self, key: str, records: list[BaseModel]) -> None:
        documents = [record.model_dump(mode="json") for record in records]
        _raise_on_failure(self.storage.save(key, documents), "save", key)

    def _append(self, key: str, model: Type[R], record: R) -> R:
        with self._lock:
            records = self._load(key, model)
            records.append(record)
            self._save(key, records)
        return record

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_patient(
        self,
        patient: PatientRecord,
        ingestion_id: Optional[str] = None,
    ) -> tuple[PatientRecord, list[ChangeEvent]]:
        """Insert a new patient or merge into the stored one.

        Fields explicitly set on the incoming record overwrite the stored
        values; the version is bumped by exactly one and last_updated is set
        to now. A new patient is stored at version 1.

        Parameters:
            patient: Incoming patient record
            ingestion_id: Ingestion run id stamped on the change events

        Returns:
            Tuple of (stored record, field-level change events)
        """
        detector = ChangeDetector(ingestion_id=ingestion_id)
        now = self.clock()

        with self._lock:
            patients = self._load(PATIENTS, PatientRecord)
            position = next((i for i, p in enumerate(patients) if p.id == patient.id), None)

            if position is None:
                stored = patient.model_copy(update={"version": 1, "last_updated": now})
                patients.append(stored)
                changes = detector.generate_insert_changes(stored, PATIENTS, stored.id)
                logger.info(f"Inserted patient {stored.id}")
            else:
                existing = patients[position]
                incoming = {
                    name: getattr(patient, name)
                    for name in patient.model_fields_set
                    if name not in BOOKKEEPING_FIELDS
                }
                merged = {**dict(existing), **incoming, "version": existing.version + 1, "last_updated": now}
                stored = PatientRecord.model_validate(merged)
                patients[position] = stored
                changes = detector.detect_changes(existing, stored, PATIENTS, stored.id)
                logger.info(f"Updated patient {stored.id} to version {stored.version}")

            self._save(PATIENTS, patients)

        return stored, changes

    def append_encounter(self, encounter: EncounterRecord) -> EncounterRecord:
        return self._append(ENCOUNTERS, EncounterRecord, encounter)

    def append_observation(self, observation: ObservationRecord) -> ObservationRecord:
        return self._append(OBSERVATIONS, ObservationRecord, observation)

    def append_log(self, entry: IngestionLogEntry) -> IngestionLogEntry:
        return self._append(LOGS, IngestionLogEntry, entry)

    def reset(self) -> None:
        """Clear every collection and seed the demo patient."""
        with self._lock:
            _raise_on_failure(self.storage.clear(), "clear", None)
            self._save(PATIENTS, [demo_patient(self.clock())])
        logger.info("Store reset to demo patient")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_patients(self) -> list[PatientRecord]:
        return self._load(PATIENTS, PatientRecord)

    def get_patient(self, patient_id: str) -> Optional[PatientRecord]:
        return next((p for p in self.list_patients() if p.id == patient_id), None)

    def encounters_for_patient(self, patient_id: str, exact: bool = False) -> list[EncounterRecord]:
        """Encounters whose subject reference mentions the patient id.

        Substring matching is the default, so "p-1" also matches "Patient/p-12";
        pass exact=True to match "Patient/<id>" only.
        """
        return [
            e for e in self._load(ENCOUNTERS, EncounterRecord)
            if _subject_matches(e.subject_reference, patient_id, exact)
        ]

    def observations_for_patient(self, patient_id: str, exact: bool = False) -> list[ObservationRecord]:
        """Observations for a patient, matched the same way as encounters_for_patient."""
        return [
            o for o in self._load(OBSERVATIONS, ObservationRecord)
            if _subject_matches(o.subject_reference, patient_id, exact)
        ]

    def list_encounters(self) -> list[EncounterRecord]:
        return self._load(ENCOUNTERS, EncounterRecord)

    def list_observations(self) -> list[ObservationRecord]:
        return self._load(OBSERVATIONS, ObservationRecord)

    def list_logs(self) -> list[IngestionLogEntry]:
        """Log entries, most recent first."""
        return sorted(self._load(LOGS, IngestionLogEntry), key=lambda e: e.timestamp, reverse=True)


def _subject_matches(subject_reference: str, patient_id: str, exact: bool) -> bool:
    if exact:
        return subject_reference == patient_reference(patient_id)
    return patient_id in subject_reference


def _raise_on_failure(result: Result, operation: str, key: Optional[str]) -> None:
    if result.is_failure():
        raise StorageError(
            result.error or f"Storage {operation} failed",
            operation=operation,
            details={"key": key, **(result.error_details or {})},
        )
