"""Ingestion Orchestrator.

Drives one batch of form responses through the pipeline:

    header row -> detect_columns (once)
    each row   -> RowExtractor -> MessageEncoder -> MessageDecoder
               -> upsert patient -> append encounter / observations
               -> Success log entry

Row-level failures are recorded as one Failed log entry each and the batch
continues. Batch-level failures (no usable header, no responses, unreachable
source) stop the batch and are recorded as a single Failed entry.

Row writes are not transactional: a storage failure after the patient upsert
keeps the new patient version without its encounter, and the row is logged
Failed. A storage failure while logging a row failure ends the batch.
"""

import logging
import random
import uuid
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from src.domain.canonical_records import IngestionLogEntry
from src.domain.enums import IngestionSource, IngestionStatus
from src.domain.hl7.decoder import MessageDecoder
from src.domain.hl7.encoder import MessageEncoder, MessageHeader
from src.domain.ports import (
    EmptySourceError,
    IngestionError,
    MessageDecodeError,
    Result,
    RowParseError,
    SchemaInferenceError,
    SourceFetchError,
    SourcePort,
    StorageError,
)
from src.domain.services.record_store import RecordStore
from src.domain.services.row_extractor import RawRecord, RowExtractor, read_records
from src.domain.services.schema_detector import detect_columns
from src.domain.utils import Clock, utc_now

logger = logging.getLogger(__name__)

EMPTY_SHEET_MESSAGE = "Sheet appears empty. Please add at least one response."
# Upper bound on raw row text kept in a Failed log entry
MAX_SNIPPET_LENGTH = 500


@dataclass(frozen=True)
class IngestionSummary:
    """Outcome counts for one batch."""
    ingestion_id: str
    ingested: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def message(self) -> str:
        text = f"Success: Synced {self.ingested} records from Sheet."
        if self.failed:
            text += f" {self.failed} row(s) failed."
        return text


class IngestionOrchestrator:
    """Runs form batches into a RecordStore.

    Parameters:
        store: Record store receiving the decoded records
        clock: Source of the current instant for every stage
        rng: Random source shared by encoder and decoder
        header: MSH identifiers for encoded messages
        source: Source label recorded on log entries
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock = utc_now,
        rng: Optional[random.Random] = None,
        header: Optional[MessageHeader] = None,
        source: IngestionSource = IngestionSource.GOOGLE_FORMS,
    ):
        self.store = store
        self.clock = clock
        self.rng = rng or random.Random()
        self.encoder = MessageEncoder(clock=clock, rng=self.rng, header=header)
        self.decoder = MessageDecoder(clock=clock, rng=self.rng)
        self.source = source

    def ingest_from(self, source: SourcePort) -> Result[IngestionSummary]:
        """Fetch text through a SourcePort and ingest it.

        Returns:
            Result[IngestionSummary]; failure when the fetch or the batch fails
        """
        ingestion_id = _new_ingestion_id()
        logger.info(f"[{ingestion_id}] Fetching {source.location}")
        try:
            text = source.fetch()
        except SourceFetchError as e:
            return self._batch_failure(ingestion_id, e)
        return self.ingest_text(text, ingestion_id=ingestion_id)

    def ingest_text(self, text: str, ingestion_id: Optional[str] = None) -> Result[IngestionSummary]:
        """Ingest one batch of comma-separated text, header record first.

        Parameters:
            text: Raw export text
            ingestion_id: Id for this run (generated when omitted)

        Returns:
            Result[IngestionSummary]: counts on success, the batch error on failure
        """
        ingestion_id = ingestion_id or _new_ingestion_id()

        with self.store.lock():
            try:
                records = read_records(text)
                header = next(records, None)
                if header is None or header.is_blank:
                    raise SchemaInferenceError("Source has no header row")
                if header.cells is None:
                    raise RowParseError(f"Unreadable header row: {header.error}", row_number=1, raw_row=header.text)

                column_map = detect_columns(header.cells)
                rows = list(records)
                if all(record.is_blank for record in rows):
                    raise EmptySourceError(EMPTY_SHEET_MESSAGE)
            except (SchemaInferenceError, SourceFetchError, RowParseError) as e:
                return self._batch_failure(ingestion_id, e)

            extractor = RowExtractor(column_map, clock=self.clock)
            ingested = failed = skipped = 0

            try:
                for record in rows:
                    outcome = self._ingest_row(extractor, record, ingestion_id)
                    if outcome is None:
                        skipped += 1
                    elif outcome:
                        ingested += 1
                    else:
                        failed += 1
            except StorageError as e:
                # Raised only while recording a row failure: the store itself is unusable.
                return self._batch_failure(ingestion_id, e)

        summary = IngestionSummary(ingestion_id, ingested=ingested, failed=failed, skipped=skipped)
        logger.info(f"[{ingestion_id}] {summary.message}")
        return Result.success_result(summary)

    def _ingest_row(self, extractor: RowExtractor, record: RawRecord, ingestion_id: str) -> Optional[bool]:
        """True when stored, False when the row failed, None for a blank row."""
        row_number = record.line_number
        try:
            row = extractor.extract(record)
            if row is None:
                return None

            message = self.encoder.encode(row)
            decoded = self.decoder.decode(message)

            patient, changes = self.store.upsert_patient(decoded.patient, ingestion_id=ingestion_id)
            for change in changes:
                logger.debug(f"[{ingestion_id}] Change: {change.to_audit_dict()}")
            self.store.append_encounter(decoded.encounter)
            for observation in decoded.observations:
                self.store.append_observation(observation)

            self.store.append_log(IngestionLogEntry(
                timestamp=self.clock(),
                source=self.source,
                status=IngestionStatus.SUCCESS,
                raw_snippet=message,
                patient_reference=patient.reference,
            ))
            return True

        except (RowParseError, MessageDecodeError, StorageError, ValidationError) as e:
            logger.warning(
                f"[{ingestion_id}] Row {row_number} failed: {type(e).__name__}: {e}",
                extra={"ingestion_id": ingestion_id, "row_number": row_number},
            )
            self.store.append_log(IngestionLogEntry(
                timestamp=self.clock(),
                source=self.source,
                status=IngestionStatus.FAILED,
                raw_snippet=f"Row {row_number} failed: {e}\n{record.text[:MAX_SNIPPET_LENGTH]}",
            ))
            return False

    def _batch_failure(self, ingestion_id: str, error: IngestionError) -> Result[IngestionSummary]:
        logger.error(f"[{ingestion_id}] Batch ingestion failed: {error}")
        prefix = "Failed to fetch CSV" if isinstance(error, SourceFetchError) else "Batch ingestion failed"
        details = {"ingestion_id": ingestion_id, "location": getattr(error, "source", None)}
        try:
            self.store.append_log(IngestionLogEntry(
                timestamp=self.clock(),
                source=self.source,
                status=IngestionStatus.FAILED,
                raw_snippet=f"{prefix}: {error}",
            ))
        except StorageError as log_error:
            logger.error(f"[{ingestion_id}] Could not record batch failure: {log_error}")
            details["log_error"] = str(log_error)
        return Result.failure_result(error, error_details=details)


def _new_ingestion_id() -> str:
    return f"ing-{uuid.uuid4().hex[:12]}"
