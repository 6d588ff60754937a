"""Canonical Clinical Record Definitions.

This module defines the canonical data models for clinical entities produced by
the ingestion pipeline: the transient normalized form row, the persisted
Patient / Encounter / Observation records, and the ingestion log entry.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are immutable and validated before use (Pydantic V2)
    - Records serialize to JSON-compatible documents via model_dump(mode="json")
    - Follows Hexagonal Architecture: Domain Core is isolated from Adapters
"""

import math
import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from src.domain.enums import (
    AdministrativeGender,
    ContactPointSystem,
    EncounterStatus,
    IngestionSource,
    IngestionStatus,
    ObservationStatus,
)
from src.domain.utils import utc_now

PATIENT_REFERENCE_PREFIX = "Patient/"
DEFAULT_TRIAGE_LEVEL = "P4"
UCUM_SYSTEM = "http://unitsofmeasure.org"
MRN_SYSTEM = "urn:mrn"


def patient_reference(patient_id: str) -> str:
    """Build the subject reference string for a patient id."""
    return f"{PATIENT_REFERENCE_PREFIX}{patient_id}"


class HumanName(BaseModel):
    """A patient name split into family and given parts."""

    use: Optional[str] = Field(None, description="Name use (official, usual)")
    family: str = Field("", description="Family/last name")
    given: list[str] = Field(default_factory=list, description="Given names, in order")

    @property
    def text(self) -> str:
        return " ".join([*self.given, self.family]).strip()

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class ContactPoint(BaseModel):
    """A phone number or email address for a patient."""

    system: ContactPointSystem
    value: str
    use: Optional[str] = None

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class Identifier(BaseModel):
    """A business identifier (e.g. the raw MRN as received)."""

    system: str
    value: str

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class Coding(BaseModel):
    """A code from a terminology system (LOINC, actCode, ...)."""

    system: str
    code: str
    display: str = ""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class NormalizedFormRow(BaseModel):
    """One form submission after column mapping and defaulting.

    Transient: exists only during one row's pass through the pipeline.

    Parameters:
        timestamp: Submission timestamp as received (ISO 8601 when defaulted)
        patient_id: Identifier supplied by the form, if any
        full_name: Full name, given name first
        dob: Date of birth as received (YYYY-MM-DD expected)
        phone: Contact phone number
        email: Contact email address
        symptoms: Free-text reason for the visit
        triage_level: Acuity code P1 (most urgent) through P4
        heart_rate: Heart rate in bpm, if measured
        temp: Body temperature in Celsius, if measured
        sex: Administrative sex code (M/F); randomly chosen by the encoder when absent
    """

    timestamp: str
    patient_id: Optional[str] = None
    full_name: str = "Unknown Patient"
    dob: str = "2000-01-01"
    phone: str = ""
    email: str = ""
    symptoms: str = "General Update"
    triage_level: str = DEFAULT_TRIAGE_LEVEL
    heart_rate: Optional[str] = None
    temp: str = ""
    sex: Optional[str] = None

    @field_validator("patient_id", "heart_rate", "sex", mode="before")
    @classmethod
    def blank_to_none(cls, v) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class PatientRecord(BaseModel):
    """Canonical patient demographic record (simplified FHIR Patient resource).

    Persists until an explicit store reset. Every upsert of an existing id
    produces a new immutable instance with version incremented by one.

    Parameters:
        id: Canonical patient id (e.g. "p-1234")
        active: Whether the record is in active use
        name: Names of the patient (first entry is the primary name)
        gender: Administrative gender
        birth_date: Date of birth
        telecom: Email / phone contact points
        identifier: Business identifiers as received (raw MRN)
        triage_level: Triage extension value (P1-P4)
        version: Version counter, starts at 1
        last_updated: When this version was written
    """

    id: str = Field(..., description="Canonical patient id")
    active: bool = Field(default=True, description="Whether the record is active")
    name: list[HumanName] = Field(default_factory=list, description="Patient names")
    gender: AdministrativeGender = Field(
        default=AdministrativeGender.UNKNOWN,
        description="Gender (FHIR AdministrativeGender)"
    )
    birth_date: Optional[date] = Field(None, description="Date of birth")
    telecom: list[ContactPoint] = Field(default_factory=list, description="Contact points")
    identifier: list[Identifier] = Field(default_factory=list, description="Business identifiers")
    triage_level: str = Field(default=DEFAULT_TRIAGE_LEVEL, description="Triage extension (P1-P4)")
    version: int = Field(default=1, ge=1, description="Version counter")
    last_updated: datetime = Field(default_factory=utc_now, description="When this version was written")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Reject empty identifiers; the id is the upsert key."""
        if not v or not v.strip():
            raise ValueError("Patient id cannot be empty or whitespace only")
        return v.strip()

    @field_validator("gender", mode="before")
    @classmethod
    def validate_gender(cls, v) -> AdministrativeGender:
        """Convert string values to FHIR AdministrativeGender enum.

        Accepts the enum values and their single-letter abbreviations.
        """
        if v is None:
            return AdministrativeGender.UNKNOWN
        if isinstance(v, AdministrativeGender):
            return v

        v_str = str(v).strip().lower()
        mapping = {
            "m": AdministrativeGender.MALE,
            "male": AdministrativeGender.MALE,
            "f": AdministrativeGender.FEMALE,
            "female": AdministrativeGender.FEMALE,
            "o": AdministrativeGender.OTHER,
            "other": AdministrativeGender.OTHER,
            "u": AdministrativeGender.UNKNOWN,
            "unknown": AdministrativeGender.UNKNOWN,
        }
        return mapping.get(v_str, AdministrativeGender.UNKNOWN)

    @field_validator("triage_level", mode="before")
    @classmethod
    def normalize_triage_level(cls, v) -> str:
        """Upper-case triage codes; blank falls back to the least urgent level."""
        if v is None:
            return DEFAULT_TRIAGE_LEVEL
        v_str = str(v).strip().upper()
        return v_str or DEFAULT_TRIAGE_LEVEL

    @property
    def display_name(self) -> str:
        """Primary name as "Given Family", or the id when no name is recorded."""
        if self.name and self.name[0].text:
            return self.name[0].text
        return self.id

    @property
    def email(self) -> Optional[str]:
        return next((t.value for t in self.telecom if t.system == ContactPointSystem.EMAIL), None)

    @property
    def phone(self) -> Optional[str]:
        return next((t.value for t in self.telecom if t.system == ContactPointSystem.PHONE), None)

    @property
    def reference(self) -> str:
        return patient_reference(self.id)

    model_config = ConfigDict(
        frozen=True,  # Immutable records
        str_strip_whitespace=True,
    )


class EncounterRecord(BaseModel):
    """Canonical encounter record (simplified FHIR Encounter resource).

    Append-only: re-ingesting the same logical visit creates a new record.

    Parameters:
        id: Unique encounter identifier
        status: Encounter status (arrived for form intake)
        class_code: Encounter class coding (EMER)
        subject_reference: Reference to the patient ("Patient/<id>")
        period_start: Encounter start
        reason_text: Free-text reason for the visit
    """

    id: str = Field(..., description="Unique encounter identifier")
    status: EncounterStatus = Field(
        default=EncounterStatus.ARRIVED,
        description="Encounter status (FHIR EncounterStatus)"
    )
    class_code: Coding = Field(
        default_factory=lambda: Coding(system="actCode", code="EMER", display="Emergency"),
        description="Encounter class"
    )
    subject_reference: str = Field(..., description="Reference to patient")
    period_start: datetime = Field(default_factory=utc_now, description="Encounter start")
    reason_text: str = Field(default="Checkup", description="Reason for encounter")

    @field_validator("subject_reference")
    @classmethod
    def validate_subject_reference(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Encounter subject reference cannot be empty")
        return v.strip()

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
    )


class ObservationRecord(BaseModel):
    """Canonical vital-sign observation (simplified FHIR Observation resource).

    Append-only. The value is a float; a value that could not be parsed is
    NaN, which serializes to null and reads back as NaN.

    Parameters:
        id: Unique observation identifier
        status: Result status (final)
        code: Observation code (LOINC code and display name)
        subject_reference: Reference to the patient ("Patient/<id>")
        value: Numeric value, NaN when unparseable
        unit: Unit of measurement (UCUM code)
        unit_system: Unit code system
        effective_date_time: When the observation was taken
    """

    id: str = Field(..., description="Unique observation identifier")
    status: ObservationStatus = Field(
        default=ObservationStatus.FINAL,
        description="Observation status (FHIR ObservationStatus)"
    )
    code: Coding = Field(..., description="Observation code")
    subject_reference: str = Field(..., description="Reference to patient")
    value: float = Field(default=math.nan, description="Numeric value (NaN when unparseable)")
    unit: str = Field(default="", description="Unit of measurement")
    unit_system: str = Field(default=UCUM_SYSTEM, description="Unit code system")
    effective_date_time: datetime = Field(default_factory=utc_now, description="When observation was taken")

    @field_validator("value", mode="before")
    @classmethod
    def parse_value(cls, v) -> float:
        """Parse the value as a real number; anything unparseable becomes NaN."""
        if v is None:
            return math.nan
        if isinstance(v, (int, float)):
            return float(v)
        try:
            return float(str(v).strip())
        except ValueError:
            return math.nan

    @field_serializer("value")
    def serialize_value(self, v: float) -> Optional[float]:
        return None if math.isnan(v) else v

    @property
    def code_text(self) -> str:
        return self.code.display or self.code.code

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
    )


class IngestionLogEntry(BaseModel):
    """Immutable record of one ingestion outcome (one row or one batch failure).

    Parameters:
        id: Unique log entry identifier
        timestamp: When the outcome was recorded
        source: Origin of the payload
        status: Success or Failed
        raw_snippet: Raw payload (the wire message on success, error text on failure)
        patient_reference: Reference to the upserted patient (success only)
    """

    id: str = Field(default_factory=lambda: f"log-{uuid.uuid4().hex}", description="Log entry id")
    timestamp: datetime = Field(default_factory=utc_now, description="When the outcome was recorded")
    source: IngestionSource = Field(default=IngestionSource.GOOGLE_FORMS, description="Payload origin")
    status: IngestionStatus = Field(..., description="Outcome")
    raw_snippet: str = Field(default="", description="Raw payload or error text")
    patient_reference: Optional[str] = Field(None, description="Reference to the patient")

    model_config = ConfigDict(frozen=True)
