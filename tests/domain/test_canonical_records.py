"""Tests for the canonical record models."""

import math
from datetime import date

import pytest
from pydantic import ValidationError

from src.domain.canonical_records import (
    Coding,
    ContactPoint,
    HumanName,
    IngestionLogEntry,
    NormalizedFormRow,
    ObservationRecord,
    PatientRecord,
    patient_reference,
)
from src.domain.enums import AdministrativeGender, ContactPointSystem, IngestionSource, IngestionStatus


class TestPatientRecord:
    """Test suite for PatientRecord model."""

    def test_gender_normalization(self):
        assert PatientRecord(id="p-1", gender="male").gender == AdministrativeGender.MALE
        assert PatientRecord(id="p-2", gender="F").gender == AdministrativeGender.FEMALE
        assert PatientRecord(id="p-3", gender="o").gender == AdministrativeGender.OTHER
        assert PatientRecord(id="p-4", gender="nonsense").gender == AdministrativeGender.UNKNOWN
        assert PatientRecord(id="p-5").gender == AdministrativeGender.UNKNOWN

    def test_triage_level_normalized(self):
        assert PatientRecord(id="p-1", triage_level=" p1 ").triage_level == "P1"
        assert PatientRecord(id="p-1", triage_level="").triage_level == "P4"

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            PatientRecord(id="   ")

    def test_version_must_be_positive(self):
        with pytest.raises(ValidationError):
            PatientRecord(id="p-1", version=0)

    def test_records_are_immutable(self):
        patient = PatientRecord(id="p-1")
        with pytest.raises(ValidationError):
            patient.triage_level = "P1"

    def test_convenience_properties(self):
        patient = PatientRecord(
            id="p-1",
            name=[HumanName(family="Doe", given=["Jane"])],
            telecom=[
                ContactPoint(system=ContactPointSystem.PHONE, value="555-1234"),
                ContactPoint(system=ContactPointSystem.EMAIL, value="jane@example.com"),
            ],
        )
        assert patient.display_name == "Jane Doe"
        assert patient.phone == "555-1234"
        assert patient.email == "jane@example.com"
        assert patient.reference == "Patient/p-1"

    def test_display_name_falls_back_to_id(self):
        assert PatientRecord(id="p-9").display_name == "p-9"

    def test_json_round_trip(self):
        patient = PatientRecord(id="p-1", birth_date=date(1990, 5, 1), gender="female")
        document = patient.model_dump(mode="json")
        assert document["birth_date"] == "1990-05-01"
        assert document["gender"] == "female"
        assert PatientRecord.model_validate(document) == patient


class TestObservationRecord:
    """NaN handling for observation values."""

    def make(self, value):
        return ObservationRecord(
            id="obs-1",
            code=Coding(system="LOINC", code="8867-4", display="Heart Rate"),
            subject_reference="Patient/p-1",
            value=value,
            unit="bpm",
        )

    def test_numeric_string_parsed(self):
        assert self.make("72").value == 72.0

    @pytest.mark.parametrize("value", ["abc", "", None])
    def test_unparseable_value_is_nan(self, value):
        assert math.isnan(self.make(value).value)

    def test_nan_serializes_to_null_and_reads_back_as_nan(self):
        document = self.make("abc").model_dump(mode="json")
        assert document["value"] is None
        assert math.isnan(ObservationRecord.model_validate(document).value)

    def test_code_text(self):
        assert self.make(1).code_text == "Heart Rate"


class TestNormalizedFormRow:

    def test_blank_optional_values_become_none(self):
        row = NormalizedFormRow(timestamp="t", patient_id="  ", heart_rate="", sex="")
        assert row.patient_id is None
        assert row.heart_rate is None
        assert row.sex is None

    def test_defaults(self):
        row = NormalizedFormRow(timestamp="t")
        assert row.full_name == "Unknown Patient"
        assert row.triage_level == "P4"


class TestIngestionLogEntry:

    def test_defaults(self):
        entry = IngestionLogEntry(status=IngestionStatus.SUCCESS, patient_reference=patient_reference("p-1"))
        assert entry.id.startswith("log-")
        assert entry.source == IngestionSource.GOOGLE_FORMS
        assert entry.patient_reference == "Patient/p-1"

    def test_ids_unique(self):
        first = IngestionLogEntry(status=IngestionStatus.FAILED)
        second = IngestionLogEntry(status=IngestionStatus.FAILED)
        assert first.id != second.id
