"""Tests for the wire message encoder."""

import random

import pytest

from src.domain.canonical_records import NormalizedFormRow
from src.domain.hl7.encoder import MessageEncoder, MessageHeader, split_full_name
from src.domain.hl7.segment_layout import PV1, SEGMENT_TERMINATOR, Segment


def make_row(**overrides) -> NormalizedFormRow:
    values = dict(
        timestamp="2024-03-15T10:00:00Z",
        patient_id="1234",
        full_name="Jane Doe",
        dob="1990-05-01",
        phone="555-1234",
        email="",
        symptoms="Fever",
        triage_level="P2",
        sex="F",
    )
    values.update(overrides)
    return NormalizedFormRow(**values)


@pytest.fixture
def encoder(clock, rng):
    return MessageEncoder(clock=clock, rng=rng)


def segments_of(message: str) -> list[str]:
    return message.split(SEGMENT_TERMINATOR)


class TestMessageEncoder:
    """Test suite for MessageEncoder.encode."""

    def test_segment_order_without_vitals(self, encoder):
        lines = segments_of(encoder.encode(make_row()))
        assert [line[:3] for line in lines] == ["MSH", "PID", "PV1", "DG1"]

    def test_msh_header(self, encoder):
        msh = segments_of(encoder.encode(make_row()))[0]
        fields = msh.split("|")

        assert msh.startswith("MSH|^~\\&|GOOGLE_FORMS|AETHER|FHIR_PORTAL|HOSPITAL|20240315103000||ADT^A01|MSG")
        assert fields[9].startswith("MSG")
        assert 0 <= int(fields[9][3:]) < 100000
        assert fields[10:] == ["P", "2.5"]

    def test_pid_segment(self, encoder):
        pid = segments_of(encoder.encode(make_row()))[1]
        assert pid == "PID|1||1234^^^MRN||Doe^Jane||19900501|F|||||^^^^^CP^^555-1234"

    def test_pid_contact_with_email(self, encoder):
        pid = segments_of(encoder.encode(make_row(email="jane@example.com")))[1]
        assert pid.split("|")[13] == "^^^jane@example.com^^CP^^555-1234"

    def test_pv1_positions(self, encoder):
        pv1 = Segment(segments_of(encoder.encode(make_row()))[2])

        assert len(pv1.fields) == PV1.width
        assert pv1.value("patient_class") == "E"
        assert pv1.raw("assigned_location") == "TRIAGE^^^"
        assert pv1.fields[19] == "P2"
        assert pv1.fields[44] == "20240315103000"

    def test_dg1_segment(self, encoder):
        dg1 = segments_of(encoder.encode(make_row()))[-1]
        assert dg1 == "DG1|1||^Fever|||A"

    def test_obx_for_both_vitals(self, encoder):
        lines = segments_of(encoder.encode(make_row(heart_rate="72", temp="38.5")))
        obx = [line for line in lines if line.startswith("OBX")]

        assert obx == [
            "OBX|1|NM|8867-4^Heart Rate^LN||72|bpm|||||F",
            "OBX|2|NM|8310-5^Body Temp^LN||38.5|Cel|||||F",
        ]

    def test_heart_rate_only_is_one_obx(self, encoder):
        lines = segments_of(encoder.encode(make_row(heart_rate="72")))
        obx = [line for line in lines if line.startswith("OBX")]
        assert obx == ["OBX|1|NM|8867-4^Heart Rate^LN||72|bpm|||||F"]

    def test_obx_set_ids_are_sequential(self, encoder):
        """A lone temperature reading is OBX set id 1."""
        lines = segments_of(encoder.encode(make_row(temp="37.0")))
        obx = [line for line in lines if line.startswith("OBX")]
        assert obx == ["OBX|1|NM|8310-5^Body Temp^LN||37.0|Cel|||||F"]

    @pytest.mark.parametrize("dob,expected", [
        ("1990-05-01", "19900501"),
        ("1990/05/01", "19900501"),
        ("1990.05.01", "19900501"),
        ("1990 05 01", "19900501"),
    ])
    def test_birth_date_separators_removed(self, encoder, dob, expected):
        pid = segments_of(encoder.encode(make_row(dob=dob)))[1]
        assert pid.split("|")[7] == expected

    def test_delimiters_in_free_text_are_escaped(self, encoder):
        """Pipes and carets in symptoms cannot add fields or segments."""
        lines = segments_of(encoder.encode(make_row(symptoms="cough | fever ^ chills")))
        dg1 = lines[-1]
        assert len(lines) == 4
        assert len(dg1.split("|")) == 7
        assert "\\F\\" in dg1 and "\\S\\" in dg1

    def test_generated_patient_id_when_missing(self, encoder):
        pid = segments_of(encoder.encode(make_row(patient_id=None)))[1]
        generated = pid.split("|")[3].split("^")[0]
        assert generated.isdigit()
        assert 0 <= int(generated) < 10000

    def test_random_sex_when_missing(self, encoder):
        pid = segments_of(encoder.encode(make_row(sex=None)))[1]
        assert pid.split("|")[8] in ("M", "F")

    def test_deterministic_for_same_seed(self, clock):
        row = make_row(patient_id=None, sex=None)
        first = MessageEncoder(clock=clock, rng=random.Random(7)).encode(row)
        second = MessageEncoder(clock=clock, rng=random.Random(7)).encode(row)
        assert first == second

    def test_custom_header(self, clock, rng):
        encoder = MessageEncoder(clock=clock, rng=rng, header=MessageHeader(sending_facility="NORTH_WING"))
        msh = segments_of(encoder.encode(make_row()))[0]
        assert msh.split("|")[3] == "NORTH_WING"


class TestSplitFullName:

    @pytest.mark.parametrize("full_name,expected", [
        ("Jane Doe", ("Doe", "Jane")),
        ("Mary Ann van Buren", ("Ann van Buren", "Mary")),
        ("Cher", ("", "Cher")),
        ("  Jane   Doe ", ("Doe", "Jane")),
    ])
    def test_split(self, full_name, expected):
        assert split_full_name(full_name) == expected
