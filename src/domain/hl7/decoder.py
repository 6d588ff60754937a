"""Wire Message Decoder.

Parses a segmented wire message back into canonical Patient, Encounter and
Observation records, reading every field through the shared segment layout.

Reconstruction rules:
    - Patient id: numeric identifiers get the "p-" prefix; anything else
      (including already-prefixed ids) is used verbatim
    - Birth date: an 8-digit token becomes YYYY-MM-DD; anything else falls back
      to DEFAULT_BIRTH_DATE
    - Gender: "M" maps to male and every other code to female. This narrows the
      source vocabulary (O/U/A are read as female) and is kept as-is until the
      mapping is clarified with product
    - Observation value: unparseable values become NaN for that observation only
"""

import logging
import random
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from src.domain.canonical_records import (
    MRN_SYSTEM,
    ContactPoint,
    Coding,
    EncounterRecord,
    HumanName,
    Identifier,
    ObservationRecord,
    PatientRecord,
    patient_reference,
)
from src.domain.enums import AdministrativeGender, ContactPointSystem, EncounterStatus, ObservationStatus
from src.domain.hl7 import segment_layout as layout
from src.domain.hl7.segment_layout import Segment, split_segments
from src.domain.ports import MessageDecodeError, MissingSegmentError
from src.domain.utils import Clock, parse_hl7_timestamp, utc_now

logger = logging.getLogger(__name__)

PATIENT_ID_PREFIX = "p-"
DEFAULT_BIRTH_DATE = date(1990, 1, 1)
DEFAULT_TRIAGE_LEVEL = "P4"
DEFAULT_REASON = "Checkup"
MALE_SEX_CODE = "M"

_EIGHT_DIGITS = re.compile(r"\d{8}")

# Coding system abbreviations used in OBX identifiers.
CODING_SYSTEMS = {
    "LN": "LOINC",
}


def canonical_patient_id(raw_id: str) -> str:
    """Prefix purely numeric identifiers; never double-prefix."""
    raw_id = raw_id.strip()
    if raw_id.startswith(PATIENT_ID_PREFIX) or not raw_id.isdigit():
        return raw_id
    return f"{PATIENT_ID_PREFIX}{raw_id}"


def parse_birth_date(token: str) -> date:
    """YYYYMMDD -> date, falling back to DEFAULT_BIRTH_DATE for malformed tokens."""
    token = token.strip()
    if not _EIGHT_DIGITS.fullmatch(token):
        return DEFAULT_BIRTH_DATE
    try:
        return date(int(token[:4]), int(token[4:6]), int(token[6:8]))
    except ValueError:
        return DEFAULT_BIRTH_DATE


def map_sex(code: str) -> AdministrativeGender:
    return AdministrativeGender.MALE if code.strip() == MALE_SEX_CODE else AdministrativeGender.FEMALE


@dataclass(frozen=True)
class DecodedMessage:
    """Records reconstructed from one wire message."""
    patient: PatientRecord
    encounter: EncounterRecord
    observations: list[ObservationRecord] = field(default_factory=list)
    message_control_id: Optional[str] = None


class MessageDecoder:
    """Decodes wire messages into canonical clinical records.

    Parameters:
        clock: Source of the current instant (record timestamps, id generation)
        rng: Random source for encounter id suffixes
    """

    def __init__(self, clock: Clock = utc_now, rng: Optional[random.Random] = None):
        self.clock = clock
        self.rng = rng or random.Random()

    def decode(self, message: str) -> DecodedMessage:
        """Decode one wire message.

        Parameters:
            message: Segment lines separated by CR (CRLF / LF tolerated)

        Returns:
            DecodedMessage with one patient, one encounter and one observation per OBX

        Raises:
            MissingSegmentError: If the message has no PID segment
            MessageDecodeError: If the message has more than one PID segment
        """
        segments = split_segments(message)
        by_tag: dict[str, list[Segment]] = {}
        for segment in segments:
            by_tag.setdefault(segment.tag, []).append(segment)

        pids = by_tag.get("PID", [])
        if not pids:
            raise MissingSegmentError("Missing PID segment", segment="PID")
        if len(pids) > 1:
            raise MessageDecodeError(f"Expected exactly one PID segment, found {len(pids)}", segment="PID")

        now = self.clock()
        pv1 = _first(by_tag, "PV1")
        dg1 = _first(by_tag, "DG1")
        msh = _first(by_tag, "MSH")

        patient = self._patient(pids[0], pv1, now)
        encounter = self._encounter(patient.id, pv1, dg1, now)
        observations = [
            self._observation(patient.id, obx, now)
            for obx in by_tag.get("OBX", [])
        ]

        logger.debug(
            f"Decoded message for {patient.id}: {len(observations)} observation(s)"
        )
        return DecodedMessage(
            patient=patient,
            encounter=encounter,
            observations=observations,
            message_control_id=msh.value("message_control_id") if msh else None,
        )

    def _patient(self, pid: Segment, pv1: Optional[Segment], now) -> PatientRecord:
        raw_id = pid.component("patient_identifier", layout.PATIENT_IDENTIFIER, "id")
        patient_id = canonical_patient_id(raw_id)

        family = pid.component("patient_name", layout.PATIENT_NAME, "family")
        given = pid.component("patient_name", layout.PATIENT_NAME, "given")

        telecom = []
        email = pid.component("contact", layout.CONTACT, "email")
        if email:
            telecom.append(ContactPoint(system=ContactPointSystem.EMAIL, value=email))
        phone = pid.component("contact", layout.CONTACT, "phone")
        if phone:
            telecom.append(ContactPoint(system=ContactPointSystem.PHONE, value=phone, use="mobile"))

        triage_level = (pv1.value("triage_level") if pv1 else "") or DEFAULT_TRIAGE_LEVEL

        return PatientRecord(
            id=patient_id,
            active=True,
            name=[HumanName(family=family, given=[given] if given else [])],
            gender=map_sex(pid.value("sex")),
            birth_date=parse_birth_date(pid.value("birth_date")),
            telecom=telecom,
            identifier=[Identifier(system=MRN_SYSTEM, value=raw_id)] if raw_id else [],
            triage_level=triage_level,
            version=1,
            last_updated=now,
        )

    def _encounter(
        self,
        patient_id: str,
        pv1: Optional[Segment],
        dg1: Optional[Segment],
        now,
    ) -> EncounterRecord:
        period_start = None
        if pv1 is not None:
            period_start = parse_hl7_timestamp(pv1.value("admit_timestamp"))

        reason = DEFAULT_REASON
        if dg1 is not None:
            reason = (
                dg1.component("diagnosis", layout.DIAGNOSIS, "text")
                or dg1.component("diagnosis", layout.DIAGNOSIS, "code")
                or DEFAULT_REASON
            )

        return EncounterRecord(
            id=self._record_id("e"),
            status=EncounterStatus.ARRIVED,
            class_code=Coding(system="actCode", code="EMER", display="Emergency"),
            subject_reference=patient_reference(patient_id),
            period_start=period_start or now,
            reason_text=reason,
        )

    def _record_id(self, prefix: str) -> str:
        """Collection-unique id drawn from the injected random source."""
        return f"{prefix}-{uuid.UUID(int=self.rng.getrandbits(128), version=4).hex}"

    def _observation(self, patient_id: str, obx: Segment, now) -> ObservationRecord:
        code = obx.component("observation_identifier", layout.OBSERVATION_IDENTIFIER, "code")
        display = obx.component("observation_identifier", layout.OBSERVATION_IDENTIFIER, "display")
        system = obx.component("observation_identifier", layout.OBSERVATION_IDENTIFIER, "coding_system")
        unit = obx.value("units")

        return ObservationRecord(
            id=self._record_id("obs"),
            status=ObservationStatus.FINAL,
            code=Coding(system=CODING_SYSTEMS.get(system, system or "LOINC"), code=code, display=display),
            subject_reference=patient_reference(patient_id),
            value=obx.value("value"),
            unit=unit,
            effective_date_time=now,
        )


def _first(by_tag: dict[str, list[Segment]], tag: str) -> Optional[Segment]:
    found = by_tag.get(tag)
    return found[0] if found else None
