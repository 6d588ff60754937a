"""Wire Message Encoder.

Serializes a NormalizedFormRow into an ADT^A01-style segmented message
(MSH, PID, PV1, OBX x0..2, DG1). Output is fully determined by the row, the
injected clock and the injected random source.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Optional

from src.domain.canonical_records import NormalizedFormRow
from src.domain.hl7 import segment_layout as layout
from src.domain.hl7.segment_layout import escape
from src.domain.utils import Clock, format_hl7_timestamp, utc_now

logger = logging.getLogger(__name__)

_DATE_SEPARATORS = re.compile(r"[-/.\s]")


@dataclass(frozen=True)
class VitalSign:
    """Definition of one vital sign carried as an OBX segment."""
    row_field: str
    code: str
    display: str
    unit: str
    coding_system: str = "LN"


# Emitted in this order; absent values produce no segment.
VITAL_SIGNS: tuple[VitalSign, ...] = (
    VitalSign(row_field="heart_rate", code="8867-4", display="Heart Rate", unit="bpm"),
    VitalSign(row_field="temp", code="8310-5", display="Body Temp", unit="Cel"),
)


@dataclass(frozen=True)
class MessageHeader:
    """Fixed MSH identifiers and markers."""
    sending_application: str = "GOOGLE_FORMS"
    sending_facility: str = "AETHER"
    receiving_application: str = "FHIR_PORTAL"
    receiving_facility: str = "HOSPITAL"
    message_code: str = "ADT"
    trigger_event: str = "A01"
    processing_id: str = "P"
    version: str = "2.5"


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split "Given Family Names" into (family, given).

    The first whitespace-separated token is the given name; the remainder is the
    family name (possibly empty).
    """
    given, _, family = full_name.strip().partition(" ")
    return family.strip(), given


class MessageEncoder:
    """Encodes normalized form rows into wire messages.

    Parameters:
        clock: Source of the encoding instant (MSH and PV1 timestamps)
        rng: Random source for the synthetic patient id, message id and sex default
        header: MSH identifiers
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        rng: Optional[random.Random] = None,
        header: Optional[MessageHeader] = None,
    ):
        self.clock = clock
        self.rng = rng or random.Random()
        self.header = header or MessageHeader()

    def encode(self, row: NormalizedFormRow) -> str:
        """Serialize one row.

        Parameters:
            row: Normalized form row

        Returns:
            str: Segment lines joined by the segment terminator
        """
        encoded_at = format_hl7_timestamp(self.clock())

        segments = [
            self._msh(encoded_at),
            self._pid(row),
            self._pv1(row, encoded_at),
            *self._obx(row),
            self._dg1(row),
        ]
        message = layout.join_segments(segments)
        logger.debug(f"Encoded message with {len(segments)} segments")
        return message

    def _msh(self, encoded_at: str) -> str:
        h = self.header
        return layout.MSH.build({
            "encoding_characters": layout.ENCODING_CHARACTERS,
            "sending_application": escape(h.sending_application),
            "sending_facility": escape(h.sending_facility),
            "receiving_application": escape(h.receiving_application),
            "receiving_facility": escape(h.receiving_facility),
            "timestamp": encoded_at,
            "message_type": layout.MESSAGE_TYPE.build({
                "code": h.message_code,
                "trigger_event": h.trigger_event,
            }),
            "message_control_id": f"MSG{self.rng.randrange(100000)}",
            "processing_id": escape(h.processing_id),
            "version": escape(h.version),
        })

    def _pid(self, row: NormalizedFormRow) -> str:
        patient_id = row.patient_id or str(self.rng.randrange(10000))
        family, given = split_full_name(row.full_name)
        # Nondeterministic default: the form does not ask for sex.
        sex = row.sex or self.rng.choice(("M", "F"))

        return layout.PID.build({
            "set_id": "1",
            "patient_identifier": layout.PATIENT_IDENTIFIER.build({
                "id": patient_id,
                "identifier_type": "MRN",
            }),
            "patient_name": layout.PATIENT_NAME.build({"family": family, "given": given}),
            "birth_date": escape(_DATE_SEPARATORS.sub("", row.dob)),
            "sex": escape(sex),
            "contact": layout.CONTACT.build({
                "email": row.email,
                "use_code": "CP",
                "phone": row.phone,
            }),
        })

    def _pv1(self, row: NormalizedFormRow, encoded_at: str) -> str:
        return layout.PV1.build({
            "set_id": "1",
            "patient_class": "E",
            "assigned_location": layout.LOCATION.build({"point_of_care": "TRIAGE"}),
            "triage_level": escape(row.triage_level),
            "admit_timestamp": encoded_at,
        })

    def _obx(self, row: NormalizedFormRow) -> list[str]:
        segments = []
        for vital in VITAL_SIGNS:
            value = getattr(row, vital.row_field)
            if not value:
                continue
            segments.append(layout.OBX.build({
                "set_id": str(len(segments) + 1),
                "value_type": "NM",
                "observation_identifier": layout.OBSERVATION_IDENTIFIER.build({
                    "code": vital.code,
                    "display": vital.display,
                    "coding_system": vital.coding_system,
                }),
                "value": escape(value),
                "units": escape(vital.unit),
                "result_status": "F",
            }))
        return segments

    def _dg1(self, row: NormalizedFormRow) -> str:
        return layout.DG1.build({
            "set_id": "1",
            "diagnosis": layout.DIAGNOSIS.build({"text": row.symptoms}),
            "diagnosis_type": "A",
        })
