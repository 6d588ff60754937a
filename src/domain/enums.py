"""Domain Enumerations.

Value sets shared by the canonical clinical records and the ingestion log.
String-valued enums so they serialize to their wire/JSON value unchanged.
"""

from enum import Enum


class AdministrativeGender(str, Enum):
    """Administrative gender of a patient (FHIR AdministrativeGender)."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class EncounterStatus(str, Enum):
    """Encounter lifecycle status (subset of FHIR EncounterStatus)."""
    PLANNED = "planned"
    ARRIVED = "arrived"
    TRIAGED = "triaged"
    IN_PROGRESS = "in-progress"
    FINISHED = "finished"


class ObservationStatus(str, Enum):
    """Observation result status (subset of FHIR ObservationStatus)."""
    PRELIMINARY = "preliminary"
    FINAL = "final"


class ContactPointSystem(str, Enum):
    """Telecom channel of a patient contact point."""
    PHONE = "phone"
    EMAIL = "email"


class IngestionStatus(str, Enum):
    """Outcome recorded on an ingestion log entry."""
    SUCCESS = "Success"
    FAILED = "Failed"
    PENDING = "Pending"


class IngestionSource(str, Enum):
    """Origin of the payload an ingestion log entry describes."""
    HL7V2 = "HL7v2"
    GOOGLE_FORMS = "GoogleForms"
    EXTERNAL_XML = "ExternalXML"
    WEARABLE_API = "WearableAPI"


class ChangeType(str, Enum):
    """Kind of field-level change captured for a stored record."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
