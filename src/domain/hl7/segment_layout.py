"""Segment Layout - the positional contract of the intake wire message.

Both the encoder and the decoder address fields and components exclusively
through the tables in this module. Index values are positions in the list
obtained by splitting a segment line on the field separator, so index 0 is
always the segment tag.

Changing an index here changes the wire format in both directions at once.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

FIELD_SEPARATOR = "|"
COMPONENT_SEPARATOR = "^"
REPETITION_SEPARATOR = "~"
ESCAPE_CHARACTER = "\\"
SUBCOMPONENT_SEPARATOR = "&"
ENCODING_CHARACTERS = COMPONENT_SEPARATOR + REPETITION_SEPARATOR + ESCAPE_CHARACTER + SUBCOMPONENT_SEPARATOR
SEGMENT_TERMINATOR = "\r"

_ESCAPES = {
    ESCAPE_CHARACTER: "\\E\\",
    FIELD_SEPARATOR: "\\F\\",
    COMPONENT_SEPARATOR: "\\S\\",
    SUBCOMPONENT_SEPARATOR: "\\T\\",
    REPETITION_SEPARATOR: "\\R\\",
    "\r": "\\X0D\\",
    "\n": "\\X0A\\",
}
_UNESCAPES = {v: k for k, v in _ESCAPES.items()}
_ESCAPE_PATTERN = re.compile(r"\\(?:E|F|S|T|R|X0D|X0A)\\")


def escape(value: str) -> str:
    """Escape delimiter characters so free text cannot break message framing."""
    return "".join(_ESCAPES.get(char, char) for char in value)


def unescape(value: str) -> str:
    """Reverse escape(); unknown escape sequences are left untouched."""
    return _ESCAPE_PATTERN.sub(lambda m: _UNESCAPES[m.group(0)], value)


@dataclass(frozen=True)
class SegmentLayout:
    """Field name -> index table for one segment type.

    Parameters:
        tag: Three-letter segment identifier
        fields: Field name -> position after splitting on FIELD_SEPARATOR
    """

    tag: str
    fields: Mapping[str, int]

    def __post_init__(self):
        if len(self.tag) != 3:
            raise ValueError(f"Segment tag must be three characters: {self.tag!r}")
        if any(index < 1 for index in self.fields.values()):
            raise ValueError(f"Field indices of {self.tag} must be >= 1 (0 is the tag)")
        if len(set(self.fields.values())) != len(self.fields):
            raise ValueError(f"Duplicate field index in {self.tag} layout")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def width(self) -> int:
        """Number of positions (tag included) needed to hold every field."""
        return max(self.fields.values()) + 1

    def index(self, name: str) -> int:
        try:
            return self.fields[name]
        except KeyError:
            raise KeyError(f"{self.tag} has no field named '{name}'") from None

    def build(self, values: Mapping[str, str]) -> str:
        """Render a segment line; values are placed raw (escape them first)."""
        slots = [""] * self.width
        slots[0] = self.tag
        for name, value in values.items():
            slots[self.index(name)] = value
        return FIELD_SEPARATOR.join(slots)


@dataclass(frozen=True)
class CompositeLayout:
    """Component name -> index table for a caret-delimited composite field."""

    name: str
    components: Mapping[str, int]

    def __post_init__(self):
        object.__setattr__(self, "components", MappingProxyType(dict(self.components)))

    @property
    def width(self) -> int:
        return max(self.components.values()) + 1

    def index(self, name: str) -> int:
        try:
            return self.components[name]
        except KeyError:
            raise KeyError(f"{self.name} has no component named '{name}'") from None

    def build(self, values: Mapping[str, str]) -> str:
        """Render the composite, escaping each component value."""
        slots = [""] * self.width
        for name, value in values.items():
            slots[self.index(name)] = escape(value)
        return COMPONENT_SEPARATOR.join(slots)

    def read(self, raw_field: str, name: str) -> str:
        """Unescaped value of one component, empty when absent."""
        parts = raw_field.split(COMPONENT_SEPARATOR)
        index = self.index(name)
        return unescape(parts[index]) if index < len(parts) else ""


# ============================================================================
# Segment tables
# ============================================================================

MSH = SegmentLayout("MSH", {
    "encoding_characters": 1,
    "sending_application": 2,
    "sending_facility": 3,
    "receiving_application": 4,
    "receiving_facility": 5,
    "timestamp": 6,
    "message_type": 8,
    "message_control_id": 9,
    "processing_id": 10,
    "version": 11,
})

PID = SegmentLayout("PID", {
    "set_id": 1,
    "patient_identifier": 3,
    "patient_name": 5,
    "birth_date": 7,
    "sex": 8,
    "contact": 13,
})

PV1 = SegmentLayout("PV1", {
    "set_id": 1,
    "patient_class": 2,
    "assigned_location": 3,
    "triage_level": 19,
    "admit_timestamp": 44,
})

OBX = SegmentLayout("OBX", {
    "set_id": 1,
    "value_type": 2,
    "observation_identifier": 3,
    "value": 5,
    "units": 6,
    "result_status": 11,
})

DG1 = SegmentLayout("DG1", {
    "set_id": 1,
    "diagnosis": 3,
    "diagnosis_type": 6,
})

SEGMENTS: Mapping[str, SegmentLayout] = MappingProxyType(
    {layout.tag: layout for layout in (MSH, PID, PV1, OBX, DG1)}
)

# ============================================================================
# Composite tables
# ============================================================================

MESSAGE_TYPE = CompositeLayout("message_type", {"code": 0, "trigger_event": 1})
PATIENT_IDENTIFIER = CompositeLayout("patient_identifier", {"id": 0, "identifier_type": 3})
PATIENT_NAME = CompositeLayout("patient_name", {"family": 0, "given": 1})
CONTACT = CompositeLayout("contact", {"email": 3, "use_code": 5, "phone": 7})
LOCATION = CompositeLayout("assigned_location", {"point_of_care": 0, "bed": 3})
OBSERVATION_IDENTIFIER = CompositeLayout("observation_identifier", {"code": 0, "display": 1, "coding_system": 2})
DIAGNOSIS = CompositeLayout("diagnosis", {"code": 0, "text": 1})


class Segment:
    """One parsed segment line with layout-driven field access."""

    def __init__(self, line: str):
        self.line = line
        self.fields: list[str] = line.split(FIELD_SEPARATOR)

    @property
    def tag(self) -> str:
        return self.fields[0]

    @property
    def layout(self) -> Optional[SegmentLayout]:
        return SEGMENTS.get(self.tag)

    def raw(self, name: str) -> str:
        """Raw (still escaped) field value, empty when the segment is short."""
        if self.layout is None:
            raise KeyError(f"No layout registered for segment {self.tag}")
        index = self.layout.index(name)
        return self.fields[index] if index < len(self.fields) else ""

    def value(self, name: str) -> str:
        """Unescaped scalar field value."""
        return unescape(self.raw(name))

    def component(self, name: str, composite: CompositeLayout, component: str) -> str:
        """Unescaped component of a composite field."""
        return composite.read(self.raw(name), component)


def split_segments(message: str) -> list[Segment]:
    """Split a message into segments, tolerating CRLF / LF and blank lines."""
    lines = re.split(r"\r\n|\r|\n", message)
    return [Segment(line) for line in lines if line.strip()]


def join_segments(lines: Sequence[str]) -> str:
    return SEGMENT_TERMINATOR.join(lines)
