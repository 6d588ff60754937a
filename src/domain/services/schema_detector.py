"""Schema Detection Service.

Infers which column of a loosely-structured form export carries which semantic
field, using lenient keyword matching over the header row. Form tools tend to
use the question text as the header ("What is your full name?"), so matching is
substring-based and case-insensitive.

Architecture:
    - Keyword precedence lives in the ordered COLUMN_KEYWORDS table, not inline logic
    - Detection is a pure function of the header row
    - Fields are resolved independently; one header may satisfy several fields
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Sequence

from src.domain.ports import SchemaInferenceError

logger = logging.getLogger(__name__)

UNRESOLVED = None

# Ordered (field, keywords) table. Field order is the ColumnMap order; keyword
# order is irrelevant because any keyword match on a header counts.
COLUMN_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("timestamp", ("timestamp", "date", "time")),
    ("email", ("email", "address", "mail")),
    ("name", ("name", "patient", "full", "subject")),
    ("id", ("id", "mrn", "identifier", "record", "number")),
    ("dob", ("dob", "birth", "born")),
    ("phone", ("phone", "contact", "mobile", "cell")),
    ("symptoms", ("symptom", "reason", "complaint", "issue", "diagnosis", "problem")),
    ("triage", ("triage", "level", "priority", "p1", "p2", "status")),
    ("heartRate", ("heart", "rate", "pulse", "bpm", "hr")),
    ("temp", ("temp", "fever", "celsius", "fahrenheit")),
)

CANONICAL_FIELDS: tuple[str, ...] = tuple(name for name, _ in COLUMN_KEYWORDS)


def clean_header(header: str) -> str:
    """Strip one pair of wrapping double quotes and surrounding whitespace."""
    text = header.strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text.strip()


@dataclass(frozen=True)
class ColumnMap:
    """Mapping from each canonical field to a column index, or UNRESOLVED.

    Parameters:
        headers: Cleaned header strings the map was built from
        indices: Canonical field name -> column index (None when unresolved)

    Raises:
        ValueError: If a resolved index does not point at a real header position
    """

    headers: tuple[str, ...]
    indices: Mapping[str, Optional[int]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "headers", tuple(self.headers))
        complete = {name: self.indices.get(name, UNRESOLVED) for name in CANONICAL_FIELDS}
        unknown = set(self.indices) - set(CANONICAL_FIELDS)
        if unknown:
            raise ValueError(f"Unknown canonical fields: {sorted(unknown)}")
        for name, index in complete.items():
            if index is not UNRESOLVED and not 0 <= index < len(self.headers):
                raise ValueError(
                    f"Column index {index} for '{name}' is outside the header row "
                    f"({len(self.headers)} columns)"
                )
        object.__setattr__(self, "indices", MappingProxyType(complete))

    def __getitem__(self, name: str) -> Optional[int]:
        return self.indices[name]

    def __iter__(self) -> Iterator[str]:
        return iter(CANONICAL_FIELDS)

    def is_resolved(self, name: str) -> bool:
        return self.indices[name] is not UNRESOLVED

    def resolved(self) -> dict[str, int]:
        """Only the resolved fields, in canonical order."""
        return {name: index for name, index in self.indices.items() if index is not UNRESOLVED}

    def header_for(self, name: str) -> Optional[str]:
        index = self.indices[name]
        return None if index is UNRESOLVED else self.headers[index]


def find_column(headers: Sequence[str], keywords: Sequence[str]) -> Optional[int]:
    """Index of the first header containing any keyword (case-insensitive)."""
    for index, header in enumerate(headers):
        header_lower = header.lower()
        if any(keyword in header_lower for keyword in keywords):
            return index
    return UNRESOLVED


def detect_columns(headers: Sequence[str]) -> ColumnMap:
    """Infer a ColumnMap from a header row.

    Parameters:
        headers: Header strings in column order, possibly quote-wrapped

    Returns:
        ColumnMap over the canonical fields

    Raises:
        SchemaInferenceError: If neither a name-like nor an id-like column is found
    """
    cleaned = tuple(clean_header(h) for h in headers)
    indices = {name: find_column(cleaned, keywords) for name, keywords in COLUMN_KEYWORDS}

    if indices["name"] is UNRESOLVED and indices["id"] is UNRESOLVED:
        raise SchemaInferenceError(
            f"Could not find 'Name' or 'ID' column. Detected headers: {', '.join(cleaned)}",
            headers=list(cleaned),
        )

    column_map = ColumnMap(headers=cleaned, indices=indices)
    logger.info(f"Detected column mapping: {column_map.resolved()}")
    return column_map
