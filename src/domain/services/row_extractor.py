"""Row Extraction Service.

Reads a form export into logical records with the standard csv module and turns
each record plus a ColumnMap into a NormalizedFormRow, applying the intake
defaults for anything the form did not supply.

A quoted answer may span several physical lines (paragraph answers do). A
record that cannot be parsed is reported on its own and reading resumes on the
line after the one it started on, so one bad row never hides the rest.
"""

import csv
import io
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from src.domain.canonical_records import NormalizedFormRow
from src.domain.ports import RowParseError
from src.domain.services.schema_detector import ColumnMap
from src.domain.utils import Clock, to_iso, utc_now

logger = logging.getLogger(__name__)

DEFAULT_FULL_NAME = "Unknown Patient"
DEFAULT_DOB = "2000-01-01"
DEFAULT_SYMPTOMS = "General Update"
DEFAULT_TRIAGE_LEVEL = "P4"


@dataclass(frozen=True)
class RawRecord:
    """One logical record of the export.

    Parameters:
        line_number: 1-based physical line the record starts on
        text: Raw record text (line terminators of its last line removed)
        cells: Trimmed cell values, None when the record could not be parsed
        error: Parser message when cells is None
    """
    line_number: int
    text: str
    cells: Optional[tuple[str, ...]] = None
    error: Optional[str] = None

    @property
    def is_blank(self) -> bool:
        return self.cells is not None and not any(self.cells)


def read_records(text: str, delimiter: str = ",") -> Iterator[RawRecord]:
    """Yield every logical record in an export, header first.

    Parameters:
        text: Raw export text
        delimiter: Field delimiter

    Yields:
        RawRecord: parsed cells, or the parse error for a malformed record
    """
    lines = io.StringIO(text, newline="").readlines()
    position = 0

    while position < len(lines):
        reader = csv.reader(lines[position:], delimiter=delimiter, skipinitialspace=True, strict=True)
        consumed = 0
        try:
            for cells in reader:
                raw = "".join(lines[position + consumed:position + reader.line_num])
                yield RawRecord(
                    line_number=position + consumed + 1,
                    text=raw.rstrip("\r\n"),
                    cells=tuple(cell.strip() for cell in cells),
                )
                consumed = reader.line_num
            position = len(lines)
        except csv.Error as e:
            start = position + consumed
            logger.debug(f"Malformed record at line {start + 1}: {e}")
            yield RawRecord(
                line_number=start + 1,
                text=lines[start].rstrip("\r\n"),
                error=f"Malformed row ({e})",
            )
            position = start + 1


class RowExtractor:
    """Builds NormalizedFormRow objects from raw records using a detected ColumnMap.

    Parameters:
        column_map: Column mapping detected from the header row
        clock: Source of the current instant (used for the timestamp default)
    """

    def __init__(self, column_map: ColumnMap, clock: Clock = utc_now):
        self.column_map = column_map
        self.clock = clock

    def extract(self, record: RawRecord) -> Optional[NormalizedFormRow]:
        """Normalize one record.

        Parameters:
            record: Record produced by read_records

        Returns:
            NormalizedFormRow, or None if the record is empty or whitespace-only

        Raises:
            RowParseError: If the record could not be parsed
        """
        if record.cells is None:
            raise RowParseError(record.error or "Malformed row", row_number=record.line_number, raw_row=record.text)
        if record.is_blank:
            return None

        cells = record.cells

        def value(name: str) -> str:
            index = self.column_map[name]
            if index is None or index >= len(cells):
                return ""
            return cells[index]

        return NormalizedFormRow(
            timestamp=value("timestamp") or to_iso(self.clock()),
            patient_id=value("id"),
            full_name=value("name") or DEFAULT_FULL_NAME,
            dob=value("dob") or DEFAULT_DOB,
            phone=value("phone"),
            email=value("email"),
            symptoms=value("symptoms") or DEFAULT_SYMPTOMS,
            triage_level=value("triage") or DEFAULT_TRIAGE_LEVEL,
            heart_rate=value("heartRate"),
            temp=value("temp"),
        )
