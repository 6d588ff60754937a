"""Domain Utilities - Clock and timestamp helpers.

Every component that stamps a time accepts a clock callable so tests can pin
exact outputs; `utc_now` is the production default.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]

HL7_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def utc_now() -> datetime:
    """Return the current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Format a datetime as ISO 8601 with a trailing Z for UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def format_hl7_timestamp(dt: datetime) -> str:
    """Format a datetime as an HL7 TS value (YYYYMMDDHHMMSS, UTC)."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(HL7_TIMESTAMP_FORMAT)


def parse_hl7_timestamp(value: str) -> Optional[datetime]:
    """Parse an HL7 TS value back into a UTC datetime.

    Parameters:
        value: 14-digit timestamp string

    Returns:
        The parsed datetime, or None if the value is not a valid timestamp
    """
    if not value or len(value) != 14 or not value.isdigit():
        return None
    try:
        return datetime.strptime(value, HL7_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch for a datetime."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
