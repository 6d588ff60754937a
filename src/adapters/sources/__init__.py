"""Source adapters for Intake-Relay.

Sources implement SourcePort and return the raw delimited text of a form export.
"""

from typing import Optional

from src.adapters.sources.file_source import FileSource
from src.adapters.sources.sheet_source import DEFAULT_TIMEOUT, PublishedSheetSource
from src.domain.ports import SourcePort


def get_source(location: str, timeout: Optional[float] = None) -> SourcePort:
    """Pick a source adapter for a location: http(s) URLs fetch over the network,
    anything else is read as a local file path.
    """
    if location.lower().startswith(("http://", "https://")):
        return PublishedSheetSource(location, timeout=timeout if timeout is not None else DEFAULT_TIMEOUT)
    return FileSource(location)


__all__ = ["FileSource", "PublishedSheetSource", "get_source"]
