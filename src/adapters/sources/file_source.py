"""Local File Source.

Reads a form export that has already been downloaded to disk.
"""

import logging
from pathlib import Path

from src.domain.ports import SourceFetchError, SourcePort

logger = logging.getLogger(__name__)


class FileSource(SourcePort):
    """SourcePort over a local CSV export.

    Parameters:
        path: Path to the export file
        encoding: Text encoding of the file (a UTF-8 BOM is tolerated)
    """

    def __init__(self, path: str, encoding: str = "utf-8-sig"):
        self.path = Path(path)
        self.encoding = encoding

    @property
    def location(self) -> str:
        return str(self.path)

    def fetch(self) -> str:
        if not self.path.is_file():
            raise SourceFetchError(f"File not found: {self.path}", source=self.location)
        try:
            text = self.path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise SourceFetchError(f"Could not read {self.path}: {e}", source=self.location) from e

        logger.info(f"Read {len(text)} characters from {self.path}")
        return text
