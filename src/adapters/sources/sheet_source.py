"""Published Spreadsheet Source.

Fetches the CSV export of a spreadsheet that has been published to the web.
An editor link (".../edit#gid=0") is rewritten to its CSV export form, and a
cache-busting query parameter is appended so the latest responses are read.
"""

import logging
import re
from typing import Optional

import requests

from src.domain.ports import SourceFetchError, SourcePort
from src.domain.utils import Clock, epoch_millis, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
PUBLISH_HINT = "Ensure Sheet is 'Published to Web' as CSV (File > Share > Publish to Web)."

_EDIT_SUFFIX = re.compile(r"/edit.*$")


def to_export_url(url: str) -> str:
    """Rewrite an editor link to the CSV export endpoint; other URLs pass through."""
    url = url.strip()
    if "/edit" in url:
        return _EDIT_SUFFIX.sub("/export?format=csv", url)
    return url


class PublishedSheetSource(SourcePort):
    """SourcePort over a published spreadsheet URL.

    Parameters:
        url: Published CSV URL or editor link
        timeout: Seconds to wait for the server before failing
        session: Optional requests session (shared connection pool, test double)
        clock: Source of the cache-busting timestamp
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        clock: Clock = utc_now,
    ):
        if not url or not url.strip():
            raise ValueError("Sheet URL cannot be empty")
        self.url = url.strip()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.clock = clock

    @property
    def location(self) -> str:
        return self.url

    def request_url(self) -> str:
        """Export URL with the cache-busting parameter appended."""
        export_url = to_export_url(self.url)
        separator = "&" if "?" in export_url else "?"
        return f"{export_url}{separator}t={epoch_millis(self.clock())}"

    def fetch(self) -> str:
        url = self.request_url()
        logger.info(f"Fetching published sheet: {to_export_url(self.url)}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise SourceFetchError(
                f"Timed out after {self.timeout}s fetching sheet", source=self.location
            ) from e
        except requests.exceptions.RequestException as e:
            raise SourceFetchError(f"Failed to fetch. {e}", source=self.location) from e

        if not response.ok:
            raise SourceFetchError(
                f"Failed to fetch (HTTP {response.status_code}). {PUBLISH_HINT}",
                source=self.location,
            )

        # Exports are UTF-8; requests assumes Latin-1 for text/* without a charset.
        if "charset" not in response.headers.get("Content-Type", "").lower():
            response.encoding = "utf-8"
        return response.text
