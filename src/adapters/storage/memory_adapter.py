"""In-Memory Storage Adapter.

Process-local StoragePort implementation. Documents are deep-copied on the way
in and out so callers can never mutate stored state through a shared reference.
"""

import copy
import logging
from typing import Optional

from src.domain.ports import Result, StoragePort

logger = logging.getLogger(__name__)


class InMemoryStorageAdapter(StoragePort):
    """Dictionary-backed StoragePort; contents are lost when the process exits."""

    def __init__(self):
        self._collections: dict[str, list[dict]] = {}

    def load(self, key: str) -> Result[Optional[list[dict]]]:
        documents = self._collections.get(key)
        if documents is None:
            return Result.success_result(None)
        return Result.success_result(copy.deepcopy(documents))

    def save(self, key: str, documents: list[dict]) -> Result[int]:
        self._collections[key] = copy.deepcopy(list(documents))
        logger.debug(f"Saved {len(documents)} document(s) to '{key}'")
        return Result.success_result(len(documents))

    def clear(self) -> Result[None]:
        self._collections.clear()
        return Result.success_result(None)
