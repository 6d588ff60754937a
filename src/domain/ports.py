"""Domain Ports - Abstract Contracts for Storage and Sources.

This module defines the Port interfaces (abstract contracts) that Adapters must implement,
together with the Result type and the exception hierarchy shared by the pipeline.
Following Hexagonal Architecture, the Domain Core defines what it needs, not how it's provided.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Storage adapters (in-memory, DuckDB) implement StoragePort as load/save primitives
    - Source adapters (local file, published sheet URL) implement SourcePort
    - Domain Core is isolated from persistence and transport specifics
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Storage adapters and the ingestion orchestrator report their outcome through
    this type so callers can branch on success without wrapping every call in
    try/except.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (SchemaInferenceError, StorageError, etc.)
        error_details: Additional error context (source, row number, etc.)

    Example:
        ```python
        result = orchestrator.ingest_text(csv_text)
        if result.is_success():
            print(result.value.message)
        else:
            print(result.error)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "SchemaInferenceError", "StorageError")
            error_details: Additional context (source, row number, etc.)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class IngestionError(Exception):
    """Base exception for all ingestion-related errors."""
    pass


class SchemaInferenceError(IngestionError):
    """Raised when neither a name-like nor an id-like column can be found.

    Fatal for the whole batch: without one of the two there is no way to
    attribute a row to a patient.

    Attributes:
        headers: The header strings that were inspected
    """

    def __init__(self, message: str, headers: Optional[list[str]] = None):
        super().__init__(message)
        self.headers = list(headers or [])


class RowParseError(IngestionError):
    """Raised when a single row cannot be split or normalized.

    Attributes:
        row_number: 1-based line number of the row within the source text
        raw_row: The raw row text (may be truncated by callers before logging)
    """

    def __init__(self, message: str, row_number: Optional[int] = None, raw_row: Optional[str] = None):
        super().__init__(message)
        self.row_number = row_number
        self.raw_row = raw_row


class MessageDecodeError(IngestionError):
    """Raised when a wire message cannot be decoded into clinical records.

    Attributes:
        segment: Tag of the segment that caused the failure, if known
    """

    def __init__(self, message: str, segment: Optional[str] = None):
        super().__init__(message)
        self.segment = segment


class MissingSegmentError(MessageDecodeError):
    """Raised when a required segment (PID) is absent from a wire message."""
    pass


class SourceFetchError(IngestionError):
    """Raised when the raw source text cannot be retrieved.

    Attributes:
        source: The source identifier (path or URL) that failed
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class EmptySourceError(SourceFetchError):
    """Raised when the retrieved source holds a header but no responses."""
    pass


class StorageError(IngestionError):
    """Raised when a storage operation fails.

    Attributes:
        operation: The storage operation that failed (load, save, clear, etc.)
        details: Additional error context
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


# ============================================================================
# Ports
# ============================================================================

class StoragePort(ABC):
    """Abstract contract for key-value persistence of record collections.

    The record store keeps each collection (patients, encounters, observations,
    logs) as one ordered list of JSON-compatible documents under its own key.
    Adapters only need to provide whole-collection load and save primitives.

    Example Usage:
        ```python
        adapter = InMemoryStorageAdapter()
        adapter.save("patients", [{"id": "p-1"}])
        result = adapter.load("patients")
        if result.is_success():
            documents = result.value
        ```
    """

    @abstractmethod
    def load(self, key: str) -> Result[Optional[list[dict]]]:
        """Load the documents stored under a key.

        Parameters:
            key: Collection key

        Returns:
            Result[Optional[list[dict]]]: The stored documents, or None if the
            key has never been written
        """
        pass

    @abstractmethod
    def save(self, key: str, documents: list[dict]) -> Result[int]:
        """Replace the documents stored under a key.

        Parameters:
            key: Collection key
            documents: JSON-compatible documents, in order

        Returns:
            Result[int]: Number of documents written
        """
        pass

    @abstractmethod
    def clear(self) -> Result[None]:
        """Remove every key from storage."""
        pass

    def close(self) -> None:
        """Release any held resources (optional, adapter-specific)."""
        return None


class SourcePort(ABC):
    """Abstract contract for retrieving raw delimited text.

    Retrieval is the only suspension point of a batch. Implementations must
    raise SourceFetchError for any retrieval failure and are responsible for
    bounding their own wait time.
    """

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable identifier of the source (path or URL)."""
        pass

    @abstractmethod
    def fetch(self) -> str:
        """Retrieve the full source text.

        Returns:
            str: Raw comma-separated text, header row first

        Raises:
            SourceFetchError: If the source cannot be retrieved
        """
        pass
