"""
Custom exceptions for the fact ETL pipeline with structured error context.

Every exception carries a context dictionary so that failures can be logged
and written to the run log with enough detail to find the offending source,
page, row or chunk.

Exception Hierarchy:
    ETLException (base)
    ├── ConfigurationError
    ├── ExtractionError
    │   ├── APIExtractionError
    │   └── FileExtractionError
    ├── TransformationError
    │   └── RecordTransformError
    ├── LoadError
    │   ├── DatabaseError
    │   └── UpsertError
    ├── CheckpointError
    └── RetryableError / NonRetryableError (retry classification)

Propagation:
    - ConfigurationError, ExtractionError and LoadError abort the affected
      source's run and are re-raised to the orchestrator.
    - RecordTransformError is absorbed per record and only counted.
    - Run-log and checkpoint failures never surface as exceptions.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class ETLException(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (source, offset, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: "
                f"{str(self.original_exception)}"
            )

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(ETLException):
    """
    Raised for unusable source configuration.

    Examples: missing mapping fields, an invalid year-column regex, an
    unsupported file type, or a source selector that matches nothing.
    Fatal to the affected source only.
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Raw rows could not be obtained from a source."""
    pass


class APIExtractionError(ExtractionError):
    """
    A page request to the data API failed.

    Context keys: api_url, resource_id, offset, status_code (when a
    response arrived).
    """
    pass


class FileExtractionError(ExtractionError):
    """
    A CSV or spreadsheet file is missing or cannot be parsed.

    Context keys: file_path, file_type.
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Mapping a source record onto the fact schema failed."""
    pass


class RecordTransformError(TransformationError):
    """
    One source record could not become fact records.

    The record is skipped and counted in rows_failed; the page or file
    carries on.
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Fact records could not be stored; the source run is marked failed."""
    pass


class DatabaseError(LoadError):
    """
    Store-level failure outside a single chunk.

    Context keys: dialect, table_name.
    """
    pass


class UpsertError(LoadError):
    """
    One upsert chunk failed and was rolled back.

    Context keys: chunk_size, operation, table_name.
    """
    pass


# ============================================================================
# Checkpoint Errors
# ============================================================================

class CheckpointError(ETLException):
    """
    Checkpoint read or write failure.

    Built for its log line only; CheckpointManager reports failures through
    return values.
    """
    pass


# ============================================================================
# Retry Classification
# ============================================================================

class RetryableError(ETLException):
    """
    Transient failure: a later attempt may succeed.

    Page fetches retry timeouts, 429, 5xx and success: false responses.
    """
    pass


class NonRetryableError(ETLException):
    """Permanent failure: retrying the same request cannot help (401, 403, 404)."""
    pass


class NetworkError(RetryableError, APIExtractionError):
    """A page could not be fetched within max_retries attempts."""
    pass


class RateLimitError(RetryableError, APIExtractionError):
    """HTTP 429; ``retry_after`` is the server's Retry-After in seconds, if any."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class DatabaseConnectionError(RetryableError, DatabaseError):
    """The store did not answer SELECT 1."""
    pass


class AuthenticationError(NonRetryableError, APIExtractionError):
    """HTTP 401 or 403 from the data API."""
    pass


class ResourceNotFoundError(NonRetryableError, APIExtractionError):
    """HTTP 404: the resource id does not exist on the data API."""
    pass
