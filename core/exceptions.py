"""
Custom exceptions for the catalog ingestion pipeline with structured error context.

This module provides the exception hierarchy used throughout the pipeline.
Each exception carries context information for logging and run statistics.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   ├── APIExtractionError
    │   │   ├── AuthenticationError
    │   │   └── MalformedPayloadError
    │   └── ResourceNotFoundError
    ├── TransformationError
    │   ├── NormalizationError
    │   └── MappingFileError
    ├── LoadError
    │   ├── DatabaseError
    │   └── UpsertError
    └── SetupError
        ├── ConfigurationError
        └── ConnectivityError

Only SetupError is fatal to a run. Everything else is caught per item by
the runner, logged, and counted.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class ETLException(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (provider, record id, etc.)
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
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for upstream fetch failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    A request to an upstream provider failed (transport error, non-2xx status).

    Context should include:
        - provider: "academy" or "labs"
        - api_url: The endpoint that failed
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated)
    """
    pass


class AuthenticationError(APIExtractionError):
    """Credentials rejected by the provider (HTTP 401, 403)."""
    pass


class MalformedPayloadError(APIExtractionError):
    """
    Response body is not JSON or does not match the expected payload shape.

    Context should include:
        - api_url: The endpoint that returned the payload
        - validation_errors: Pydantic error list (if applicable)
    """
    pass


class ResourceNotFoundError(ExtractionError):
    """The requested record does not exist upstream (HTTP 404)."""
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for transformation failures."""
    pass


class NormalizationError(TransformationError):
    """
    An upstream record could not be mapped onto an insert record.

    Context should include:
        - entity: "module", "unit", "machine", "exam"
        - record_id: Upstream id of the record
    """
    pass


class MappingFileError(TransformationError):
    """
    The module-vulnerability mappings file is unreadable or malformed.

    Context should include:
        - file_path: Path of the mappings file
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for sink write failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when an edge insert or a read helper fails.

    Context should include:
        - operation: INSERT, SELECT
        - table_name: Name of the table
    """
    pass


class UpsertError(LoadError):
    """
    Exception raised when a primary-record upsert fails.

    Context should include:
        - table_name: Name of the table
        - record_id: Upstream id of the record being upserted
    """
    pass


# ============================================================================
# Setup Errors
# ============================================================================

class SetupError(ETLException):
    """A required collaborator is unusable before the run starts. Aborts the run."""
    pass


class ConfigurationError(SetupError):
    """Missing credentials or invalid settings."""
    pass


class ConnectivityError(SetupError):
    """The database or both upstream providers cannot be reached."""
    pass
