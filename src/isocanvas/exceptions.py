"""Custom exception hierarchy for IsoCanvas."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for notifications and logs."""

    # Storage errors
    TRANSIENT_IO = "TRANSIENT_IO"

    # Stream errors
    MALFORMED_DELTA = "MALFORMED_DELTA"

    # Diff errors
    DIFF_COMPUTATION = "DIFF_COMPUTATION"

    # Kind registry errors
    CONFIGURATION = "CONFIGURATION"

    # Version errors
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"


class CanvasException(Exception):
    """
    Base exception for all IsoCanvas errors.

    Provides structured error payloads with:
    - Human-readable message
    - Machine-readable error code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to a dictionary for notifications.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class TransientIOError(CanvasException):
    """A network or local-store read/write failed. Safe to retry later."""

    def __init__(
        self,
        operation: str,
        document_id: str,
        original_error: Optional[BaseException] = None,
        status_code: int = 0,
    ):
        details: Dict[str, Any] = {"operation": operation, "document_id": document_id}
        if original_error is not None:
            details["original_error"] = str(original_error)
        if status_code:
            details["status_code"] = status_code

        super().__init__(
            f"{operation} failed for document {document_id}",
            ErrorCode.TRANSIENT_IO,
            details=details
        )
        self.operation = operation
        self.document_id = document_id
        self.status_code = status_code


class MalformedDeltaError(CanvasException):
    """A stream record does not have the {type, content} shape."""

    def __init__(self, message: str, record: Any = None):
        details = {"record": repr(record)[:200]} if record is not None else {}
        super().__init__(
            message,
            ErrorCode.MALFORMED_DELTA,
            details=details
        )


class DiffComputationError(CanvasException):
    """Two document trees could not be diffed."""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        details = {}
        if original_error is not None:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DIFF_COMPUTATION,
            details=details
        )


class ConfigurationError(CanvasException):
    """No artifact definition is registered for a content kind."""

    def __init__(self, kind: str):
        super().__init__(
            f"Artifact definition not found for kind: {kind}",
            ErrorCode.CONFIGURATION,
            details={"kind": kind}
        )
        self.kind = kind


class VersionNotFoundError(CanvasException):
    """A version index is outside the loaded version list."""

    def __init__(self, document_id: str, index: int):
        super().__init__(
            f"Version {index} not found for document {document_id}",
            ErrorCode.VERSION_NOT_FOUND,
            details={"document_id": document_id, "index": index}
        )


class ValidationError(CanvasException):
    """Validation failed for caller input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            details=details
        )
