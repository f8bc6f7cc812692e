"""Centralized exception classes for the Excel generation API.

This module provides a hierarchy of custom exceptions with error codes,
HTTP status code mapping, and structured error details so every failure
can be converted into the same JSON error body at the API boundary.

Exception Hierarchy:
    ExcelAPIError (base)
    ├── FileError
    │   ├── MissingFileError
    │   ├── FileTooLargeError
    │   ├── UnsupportedFormatError
    │   └── InvalidTemplateError
    ├── RequestValidationError
    │   └── InvalidJSONError
    ├── GenerationError
    │   ├── InvalidCellReferenceError
    │   └── WorkbookGenerationError
    └── DeliveryError
        ├── EmailConfigurationError
        └── EmailDeliveryError

Error Codes:
    All errors carry a unique error code (e.g., "E1002") that clients can
    use for programmatic error handling.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: Uploaded file errors
    - E2xxx: Request validation errors
    - E3xxx: Workbook generation errors
    - E4xxx: Delivery (email) errors
    - E9xxx: Internal/unexpected errors
    """

    # File errors (E1xxx)
    FILE_MISSING = "E1001"
    FILE_TOO_LARGE = "E1002"
    UNSUPPORTED_FORMAT = "E1003"
    INVALID_TEMPLATE = "E1004"

    # Request validation errors (E2xxx)
    VALIDATION_FAILED = "E2001"
    INVALID_JSON = "E2002"
    INVALID_BULK_REQUEST = "E2003"

    # Generation errors (E3xxx)
    GENERATION_FAILED = "E3001"
    INVALID_CELL_REFERENCE = "E3002"

    # Delivery errors (E4xxx)
    EMAIL_NOT_CONFIGURED = "E4001"
    EMAIL_DELIVERY_FAILED = "E4002"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"
    CONFIGURATION_ERROR = "E9002"


class HTTPStatusMixin:
    """Mixin that provides HTTP status code for exceptions.

    Subclasses set the `http_status` class attribute to the status code
    the API should answer with.
    """

    http_status: int = 500

    def get_http_status(self) -> int:
        """Get the HTTP status code for this exception.

        Returns:
            HTTP status code appropriate for this error.
        """
        return self.http_status


class ExcelAPIError(Exception, HTTPStatusMixin):
    """Base exception for all Excel generation API errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Optional dictionary with additional error details.
        http_status: HTTP status code for API responses (default 500).
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses.

        Returns:
            Dictionary with error information.
        """
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# File Errors (E1xxx)
# =============================================================================


class FileError(ExcelAPIError):
    """Base class for uploaded file errors."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNSUPPORTED_FORMAT,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with file name information.

        Args:
            message: Error message.
            error_code: Error code.
            file_name: Original name of the uploaded file.
            details: Additional details.
        """
        details = details or {}
        if file_name:
            details["file_name"] = file_name
        super().__init__(message, error_code, details)
        self.file_name = file_name


class MissingFileError(FileError):
    """Raised when an endpoint requires a template upload and none was sent."""

    def __init__(
        self,
        message: str = "Please upload an Excel template file (.xlsx or .xls)",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.FILE_MISSING,
            details=details,
        )


class FileTooLargeError(FileError):
    """Raised when an upload exceeds the configured size ceiling."""

    http_status: int = 413

    def __init__(
        self,
        file_size: int,
        max_size: int,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with size information.

        Args:
            file_size: Actual file size in bytes.
            max_size: Maximum allowed size in bytes.
            file_name: Optional original file name.
            details: Additional details.
        """
        details = details or {}
        details["file_size_bytes"] = file_size
        details["max_size_bytes"] = max_size
        message = f"File size must be less than {round(max_size / 1024 / 1024)}MB"
        super().__init__(
            message=message,
            error_code=ErrorCode.FILE_TOO_LARGE,
            file_name=file_name,
            details=details,
        )
        self.file_size = file_size
        self.max_size = max_size


class UnsupportedFormatError(FileError):
    """Raised when an upload is not an Excel workbook."""

    def __init__(
        self,
        message: str = "Only Excel files (.xlsx, .xls) are allowed",
        content_type: str | None = None,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if content_type:
            details["content_type"] = content_type
        super().__init__(
            message=message,
            error_code=ErrorCode.UNSUPPORTED_FORMAT,
            file_name=file_name,
            details=details,
        )
        self.content_type = content_type


class InvalidTemplateError(FileError):
    """Raised when an uploaded template cannot be loaded as a workbook."""

    def __init__(
        self,
        message: str,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_TEMPLATE,
            file_name=file_name,
            details=details,
        )


# =============================================================================
# Request Validation Errors (E2xxx)
# =============================================================================


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure.

    Attributes:
        field: Dotted path of the offending field (e.g. "mappingConfig.0.cell").
        message: Human-readable description of the problem.
        value: The rejected value, when available.
    """

    field: str
    message: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "message": self.message, "value": self.value}


class RequestValidationError(ExcelAPIError):
    """Raised when a request body fails structural validation."""

    http_status: int = 400

    def __init__(
        self,
        message: str = "Validation Error",
        errors: list[FieldError] | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with field-level errors.

        Args:
            message: Main error message.
            errors: Field errors collected during validation.
            error_code: Error code.
            details: Additional details.
        """
        details = details or {}
        if errors:
            details["validation_errors"] = [e.to_dict() for e in errors]
        super().__init__(message, error_code, details)
        self.errors = errors or []


class InvalidJSONError(RequestValidationError):
    """Raised when a JSON body or JSON-encoded form field cannot be parsed."""

    def __init__(
        self,
        message: str = "Please ensure all JSON fields are properly formatted",
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_JSON,
            details=details,
        )


# =============================================================================
# Generation Errors (E3xxx)
# =============================================================================


class GenerationError(ExcelAPIError):
    """Base class for workbook generation errors."""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.GENERATION_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)


class InvalidCellReferenceError(GenerationError):
    """Raised when a cell reference does not match ``[A-Z]+[0-9]+``."""

    def __init__(
        self,
        reference: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["reference"] = reference
        super().__init__(
            message=message or f"Invalid cell reference: {reference}",
            error_code=ErrorCode.INVALID_CELL_REFERENCE,
            details=details,
        )
        self.reference = reference


class WorkbookGenerationError(GenerationError):
    """Raised when building or serializing a workbook fails.

    The original failure message is preserved in ``cause_message`` and
    embedded in the public message.
    """

    def __init__(
        self,
        cause_message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=f"Failed to generate Excel workbook: {cause_message}",
            error_code=ErrorCode.GENERATION_FAILED,
            details=details,
        )
        self.cause_message = cause_message


# =============================================================================
# Delivery Errors (E4xxx)
# =============================================================================


class DeliveryError(ExcelAPIError):
    """Base class for delivery errors."""

    http_status: int = 502

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.EMAIL_DELIVERY_FAILED,
        recipient: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if recipient:
            details["recipient"] = recipient
        super().__init__(message, error_code, details)
        self.recipient = recipient


class EmailConfigurationError(DeliveryError):
    """Raised when SMTP credentials are not configured."""

    def __init__(
        self,
        message: str = (
            "Email credentials not configured. Please set "
            "EXCEL_API_SMTP_USERNAME and EXCEL_API_SMTP_PASSWORD"
        ),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.EMAIL_NOT_CONFIGURED,
            details=details,
        )


class EmailDeliveryError(DeliveryError):
    """Raised when the mail transport rejects or fails a send."""

    def __init__(
        self,
        cause_message: str,
        recipient: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=f"Failed to send email: {cause_message}",
            error_code=ErrorCode.EMAIL_DELIVERY_FAILED,
            recipient=recipient,
            details=details,
        )
        self.cause_message = cause_message
