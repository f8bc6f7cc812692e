"""Utilities package for the Excel generation API.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from excel_generation_api.utils.exceptions import (
    DeliveryError,
    ErrorCode,
    ExcelAPIError,
    FieldError,
    FileError,
    GenerationError,
    HTTPStatusMixin,
    RequestValidationError,
)
from excel_generation_api.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "DeliveryError",
    "ErrorCode",
    "ExcelAPIError",
    "FieldError",
    "FileError",
    "GenerationError",
    "HTTPStatusMixin",
    "RequestValidationError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
