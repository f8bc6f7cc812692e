"""Structured logging for the Excel generation API.

Log calls take keyword fields that are rendered as ``key=value`` pairs
after the message. The request ID and any fields bound with ``LogContext``
live in a context variable and are prefixed to every formatted record, so
all lines emitted while serving one request can be correlated.

Usage:
    from excel_generation_api.utils.logging import LogContext, get_logger

    logger = get_logger(__name__)

    with LogContext(file_name="report.xlsx"):
        logger.info("Generating workbook", mode="download")
    # [request_id=... file_name=report.xlsx] Generating workbook | mode=download

    with timed_operation(logger, "generate_workbook") as metrics:
        metrics.cells_written = 42
"""

import logging
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
REQUEST_ID_KEY = "request_id"

# Keyword arguments that belong to the logging call itself, not to the fields.
_LOGGING_KWARGS = ("exc_info", "stack_info", "stacklevel", "extra")

_log_context: ContextVar[Mapping[str, Any]] = ContextVar("log_context", default={})


def get_request_id() -> str | None:
    """Return the request ID bound to the current context, if any."""
    request_id: str | None = _log_context.get().get(REQUEST_ID_KEY)
    return request_id


def set_request_id(request_id: str | None) -> None:
    """Bind ``request_id`` to the current context; ``None`` unbinds it."""
    context = dict(_log_context.get())
    context.pop(REQUEST_ID_KEY, None)
    if request_id is not None:
        context[REQUEST_ID_KEY] = request_id
    _log_context.set(context)


def get_extra_context() -> dict[str, Any]:
    """Fields bound to the current context, excluding the request ID."""
    return {k: v for k, v in _log_context.get().items() if k != REQUEST_ID_KEY}


def set_extra_context(fields: Mapping[str, Any]) -> None:
    """Replace the bound fields, keeping the request ID."""
    request_id = get_request_id()
    context = dict(fields)
    if request_id is not None:
        context[REQUEST_ID_KEY] = request_id
    _log_context.set(context)


def clear_context() -> None:
    _log_context.set({})


def render_context() -> str:
    """Render the bound context as ``request_id=... key=value``."""
    context = _log_context.get()
    pairs = []
    if REQUEST_ID_KEY in context:
        pairs.append(f"{REQUEST_ID_KEY}={context[REQUEST_ID_KEY]}")
    pairs.extend(f"{k}={v}" for k, v in context.items() if k != REQUEST_ID_KEY)
    return " ".join(pairs)


def format_fields(message: str, fields: Mapping[str, Any]) -> str:
    if not fields:
        return message
    rendered = ", ".join(f"{key}={value}" for key, value in fields.items())
    return f"{message} | {rendered}"


_COUNTERS = ("sheets_processed", "cells_written", "tables_created", "bytes_written")


@dataclass
class PerformanceMetrics:
    """Counters collected while building a workbook.

    Zero counters are left out of the logged fields.
    """

    operation: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    duration_seconds: float = 0.0
    sheets_processed: int = 0
    cells_written: int = 0
    tables_created: int = 0
    bytes_written: int = 0
    custom_metrics: dict[str, Any] = field(default_factory=dict)
    _clock_start: float = field(default_factory=time.perf_counter, repr=False)

    def finish(self) -> None:
        self.finished_at = datetime.now(UTC)
        self.duration_seconds = time.perf_counter() - self._clock_start

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "operation": self.operation,
            "duration_seconds": self.duration_seconds,
        }
        result.update(
            {name: getattr(self, name) for name in _COUNTERS if getattr(self, name)}
        )
        if self.custom_metrics:
            result["custom_metrics"] = self.custom_metrics
        return result


class StructuredLogFormatter(logging.Formatter):
    """Formatter that prefixes the message with the bound log context."""

    def formatMessage(self, record: logging.LogRecord) -> str:  # noqa: N802
        context = render_context()
        if context:
            record = logging.makeLogRecord(
                {**record.__dict__, "message": f"[{context}] {record.message}"}
            )
        return super().formatMessage(record)


class StructuredLogger(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter that turns keyword arguments into ``key=value`` fields.

    ``exc_info``, ``stack_info``, ``stacklevel`` and ``extra`` keep their
    usual meaning; every other keyword becomes a field.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        passthrough = {k: kwargs.pop(k) for k in _LOGGING_KWARGS if k in kwargs}
        return format_fields(str(msg), kwargs), passthrough

    def log_performance(self, metrics: PerformanceMetrics) -> None:
        self.info(f"Performance: {metrics.operation}", **metrics.to_dict())

    def log_progress(
        self, stage: str, current: int, total: int, details: str | None = None
    ) -> None:
        """Log ``current`` of ``total`` items done for a multi-item stage."""
        percentage = current / total * 100 if total else 0.0
        fields: dict[str, Any] = {
            "current": current,
            "total": total,
            "percentage": f"{percentage:.1f}%",
        }
        if details:
            fields["details"] = details
        self.info(f"Progress: {stage}", **fields)

    def log_email_delivery(
        self,
        recipient: str,
        file_name: str | None,
        duration_seconds: float,
        success: bool = True,
        error_message: str | None = None,
    ) -> None:
        """Log one SMTP send attempt, at ERROR level when it failed."""
        fields: dict[str, Any] = {
            "recipient": recipient,
            "duration_seconds": f"{duration_seconds:.3f}",
            "success": success,
        }
        if file_name:
            fields["file_name"] = file_name
        if error_message:
            fields["error"] = error_message
        level = logging.INFO if success else logging.ERROR
        self.log(level, "Email delivery", **fields)

    def log_generation_result(
        self,
        file_name: str,
        mode: str,
        success: bool,
        size_bytes: int | None = None,
        error_message: str | None = None,
    ) -> None:
        """Log the outcome of a generate request.

        Args:
            file_name: Output workbook name.
            mode: Delivery mode (download, email, base64).
            success: Whether generation and delivery succeeded.
            size_bytes: Size of the serialized workbook.
            error_message: Error message on failure.
        """
        fields: dict[str, Any] = {
            "file_name": file_name,
            "mode": mode,
            "success": success,
        }
        if size_bytes is not None:
            fields["size_bytes"] = size_bytes
        if error_message:
            fields["error"] = error_message
        level = logging.INFO if success else logging.ERROR
        self.log(level, "Generation completed", **fields)


class LogContext:
    """Bind fields to every log line emitted inside the ``with`` block.

    A ``request_id`` keyword replaces the current request ID; the previous
    context is restored on exit, so blocks nest.
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = fields
        self._token: Token[Mapping[str, Any]] | None = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self._fields})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


@contextmanager
def timed_operation(
    logger: StructuredLogger, operation: str
) -> Iterator[PerformanceMetrics]:
    """Yield a PerformanceMetrics and log it when the block exits.

    The metrics are logged whether or not the block raised.
    """
    metrics = PerformanceMetrics(operation=operation)
    try:
        yield metrics
    finally:
        metrics.finish()
        logger.log_performance(metrics)


def configure_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    use_structured_formatter: bool = True,
) -> None:
    """Install a single stream handler on the root logger.

    Any handlers already on the root logger are replaced.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    formatter_class = (
        StructuredLogFormatter if use_structured_formatter else logging.Formatter
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter_class(format_string or DEFAULT_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def get_logger(name: str) -> StructuredLogger:
    """Return a StructuredLogger wrapping ``logging.getLogger(name)``."""
    return StructuredLogger(logging.getLogger(name), {})


class ProgressTracker:
    """Counts finished items of a multi-item run and logs progress.

    Progress is logged every ``log_interval`` items and on the last one.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        stage: str,
        total: int,
        log_interval: int = 1,
    ) -> None:
        self._logger = logger
        self._stage = stage
        self._total = total
        self._log_interval = max(log_interval, 1)
        self._done = 0
        self._started = time.perf_counter()

    @property
    def done(self) -> int:
        return self._done

    def update(self, increment: int = 1, details: str | None = None) -> None:
        self._done += increment
        if self._done % self._log_interval == 0 or self._done == self._total:
            self._logger.log_progress(self._stage, self._done, self._total, details)

    def complete(self) -> float:
        """Log completion and return the elapsed seconds."""
        elapsed = time.perf_counter() - self._started
        self._logger.info(
            f"Completed: {self._stage}",
            total_items=self._total,
            duration_seconds=f"{elapsed:.2f}",
        )
        return elapsed
