"""Sequential generation of many independent workbook requests."""

from collections.abc import Sequence
from typing import Any

from excel_generation_api.excel_document import (
    BulkItemError,
    BulkItemResult,
    BulkResult,
)
from excel_generation_api.services.request_validation import validate_excel_request
from excel_generation_api.services.workbook_assembler import generate_workbook
from excel_generation_api.utils.exceptions import (
    ExcelAPIError,
    RequestValidationError,
)
from excel_generation_api.utils.logging import LogContext, ProgressTracker, get_logger

logger = get_logger(__name__)


def default_bulk_file_name(index: int) -> str:
    return f"generated_{index + 1}.xlsx"


def describe_failure(exc: ExcelAPIError) -> str:
    """One-line error text for a failed bulk item."""
    if isinstance(exc, RequestValidationError) and exc.errors:
        fields = "; ".join(f"{e.field}: {e.message}" for e in exc.errors)
        return f"{exc.message}: {fields}"
    return exc.message


def generate_bulk(items: Sequence[Any]) -> BulkResult:
    """Validate and generate each item in order, isolating failures.

    Bulk items never use a template and ignore ``mode`` and
    ``emailAddress``. A failing item is recorded in ``errors`` with its
    index and the remaining items still run.

    Args:
        items: Raw request bodies, one per workbook.

    Returns:
        BulkResult with successful workbooks and per-item errors.
    """
    result = BulkResult(total=len(items))
    tracker = ProgressTracker(logger, "Bulk generation", total=len(items))

    for index, item in enumerate(items):
        with LogContext(bulk_index=index):
            try:
                request = validate_excel_request(item, check_delivery=False)
                content = generate_workbook(
                    request.json_data,
                    request.mapping_config,
                    request.tables,
                    template=None,
                    options=request.options,
                )
            except ExcelAPIError as e:
                message = describe_failure(e)
                logger.warning("Bulk item failed", index=index, error=message)
                result.errors.append(BulkItemError(index=index, error=message))
                tracker.update(details=f"item {index} failed")
                continue

            file_name = (
                request.file_name
                if "file_name" in request.model_fields_set
                else default_bulk_file_name(index)
            )
            result.results.append(
                BulkItemResult(index=index, file_name=file_name, content=content)
            )
            tracker.update(details=f"item {index} generated")

    tracker.complete()
    logger.info(
        "Bulk generation finished",
        total=result.total,
        successful=result.successful,
        failed=result.failed,
    )
    return result
