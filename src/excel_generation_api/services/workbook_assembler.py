"""Workbook assembly: template loading, mappings, tables, sheet options.

This module is the single entry point for turning a validated request into
``.xlsx`` bytes. It:
1. Loads the template workbook or starts an empty one
2. Applies cell mappings in order
3. Builds every configured table from the document's ``tableData``
4. Applies autofit, frozen header row and protection to every sheet
5. Serializes the workbook and fills in cached formula results

Any failure along the way surfaces as a single WorkbookGenerationError.
"""

from __future__ import annotations

from collections.abc import Sequence
from io import BytesIO
from typing import Any, Final

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.workbook.properties import CalcProperties
from openpyxl.worksheet.worksheet import Worksheet

from excel_generation_api.models import CellMapping, ExcelOptions, TableConfig
from excel_generation_api.services.cell_reference import get_nested_value
from excel_generation_api.services.formula_cache import write_cached_results
from excel_generation_api.services.mapping_engine import (
    MappingEngine,
    get_or_create_sheet,
)
from excel_generation_api.services.table_builder import build_table
from excel_generation_api.utils.exceptions import (
    ExcelAPIError,
    WorkbookGenerationError,
)
from excel_generation_api.utils.logging import get_logger, timed_operation

logger = get_logger(__name__)

DEFAULT_SHEET_NAME: Final = "Sheet1"
TABLE_DATA_FIELD: Final = "tableData"
AUTOFIT_COLUMN_COUNT: Final = 10
AUTOFIT_COLUMN_WIDTH: Final = 15


def load_template(template: bytes) -> Workbook:
    """Load template bytes as a workbook."""
    return load_workbook(filename=BytesIO(template))


def new_workbook() -> Workbook:
    workbook = Workbook()
    workbook.active.title = DEFAULT_SHEET_NAME
    return workbook


def resolve_table_rows(document: dict[str, Any]) -> list[Any] | None:
    """Return the shared ``tableData`` rows of a document.

    Every table config draws from this same top-level field.

    Raises:
        ValueError: If ``tableData`` is present but not an array.
    """
    rows = get_nested_value(document, TABLE_DATA_FIELD)
    if rows is None:
        return None
    if not isinstance(rows, list):
        raise ValueError(
            f"{TABLE_DATA_FIELD} must be an array of rows, "
            f"got {type(rows).__name__}"
        )
    return rows


def autofit_columns(worksheet: Worksheet) -> None:
    """Give the leading columns a fixed readable width."""
    for column in range(1, AUTOFIT_COLUMN_COUNT + 1):
        worksheet.column_dimensions[get_column_letter(column)].width = (
            AUTOFIT_COLUMN_WIDTH
        )


def freeze_first_row(worksheet: Worksheet) -> None:
    worksheet.freeze_panes = "A2"


def protect_sheet(worksheet: Worksheet, password: str | None) -> None:
    worksheet.protection.sheet = True
    if password:
        worksheet.protection.password = password


def apply_sheet_options(workbook: Workbook, options: ExcelOptions) -> None:
    """Apply per-sheet options to every worksheet, template sheets included."""
    for worksheet in workbook.worksheets:
        if options.auto_fit_columns:
            autofit_columns(worksheet)
        if options.freeze_first_row:
            freeze_first_row(worksheet)
        if options.protect_sheet:
            protect_sheet(worksheet, options.password or "")


def mark_for_recalculation(workbook: Workbook) -> None:
    """Ask the spreadsheet application to evaluate formulas on open."""
    if workbook.calculation is None:
        workbook.calculation = CalcProperties()
    workbook.calculation.fullCalcOnLoad = True


def serialize_workbook(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _failure_message(exc: Exception) -> str:
    if isinstance(exc, ExcelAPIError):
        return exc.message
    return str(exc) or type(exc).__name__


def generate_workbook(
    json_data: dict[str, Any],
    mappings: Sequence[CellMapping],
    tables: Sequence[TableConfig] = (),
    template: bytes | None = None,
    options: ExcelOptions | None = None,
) -> bytes:
    """Build a workbook from JSON data and return its ``.xlsx`` bytes.

    Args:
        json_data: Source document that mapping field paths resolve against.
        mappings: Cell mapping rules, applied in order.
        tables: Table descriptors, built in order from ``tableData``.
        template: Optional template workbook bytes to start from.
        options: Per-sheet options; defaults apply when omitted.

    Returns:
        The serialized workbook.

    Raises:
        WorkbookGenerationError: If loading, writing or serializing fails.
    """
    opts = options or ExcelOptions()

    with timed_operation(logger, "generate_workbook") as metrics:
        try:
            workbook = load_template(template) if template else new_workbook()

            engine = MappingEngine(workbook)
            engine.apply(json_data, mappings)
            metrics.cells_written = engine.cells_written

            if tables:
                rows = resolve_table_rows(json_data)
                for table_config in tables:
                    worksheet = get_or_create_sheet(workbook, table_config.sheet)
                    if rows and build_table(worksheet, table_config, rows):
                        metrics.tables_created += 1

            apply_sheet_options(workbook, opts)
            if engine.formula_writes:
                mark_for_recalculation(workbook)

            content = write_cached_results(
                serialize_workbook(workbook), engine.formula_writes
            )
        except Exception as e:
            message = _failure_message(e)
            logger.error(
                "Workbook generation failed",
                error_type=type(e).__name__,
                error=message,
            )
            raise WorkbookGenerationError(message) from e

        metrics.sheets_processed = len(workbook.worksheets)
        metrics.bytes_written = len(content)

    return content
