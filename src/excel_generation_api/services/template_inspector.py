"""Template workbook inspection using openpyxl."""

from __future__ import annotations

from io import BytesIO

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from excel_generation_api.excel_document import (
    SheetSummary,
    TemplateInfo,
    TemplateValidation,
)
from excel_generation_api.utils.logging import get_logger

logger = get_logger(__name__)


class TemplateInspector:
    """Check that uploaded bytes are a workbook and describe its sheets."""

    def validate(self, content: bytes) -> TemplateValidation:
        """Try to load ``content``; never raises.

        Returns:
            TemplateValidation with sheet names on success, or the load
            error message on failure.
        """
        try:
            workbook = self._load(content)
        except Exception as exc:
            message = str(exc) or "Invalid template file"
            logger.info(
                "Template failed to load",
                error_type=type(exc).__name__,
                error=message,
            )
            return TemplateValidation(is_valid=False, sheets=[], error=message)

        return TemplateValidation(is_valid=True, sheets=list(workbook.sheetnames))

    def info(self, content: bytes) -> TemplateInfo:
        """Describe every worksheet of a workbook that already validated."""
        workbook = self._load(content)
        return TemplateInfo(
            sheets=[self._summarize_sheet(ws) for ws in workbook.worksheets]
        )

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _load(content: bytes) -> Workbook:
        return load_workbook(filename=BytesIO(content))

    def _summarize_sheet(self, sheet: Worksheet) -> SheetSummary:
        has_data = self._sheet_has_data(sheet)
        # openpyxl reports 1x1 for a sheet without any cells.
        is_blank = not has_data and sheet.dimensions == "A1:A1"
        return SheetSummary(
            name=sheet.title,
            row_count=0 if is_blank else sheet.max_row,
            column_count=0 if is_blank else sheet.max_column,
            has_data=has_data,
        )

    @staticmethod
    def _sheet_has_data(sheet: Worksheet) -> bool:
        return any(
            value is not None and value != ""
            for row in sheet.iter_rows(values_only=True)
            for value in row
        )
