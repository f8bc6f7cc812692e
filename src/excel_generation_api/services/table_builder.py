"""Write tabular JSON data as a styled, native Excel table."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Final

from openpyxl.styles import Font
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from excel_generation_api.models import TableConfig, TableStyle
from excel_generation_api.services.cell_reference import (
    format_cell_reference,
    parse_cell_reference,
)
from excel_generation_api.services.mapping_engine import to_cell_value
from excel_generation_api.services.styling import solid_fill, to_argb
from excel_generation_api.utils.logging import get_logger

logger = get_logger(__name__)

TABLE_THEME: Final = "TableStyleMedium9"


def row_fill_color(style: TableStyle | None, row_index: int) -> str | None:
    """Background color for a data row; even rows use the base color.

    Odd rows use ``alternate_row_bg_color`` and fall back to the base color.
    """
    if style is None:
        return None
    if row_index % 2 == 0:
        return style.row_bg_color
    return style.alternate_row_bg_color or style.row_bg_color


def row_values(row: Any, columns: Sequence[str]) -> list[Any] | None:
    """Project a data row onto the table's columns.

    List rows are positional and truncated to the column count. Object rows
    are looked up by column name, with missing or null entries written as an
    empty string. Any other row shape yields ``None`` and is skipped.
    """
    if isinstance(row, list):
        return list(row[: len(columns)])
    if isinstance(row, dict):
        values = []
        for column in columns:
            value = row.get(column)
            values.append("" if value is None else value)
        return values
    return None


class TableBuilder:
    """Writes one TableConfig and its rows onto a worksheet."""

    def __init__(self, worksheet: Worksheet, config: TableConfig) -> None:
        self._worksheet = worksheet
        self._config = config

    def build(self, rows: Sequence[Any] | None) -> Table | None:
        """Write headers and rows, then register the table.

        Returns:
            The registered table, or None when there was no data.
        """
        if not rows:
            logger.debug("No table data, skipping", table=self._config.table_name)
            return None

        start_col, start_row = parse_cell_reference(self._config.start_cell)
        self._write_header(start_col, start_row)

        for row_index, row in enumerate(rows):
            values = row_values(row, self._config.columns)
            if values is None:
                logger.warning(
                    "Skipping table row with unsupported shape",
                    table=self._config.table_name,
                    row_index=row_index,
                    row_type=type(row).__name__,
                )
                continue
            self._write_row(values, start_col, start_row + row_index + 1, row_index)

        return self._register_table(start_col, start_row, len(rows))

    def _write_header(self, start_col: int, start_row: int) -> None:
        style = self._config.style
        for offset, header in enumerate(self._config.columns):
            cell = self._worksheet.cell(row=start_row, column=start_col + offset)
            cell.value = header
            if style is not None and style.header_bg_color:
                cell.fill = solid_fill(style.header_bg_color)
            if style is not None and style.header_font_color:
                cell.font = Font(color=to_argb(style.header_font_color), bold=True)
            else:
                cell.font = Font(bold=True)

    def _write_row(
        self, values: list[Any], start_col: int, row_number: int, row_index: int
    ) -> None:
        fill_color = row_fill_color(self._config.style, row_index)
        for offset, value in enumerate(values):
            cell = self._worksheet.cell(row=row_number, column=start_col + offset)
            cell.value = to_cell_value(value)
            if fill_color:
                cell.fill = solid_fill(fill_color)

    def _register_table(self, start_col: int, start_row: int, row_count: int) -> Table:
        end_col = start_col + len(self._config.columns) - 1
        end_row = start_row + row_count
        ref = (
            f"{format_cell_reference(start_col, start_row)}:"
            f"{format_cell_reference(end_col, end_row)}"
        )

        table = Table(displayName=self._config.table_name, ref=ref)
        table.tableStyleInfo = TableStyleInfo(
            name=TABLE_THEME,
            showFirstColumn=False,
            showLastColumn=False,
            showRowStripes=True,
            showColumnStripes=False,
        )
        self._worksheet.add_table(table)

        logger.debug(
            "Table registered",
            table=self._config.table_name,
            sheet=self._worksheet.title,
            ref=ref,
        )
        return table


def build_table(
    worksheet: Worksheet, config: TableConfig, rows: Sequence[Any] | None
) -> Table | None:
    """Write ``rows`` as the table described by ``config``."""
    return TableBuilder(worksheet, config).build(rows)
