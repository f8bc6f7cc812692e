"""Tests for writing native Excel tables."""

from __future__ import annotations

from typing import Any

from openpyxl import Workbook

from excel_generation_api.models import TableConfig, TableStyle
from excel_generation_api.services.table_builder import (
    TABLE_THEME,
    build_table,
    row_fill_color,
    row_values,
)


def _config(**overrides: Any) -> TableConfig:
    fields: dict[str, Any] = {
        "sheet": "Sheet1",
        "tableName": "Products",
        "startCell": "A1",
        "columns": ["Product", "Price"],
    }
    fields.update(overrides)
    return TableConfig.model_validate(fields)


def test_builds_table_from_list_rows() -> None:
    ws = Workbook().active

    table = build_table(ws, _config(), [["Laptop", 999.99, 5], ["Mouse", 29.99]])

    assert table is not None
    assert table.ref == "A1:B3"
    assert table.tableStyleInfo.name == TABLE_THEME
    assert table.tableStyleInfo.showRowStripes is True
    assert "Products" in ws.tables
    assert [c.value for c in ws[1][:2]] == ["Product", "Price"]
    assert ws["A1"].font.b is True
    # Extra positional values beyond the columns are dropped.
    assert ws["C2"].value is None
    assert ws["A3"].value == "Mouse"


def test_object_rows_use_column_names() -> None:
    ws = Workbook().active
    rows = [
        {"Product": "Laptop", "Price": 0},
        {"Product": "Cable"},
        {"Product": None, "Price": 5, "Ignored": True},
    ]

    build_table(ws, _config(startCell="C5"), rows)

    assert ws["C6"].value == "Laptop"
    assert ws["D6"].value == 0
    assert ws["D7"].value in ("", None)
    assert ws["C8"].value in ("", None)
    assert ws["D8"].value == 5
    assert ws.tables["Products"].ref == "C5:D8"


def test_style_colors_alternate_rows() -> None:
    ws = Workbook().active
    style = {
        "headerBgColor": "4472C4",
        "headerFontColor": "FFFFFF",
        "rowBgColor": "F2F2F2",
        "alternateRowBgColor": "DDEBF7",
    }

    build_table(ws, _config(style=style), [["a", 1], ["b", 2], ["c", 3]])

    assert ws["A1"].fill.fgColor.rgb == "FF4472C4"
    assert ws["A1"].font.color.rgb == "FFFFFFFF"
    assert ws["A1"].font.b is True
    assert ws["A2"].fill.fgColor.rgb == "FFF2F2F2"
    assert ws["B3"].fill.fgColor.rgb == "FFDDEBF7"
    assert ws["A4"].fill.fgColor.rgb == "FFF2F2F2"


def test_no_rows_creates_nothing() -> None:
    ws = Workbook().active
    assert build_table(ws, _config(), []) is None
    assert build_table(ws, _config(), None) is None
    assert len(ws.tables) == 0
    assert ws["A1"].value is None


def test_unsupported_row_shapes_are_skipped() -> None:
    ws = Workbook().active

    build_table(ws, _config(), [["Laptop", 1], "not a row", ["Mouse", 2]])

    assert ws["A2"].value == "Laptop"
    assert ws["A3"].value is None
    assert ws["A4"].value == "Mouse"


def test_row_fill_color() -> None:
    assert row_fill_color(None, 0) is None

    style = TableStyle(row_bg_color="FFFFFF", alternate_row_bg_color="EEEEEE")
    assert row_fill_color(style, 0) == "FFFFFF"
    assert row_fill_color(style, 1) == "EEEEEE"

    base_only = TableStyle(row_bg_color="FFFFFF")
    assert row_fill_color(base_only, 1) == "FFFFFF"


def test_row_values() -> None:
    assert row_values(["a", "b", "c"], ["x", "y"]) == ["a", "b"]
    assert row_values(["a"], ["x", "y"]) == ["a"]
    assert row_values({"x": False}, ["x", "y"]) == [False, ""]
    assert row_values(42, ["x"]) is None
