"""Tests for writing cached formula results into saved workbooks."""

from __future__ import annotations

import zipfile
from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from excel_generation_api.excel_document import FormulaWrite
from excel_generation_api.services.formula_cache import (
    cached_value_text,
    sheet_part_names,
    write_cached_results,
)


def _save(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def two_sheet_workbook() -> bytes:
    wb = Workbook()
    wb.active.title = "Sheet1"
    wb["Sheet1"]["A1"] = "=1+1"
    wb["Sheet1"]["A2"] = "plain"
    report = wb.create_sheet("Report")
    report["B2"] = "=TODAY()"
    return _save(wb)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (30, (None, "30")),
        (2.5, (None, "2.5")),
        (True, ("b", "1")),
        (False, ("b", "0")),
        ("John", ("str", "John")),
        ({"a": 1}, ("str", '{"a": 1}')),
    ],
)
def test_cached_value_text(value: object, expected: tuple[str | None, str]) -> None:
    assert cached_value_text(value) == expected


def test_sheet_part_names(two_sheet_workbook: bytes) -> None:
    with zipfile.ZipFile(BytesIO(two_sheet_workbook)) as zf:
        parts = sheet_part_names(zf)

    assert set(parts) == {"Sheet1", "Report"}
    assert all(part.startswith("xl/worksheets/") for part in parts.values())


def test_write_cached_results(two_sheet_workbook: bytes) -> None:
    content = write_cached_results(
        two_sheet_workbook,
        [
            FormulaWrite("Sheet1", "A1", "=1+1", 2),
            FormulaWrite("Report", "B2", "=TODAY()", "2026-01-01"),
        ],
    )

    values = load_workbook(BytesIO(content), data_only=True)
    formulas = load_workbook(BytesIO(content))
    assert values["Sheet1"]["A1"].value == 2
    assert values["Report"]["B2"].value == "2026-01-01"
    assert formulas["Sheet1"]["A1"].value == "=1+1"
    assert formulas["Report"]["B2"].value == "=TODAY()"


def test_cells_without_formula_are_untouched(two_sheet_workbook: bytes) -> None:
    content = write_cached_results(
        two_sheet_workbook,
        [
            FormulaWrite("Sheet1", "A2", "=X", 99),
            FormulaWrite("Missing", "A1", "=X", 99),
        ],
    )

    values = load_workbook(BytesIO(content), data_only=True)
    assert values["Sheet1"]["A2"].value == "plain"
    assert values.sheetnames == ["Sheet1", "Report"]


def test_no_writes_returns_content_unchanged(two_sheet_workbook: bytes) -> None:
    assert write_cached_results(two_sheet_workbook, []) is two_sheet_workbook
