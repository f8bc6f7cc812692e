"""Tests for bulk workbook generation."""

from __future__ import annotations

from io import BytesIO
from typing import Any

from openpyxl import load_workbook

from excel_generation_api.services.bulk_generator import (
    default_bulk_file_name,
    describe_failure,
    generate_bulk,
)
from excel_generation_api.utils.exceptions import (
    FieldError,
    RequestValidationError,
    WorkbookGenerationError,
)


def _item(value: str, **extra: Any) -> dict[str, Any]:
    return {
        "jsonData": {"name": value},
        "mappingConfig": [{"sheet": "Sheet1", "cell": "A1", "fieldName": "name"}],
        **extra,
    }


def test_failures_are_isolated_per_item() -> None:
    items = [
        _item("first", fileName="first.xlsx"),
        {"jsonData": {"name": "broken"}},
        _item("third"),
    ]

    result = generate_bulk(items)

    assert result.total == 3
    assert result.successful == 2
    assert result.failed == 1
    assert [r.index for r in result.results] == [0, 2]
    assert [r.file_name for r in result.results] == ["first.xlsx", "generated_3.xlsx"]
    assert result.errors[0].index == 1
    assert "mappingConfig" in result.errors[0].error

    wb = load_workbook(BytesIO(result.results[1].content))
    assert wb["Sheet1"]["A1"].value == "third"


def test_generation_errors_are_reported() -> None:
    item = _item("x")
    item["jsonData"]["tableData"] = "not rows"
    item["tables"] = [
        {"sheet": "Sheet1", "tableName": "T", "startCell": "A3", "columns": ["a"]}
    ]

    result = generate_bulk([item, "not an object"])

    assert result.successful == 0
    assert [e.index for e in result.errors] == [0, 1]
    assert result.errors[0].error.startswith("Failed to generate Excel workbook")


def test_default_bulk_file_name() -> None:
    assert default_bulk_file_name(0) == "generated_1.xlsx"


def test_describe_failure() -> None:
    validation = RequestValidationError(
        errors=[FieldError("mappingConfig", "Field required")]
    )
    assert describe_failure(validation) == (
        "Validation Error: mappingConfig: Field required"
    )
    assert describe_failure(WorkbookGenerationError("boom")) == (
        "Failed to generate Excel workbook: boom"
    )


def test_delivery_fields_are_ignored() -> None:
    items = [
        _item("emailed", mode="email"),
        _item("faxed", mode="fax", emailAddress="not-an-email"),
    ]

    result = generate_bulk(items)

    assert result.failed == 0
    assert [r.file_name for r in result.results] == [
        "generated_1.xlsx",
        "generated_2.xlsx",
    ]
