from __future__ import annotations

from io import BytesIO
from typing import Any

import pytest
from openpyxl import Workbook


def workbook_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def sample_json_data() -> dict[str, Any]:
    """Document used across generation tests."""
    return {
        "name": "John",
        "age": 30,
        "email": "john@example.com",
        "address": {"city": "Springfield", "zip": "12345"},
        "orders": [{"id": 1, "total": 19.5}, {"id": 2, "total": 42.0}],
        "tableData": [
            ["Laptop", 999.99, 5],
            ["Mouse", 29.99, 10],
        ],
    }


@pytest.fixture
def sample_request(sample_json_data: dict[str, Any]) -> dict[str, Any]:
    """A complete camelCase request body."""
    return {
        "jsonData": sample_json_data,
        "mappingConfig": [
            {
                "sheet": "Sheet1",
                "cell": "A1",
                "fieldName": "name",
                "style": {"bgColor": "FFFF00", "fontColor": "000000", "bold": True},
            },
            {"sheet": "Sheet1", "cell": "B1", "fieldName": "address.city"},
        ],
        "tables": [
            {
                "sheet": "Sheet1",
                "tableName": "ProductTable",
                "startCell": "A3",
                "columns": ["Product", "Price", "Quantity"],
            }
        ],
    }


@pytest.fixture
def template_bytes() -> bytes:
    """A two-sheet template with existing content."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Data"
    ws["A1"] = "Title"
    ws["A2"] = "Name:"
    wb.create_sheet("Notes")
    return workbook_bytes(wb)
