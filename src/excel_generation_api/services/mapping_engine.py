"""Apply field-to-cell mapping rules to an openpyxl workbook."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from excel_generation_api.excel_document import FormulaWrite
from excel_generation_api.models import CellMapping
from excel_generation_api.services.cell_reference import (
    get_nested_value,
    parse_cell_reference,
)
from excel_generation_api.services.styling import apply_style
from excel_generation_api.utils.logging import get_logger

logger = get_logger(__name__)


def get_or_create_sheet(workbook: Workbook, name: str) -> Worksheet:
    """Return the named worksheet, appending it to the workbook if missing."""
    if name in workbook.sheetnames:
        return workbook[name]
    logger.debug("Creating worksheet", sheet=name)
    return workbook.create_sheet(title=name)


def to_cell_value(value: Any) -> Any:
    """Coerce a JSON value into something openpyxl can store.

    Objects and arrays have no cell representation and are written as
    their JSON text.
    """
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def normalize_formula(formula: str) -> str:
    return formula if formula.startswith("=") else f"={formula}"


class MappingEngine:
    """Writes mapping rules into a workbook in list order."""

    def __init__(self, workbook: Workbook) -> None:
        self._workbook = workbook
        self.formula_writes: list[FormulaWrite] = []
        self.cells_written = 0

    def apply(self, document: dict[str, Any], mappings: Sequence[CellMapping]) -> None:
        for mapping in mappings:
            self.apply_mapping(document, mapping)

    def apply_mapping(self, document: dict[str, Any], mapping: CellMapping) -> None:
        """Resolve one rule's value and write it with its style and format."""
        sheet = get_or_create_sheet(self._workbook, mapping.sheet)
        column, row = parse_cell_reference(mapping.cell)
        cell = sheet.cell(row=row, column=column)

        value = get_nested_value(document, mapping.field_name)

        if mapping.formula:
            cached = value if value is not None else 0
            cell.value = normalize_formula(mapping.formula)
            self.formula_writes.append(
                FormulaWrite(
                    sheet=sheet.title,
                    cell=cell.coordinate,
                    formula=mapping.formula,
                    cached_result=cached,
                )
            )
        else:
            cell.value = to_cell_value(value) if value is not None else ""

        spec = mapping.to_style_spec()
        if not spec.is_empty:
            apply_style(cell, spec)

        self.cells_written += 1


def apply_mappings(
    workbook: Workbook,
    document: dict[str, Any],
    mappings: Sequence[CellMapping],
) -> list[FormulaWrite]:
    """Apply every mapping rule and return the formulas that were written."""
    engine = MappingEngine(workbook)
    engine.apply(document, mappings)
    return engine.formula_writes
