"""Services for Excel workbook generation."""

from excel_generation_api.services.cell_reference import (
    get_nested_value,
    parse_cell_reference,
)
from excel_generation_api.services.styling import StyleSpec, apply_style
from excel_generation_api.services.template_inspector import TemplateInspector

__all__ = [
    "StyleSpec",
    "TemplateInspector",
    "apply_style",
    "get_nested_value",
    "parse_cell_reference",
]
