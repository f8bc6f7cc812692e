"""Immutable cell style descriptors and their application to openpyxl cells.

A mapping rule's style and number format are folded into a single
``StyleSpec``; specs are combined with ``merge_styles`` (later non-None
fields win) and written to the target cell in one ``apply_style`` call.
Font attributes are merged onto the cell's existing font so template
formatting survives partial overrides.
"""

from __future__ import annotations

from copy import copy
from dataclasses import dataclass, fields, replace
from typing import Final

from openpyxl.cell import Cell
from openpyxl.styles import Font, PatternFill

NUMBER_FORMATS: Final[dict[str, str]] = {
    "currency": "$#,##0.00",
    "percentage": "0.00%",
    "date": "mm/dd/yyyy",
    "datetime": "mm/dd/yyyy hh:mm:ss",
    "number": "#,##0.00",
    "integer": "#,##0",
}


def to_argb(hex_color: str) -> str:
    """Prefix a 6-digit hex colour with an opaque alpha channel."""
    return f"FF{hex_color.upper()}"


def resolve_number_format(format_name: str) -> str:
    """Map a format keyword to its Excel code; unknown values pass through."""
    return NUMBER_FORMATS.get(format_name.lower(), format_name)


def solid_fill(hex_color: str) -> PatternFill:
    argb = to_argb(hex_color)
    return PatternFill(fill_type="solid", fgColor=argb, bgColor=argb)


@dataclass(frozen=True)
class StyleSpec:
    """Style attributes to apply to a single cell. ``None`` means "leave as is"."""

    bg_color: str | None = None
    font_color: str | None = None
    font_size: float | None = None
    bold: bool | None = None
    italic: bool | None = None
    underline: bool | None = None
    number_format: str | None = None

    @property
    def has_font_changes(self) -> bool:
        return any(
            value is not None
            for value in (
                self.font_color,
                self.font_size,
                self.bold,
                self.italic,
                self.underline,
            )
        )

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def merge_styles(*specs: StyleSpec | None) -> StyleSpec:
    """Combine style specs left to right; later non-None fields override."""
    merged = StyleSpec()
    for spec in specs:
        if spec is None:
            continue
        overrides = {
            f.name: getattr(spec, f.name)
            for f in fields(spec)
            if getattr(spec, f.name) is not None
        }
        merged = replace(merged, **overrides)
    return merged


def apply_style(cell: Cell, spec: StyleSpec) -> None:
    """Write a style spec onto an openpyxl cell."""
    if spec.bg_color:
        cell.fill = solid_fill(spec.bg_color)

    if spec.has_font_changes:
        font: Font = copy(cell.font)
        if spec.font_color:
            font.color = to_argb(spec.font_color)
        if spec.font_size is not None:
            font.size = spec.font_size
        if spec.bold is not None:
            font.bold = spec.bold
        if spec.italic is not None:
            font.italic = spec.italic
        if spec.underline is not None:
            font.underline = "single" if spec.underline else None
        cell.font = font

    if spec.number_format:
        cell.number_format = resolve_number_format(spec.number_format)
