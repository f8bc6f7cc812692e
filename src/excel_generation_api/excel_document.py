"""Dataclasses describing generated workbooks and inspected templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class FormulaWrite:
    """A formula written by the mapping engine and its cached display result."""

    sheet: str
    cell: str
    formula: str
    cached_result: Any


@dataclass
class SheetSummary:
    """Dimensions and occupancy of a single worksheet."""

    name: str
    row_count: int
    column_count: int
    has_data: bool


@dataclass
class TemplateValidation:
    """Outcome of trying to load a buffer as a workbook."""

    is_valid: bool
    sheets: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class TemplateInfo:
    """Per-sheet structure of a loadable workbook."""

    sheets: list[SheetSummary]

    @property
    def total_sheets(self) -> int:
        return len(self.sheets)


@dataclass
class BulkItemResult:
    index: int
    file_name: str
    content: bytes


@dataclass
class BulkItemError:
    index: int
    error: str


@dataclass
class BulkResult:
    """Results of a sequential bulk generation run."""

    total: int
    results: list[BulkItemResult] = field(default_factory=list)
    errors: list[BulkItemError] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.errors)
