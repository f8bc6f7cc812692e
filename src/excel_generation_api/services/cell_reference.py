"""Cell reference parsing and dotted-path lookup helpers."""

from __future__ import annotations

import re
from typing import Any, Final

from excel_generation_api.utils.exceptions import InvalidCellReferenceError

CELL_REFERENCE_PATTERN: Final = re.compile(r"^([A-Z]+)([0-9]+)$")


class _Missing:
    """Marker for a path segment that does not exist in the source document."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


def column_letter_to_number(letters: str) -> int:
    """Convert column letters to a 1-based column number ("A" -> 1, "AA" -> 27)."""
    result = 0
    for char in letters:
        result = result * 26 + (ord(char) - ord("A") + 1)
    return result


def number_to_column_letter(number: int) -> str:
    """Convert a 1-based column number back to its letters (27 -> "AA")."""
    if number < 1:
        raise ValueError(f"Column number must be at least 1, got {number}")
    letters = ""
    while number > 0:
        number, remainder = divmod(number - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def parse_cell_reference(reference: str) -> tuple[int, int]:
    """Split a reference such as ``"B12"`` into ``(column, row)``.

    Raises:
        InvalidCellReferenceError: If the reference is not ``[A-Z]+[0-9]+``.
    """
    match = CELL_REFERENCE_PATTERN.match(reference)
    if match is None:
        raise InvalidCellReferenceError(reference)
    letters, digits = match.groups()
    row = int(digits)
    if row < 1:
        raise InvalidCellReferenceError(
            reference, message=f"Invalid cell reference: {reference} (row 0)"
        )
    return column_letter_to_number(letters), row


def format_cell_reference(column: int, row: int) -> str:
    return f"{number_to_column_letter(column)}{row}"


def resolve_path(document: Any, path: str) -> Any:
    """Walk a dotted path through nested objects.

    Segments step into mappings by key and into lists when the segment is a
    decimal index. Returns ``MISSING`` as soon as a segment cannot be
    followed; a present ``None`` value is returned as ``None``.
    """
    current = document
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def get_nested_value(document: Any, path: str) -> Any:
    """Resolve a dotted path, collapsing absent values to ``None``.

    >>> get_nested_value({"a": {"b": 5}}, "a.b")
    5
    >>> get_nested_value({"a": {"b": 5}}, "a.c") is None
    True
    """
    value = resolve_path(document, path)
    return None if value is MISSING else value
