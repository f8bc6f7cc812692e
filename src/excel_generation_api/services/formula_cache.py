"""Write cached formula results into a saved ``.xlsx`` package.

openpyxl serializes formula cells with an empty ``<v>`` element. The
results the mapping engine recorded are patched into the worksheet XML so
that readers which do not recalculate still see the value.
"""

from __future__ import annotations

import zipfile
from collections import defaultdict
from collections.abc import Sequence
from io import BytesIO
from typing import Any, Final

from lxml import etree

from excel_generation_api.excel_document import FormulaWrite
from excel_generation_api.services.mapping_engine import to_cell_value
from excel_generation_api.utils.logging import get_logger

logger = get_logger(__name__)

NS: Final = {
    "ws": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
}
WORKBOOK_PART: Final = "xl/workbook.xml"
WORKBOOK_RELS_PART: Final = "xl/_rels/workbook.xml.rels"


def sheet_part_names(zf: zipfile.ZipFile) -> dict[str, str]:
    """Map each sheet name to its worksheet part inside the package."""
    targets = {}
    rels_root = etree.fromstring(zf.read(WORKBOOK_RELS_PART))
    for rel in rels_root.findall("rel:Relationship", namespaces=NS):
        target = rel.get("Target", "").lstrip("/")
        if not target.startswith("xl/"):
            target = f"xl/{target}"
        targets[rel.get("Id")] = target

    parts = {}
    wb_root = etree.fromstring(zf.read(WORKBOOK_PART))
    for sheet in wb_root.iterfind("ws:sheets/ws:sheet", namespaces=NS):
        rel_id = sheet.get(f"{{{NS['r']}}}id")
        if rel_id in targets:
            parts[sheet.get("name")] = targets[rel_id]
    return parts


def cached_value_text(value: Any) -> tuple[str | None, str]:
    """Return the ``t`` attribute and ``<v>`` text for a cached result."""
    value = to_cell_value(value)
    if isinstance(value, bool):
        return "b", "1" if value else "0"
    if isinstance(value, int | float):
        return None, repr(value) if isinstance(value, float) else str(value)
    return "str", str(value)


def patch_sheet_xml(xml: bytes, writes: Sequence[FormulaWrite]) -> bytes:
    """Fill the ``<v>`` of every formula cell named in ``writes``.

    Cells that no longer hold a formula are left alone.
    """
    root = etree.fromstring(xml)
    for write in writes:
        cell = root.find(
            f"ws:sheetData/ws:row/ws:c[@r='{write.cell}']", namespaces=NS
        )
        if cell is None or cell.find("ws:f", namespaces=NS) is None:
            continue

        cell_type, text = cached_value_text(write.cached_result)
        if cell_type is None:
            cell.attrib.pop("t", None)
        else:
            cell.set("t", cell_type)

        value = cell.find("ws:v", namespaces=NS)
        if value is None:
            value = etree.SubElement(cell, f"{{{NS['ws']}}}v")
        value.text = text

    return etree.tostring(
        root, xml_declaration=True, encoding="UTF-8", standalone=True
    )


def write_cached_results(content: bytes, writes: Sequence[FormulaWrite]) -> bytes:
    """Return a copy of the package with cached formula results filled in."""
    if not writes:
        return content

    by_sheet: dict[str, list[FormulaWrite]] = defaultdict(list)
    for write in writes:
        by_sheet[write.sheet].append(write)

    output = BytesIO()
    with (
        zipfile.ZipFile(BytesIO(content)) as source,
        zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as target,
    ):
        parts = sheet_part_names(source)
        patched = {
            parts[sheet]: sheet_writes
            for sheet, sheet_writes in by_sheet.items()
            if sheet in parts
        }
        for item in source.infolist():
            data = source.read(item.filename)
            if item.filename in patched:
                data = patch_sheet_xml(data, patched[item.filename])
            target.writestr(item, data)

    logger.debug("Cached formula results written", formulas=len(writes))
    return output.getvalue()
