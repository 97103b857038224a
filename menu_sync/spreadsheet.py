from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter


log = logging.getLogger("menu_sync.spreadsheet")

TEMPLATE_HEADERS = ["name", "category", "price", "available", "description", "prepTimeMin", "tags"]
TEMPLATE_EXAMPLE = ["Idli", "Breakfast", 30, "true", "Steamed rice cakes", 5, "veg"]
TEMPLATE_SHEET = "Menu"


def read_rows(source: str | Path | bytes) -> List[Dict[str, Any]]:
    """Read the first worksheet as header -> cell dicts.

    Empty cells come back as "" and rows with no values at all are skipped.
    """
    if isinstance(source, (bytes, bytearray)):
        wb = load_workbook(io.BytesIO(source), read_only=True, data_only=True)
    else:
        wb = load_workbook(Path(source), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header_row = next(rows, None)
        if not header_row:
            return []
        headers = [str(h).strip() if h is not None else "" for h in header_row]

        out: List[Dict[str, Any]] = []
        for row in rows:
            if row is None or all(v is None or v == "" for v in row):
                continue
            record: Dict[str, Any] = {}
            for idx, header in enumerate(headers):
                if not header:
                    continue
                value = row[idx] if idx < len(row) else None
                record[header] = "" if value is None else value
            out.append(record)
    finally:
        wb.close()
    log.info("Read %d rows from sheet %s", len(out), ws.title)
    return out


def export_template(path: Optional[str | Path] = None) -> bytes:
    """Build the import template (header row plus one example row)."""
    wb = Workbook()
    ws = wb.active
    ws.title = TEMPLATE_SHEET

    for col_idx, header in enumerate(TEMPLATE_HEADERS, start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = Font(bold=True)
        ws.column_dimensions[get_column_letter(col_idx)].width = max(12, len(header) + 4)
    for col_idx, value in enumerate(TEMPLATE_EXAMPLE, start=1):
        ws.cell(row=2, column=col_idx, value=value)
    ws.freeze_panes = "A2"

    buf = io.BytesIO()
    wb.save(buf)
    data = buf.getvalue()
    if path is not None:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(data)
        log.info("Wrote menu template: %s", out)
    return data
