"""
Export functions: turn a finalized Record into downloadable file content.

    - JSON: pretty-printed (2-space indent), OLTC kept nested
    - YAML: same document as the JSON export
    - XLSX: "Client Info" sheet (one row) and "Transformer Data" sheet
      (one row per transformer, OLTC fields merged in as extra columns)

All functions return bytes and never mutate the Record. Naming and
delivering the file is left to the caller; `export_filename` gives the
conventional name.
"""

from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import Any, Dict, List, Optional

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from tsr.model import Record
from tsr.serialization import (
    CLIENT_KEYS,
    OLTC_KEYS,
    TRANSFORMER_KEYS,
    client_info_to_dict,
    oltc_info_to_dict,
    record_to_json,
    record_to_yaml,
    transformer_to_dict,
)

CLIENT_SHEET = "Client Info"
TRANSFORMER_SHEET = "Transformer Data"

CLIENT_COLUMNS = list(CLIENT_KEYS.values())
TRANSFORMER_COLUMNS = (
    ["transformerId", "hasOLTC"]
    + [key for key in TRANSFORMER_KEYS.values() if key != "transformerId"]
    + list(OLTC_KEYS.values())
)


def export_filename(extension: str, on: Optional[date] = None) -> str:
    """transformer_data_<ISO date>.<extension>"""
    on = on or date.today()
    return f"transformer_data_{on.isoformat()}.{extension.lstrip('.')}"


def export_json(record: Record) -> bytes:
    return record_to_json(record).encode("utf-8")


def export_yaml(record: Record) -> bytes:
    return record_to_yaml(record).encode("utf-8")


def flatten_transformers(record: Record) -> List[Dict[str, Any]]:
    """
    One flat row per transformer.

    OLTC fields are merged under their own names; they are None
    for transformers without an OLTC.
    """
    rows = []
    for t in record.transformers:
        row = transformer_to_dict(t)
        row.pop("oltcInfo", None)
        oltc = oltc_info_to_dict(t.oltc_info) if t.oltc_info is not None else {}
        for key in OLTC_KEYS.values():
            row[key] = oltc.get(key)
        rows.append(row)
    return rows


def _cell_value(value: Any) -> Any:
    # Control characters are not allowed in worksheet XML
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def _write_sheet(ws, columns: List[str], rows: List[Dict[str, Any]]) -> None:
    ws.append(columns)
    for row in rows:
        ws.append([_cell_value(row.get(column)) for column in columns])


def export_excel(record: Record) -> bytes:
    """Build the two-sheet workbook and return it as XLSX bytes."""
    wb = openpyxl.Workbook()

    ws1 = wb.active
    ws1.title = CLIENT_SHEET
    _write_sheet(ws1, CLIENT_COLUMNS, [client_info_to_dict(record.client_info)])

    ws2 = wb.create_sheet(TRANSFORMER_SHEET)
    _write_sheet(ws2, TRANSFORMER_COLUMNS, flatten_transformers(record))

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
