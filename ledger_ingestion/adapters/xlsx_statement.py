"""
XLSX bank statement adapter (openpyxl).

Reads one sheet (active by default, or by 0-based index or name) in
read-only mode.  Leading rows before the header are skipped when
``auto_detect_header`` is on: the first of the first 15 rows that yields a
ColumnMapping is taken as the header.  Cells keep their native types, so
date cells and numeric cells need no string round trip.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import openpyxl

from ledger_ingestion.adapters.base import detect_column_mapping, parse_rows
from ledger_ingestion.domain.types import ColumnMapping, ParsedStatement

_HEADER_SEARCH_ROWS = 15


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return value


class XlsxStatementAdapter:
    """
    Read .xlsx bank exports.

    sheet: 0-based sheet index (int) or sheet name (str).  Default: active sheet.
    auto_detect_header: scan the first rows for a header when no mapping is given.
    """

    def __init__(self, sheet: int | str | None = None, auto_detect_header: bool = True):
        self.sheet = sheet
        self.auto_detect_header = auto_detect_header

    def parse(self, source: Any, mapping: ColumnMapping | None = None) -> ParsedStatement:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(bytes(source))
        elif isinstance(source, str):
            source = Path(source)

        wb = openpyxl.load_workbook(source, read_only=True, data_only=True)
        try:
            sheet = self._get_sheet(wb)
            rows = [
                [_cell_value(value) for value in row]
                for row in sheet.iter_rows(values_only=True)
            ]
        finally:
            wb.close()

        if mapping is None and self.auto_detect_header:
            rows = rows[self._header_offset(rows):]
        return parse_rows(rows, mapping)

    def _get_sheet(self, wb: Any) -> Any:
        if self.sheet is None:
            return wb.active
        if isinstance(self.sheet, int):
            return wb.worksheets[self.sheet]
        return wb[self.sheet]

    @staticmethod
    def _header_offset(rows: list[list[Any]]) -> int:
        for index, row in enumerate(rows[:_HEADER_SEARCH_ROWS]):
            if detect_column_mapping(row) is not None:
                return index
        return 0
