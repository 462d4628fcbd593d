"""
CSV bank statement adapter.

Uses csv.reader.  Accepts the file content as text, bytes or a Path; bytes
and files are decoded as utf-8-sig so a BOM is stripped.  Header
auto-detection and row parsing are shared with the XLSX adapter.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any

from ledger_ingestion.adapters.base import parse_rows
from ledger_ingestion.domain.types import ColumnMapping, ParsedStatement


def _get_encoding(encoding: str) -> str:
    if encoding.lower() == "utf-8":
        return "utf-8-sig"  # Strip BOM if present
    return encoding


def read_text(source: Any, encoding: str = "utf-8") -> str:
    """Text of a CSV/OFX source given as str, bytes or Path."""
    if isinstance(source, Path):
        return source.read_text(encoding=_get_encoding(encoding))
    if isinstance(source, (bytes, bytearray)):
        return bytes(source).decode(_get_encoding(encoding))
    return str(source)


class CsvStatementAdapter:
    """Read delimited bank exports into statement lines."""

    def __init__(self, delimiter: str = ",", encoding: str = "utf-8"):
        self.delimiter = delimiter
        self.encoding = encoding

    def parse(self, source: Any, mapping: ColumnMapping | None = None) -> ParsedStatement:
        text = read_text(source, self.encoding)
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=self.delimiter)
        rows = [[field.strip() for field in row] for row in reader]
        return parse_rows(rows, mapping)
