"""
ledger_ingestion.statement_parser -- Pick an adapter by file name and parse.

Responsibility:
    Turn an uploaded bank export (CSV, OFX/QFX, XLSX) into a
    ParsedStatement whose lines ReconciliationService.import_statement
    accepts directly.

Architecture position:
    Ingestion -- sits in front of ``ledger_services``; no DB access.
    The matcher never sees files, only the parsed lines.

Failure modes:
    - Unreadable rows become warnings on the result.
    - A corrupt XLSX propagates openpyxl's exception; an undecodable byte
      stream propagates UnicodeDecodeError.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Any

from ledger_ingestion.adapters.base import StatementAdapter, detect_column_mapping
from ledger_ingestion.adapters.csv_statement import CsvStatementAdapter
from ledger_ingestion.adapters.ofx_statement import OfxStatementAdapter
from ledger_ingestion.adapters.xlsx_statement import XlsxStatementAdapter
from ledger_ingestion.domain.types import ColumnMapping, ParsedStatement
from ledger_kernel.logging_config import get_logger

logger = get_logger("ingestion.statement_parser")

__all__ = ["adapter_for", "detect_column_mapping", "parse_statement"]

_ADAPTERS: dict[str, type] = {
    ".ofx": OfxStatementAdapter,
    ".qfx": OfxStatementAdapter,
    ".xlsx": XlsxStatementAdapter,
    ".xlsm": XlsxStatementAdapter,
}


def adapter_for(file_name: str) -> StatementAdapter:
    """Adapter for a file name's extension; anything unknown is read as CSV."""
    suffix = PurePath(file_name).suffix.lower()
    return _ADAPTERS.get(suffix, CsvStatementAdapter)()


def parse_statement(
    source: Any,
    file_name: str,
    mapping: ColumnMapping | None = None,
) -> ParsedStatement:
    """
    Parse a bank export.

    ``source`` is the file content (str or bytes) or a Path.  ``mapping``
    overrides header auto-detection for CSV and XLSX.
    """
    adapter = adapter_for(file_name)
    result = adapter.parse(source, mapping)
    logger.info(
        "statement_parsed",
        extra={
            "file_name": file_name,
            "adapter": type(adapter).__name__,
            "line_count": len(result.lines),
            "warning_count": len(result.warnings),
        },
    )
    return result
