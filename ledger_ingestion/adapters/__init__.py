"""Statement adapters (file I/O only, no DB)."""

from ledger_ingestion.adapters.base import StatementAdapter, detect_column_mapping, parse_rows
from ledger_ingestion.adapters.csv_statement import CsvStatementAdapter
from ledger_ingestion.adapters.ofx_statement import OfxStatementAdapter
from ledger_ingestion.adapters.xlsx_statement import XlsxStatementAdapter

__all__ = [
    "CsvStatementAdapter",
    "OfxStatementAdapter",
    "StatementAdapter",
    "XlsxStatementAdapter",
    "detect_column_mapping",
    "parse_rows",
]
