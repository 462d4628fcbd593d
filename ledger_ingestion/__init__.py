"""Bank statement ingestion: CSV, OFX/QFX and XLSX readers producing statement lines."""

from ledger_ingestion.domain.types import ColumnMapping, ParsedStatement, ParsedStatementLine
from ledger_ingestion.statement_parser import adapter_for, detect_column_mapping, parse_statement

__all__ = [
    "ColumnMapping",
    "ParsedStatement",
    "ParsedStatementLine",
    "adapter_for",
    "detect_column_mapping",
    "parse_statement",
]
