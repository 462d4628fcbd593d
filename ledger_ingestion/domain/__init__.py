"""Pure statement-import types and value parsers (no I/O)."""

from ledger_ingestion.domain.types import ColumnMapping, ParsedStatement, ParsedStatementLine
from ledger_ingestion.domain.values import clean_text, parse_amount, parse_date, parse_ofx_date

__all__ = [
    "ColumnMapping",
    "ParsedStatement",
    "ParsedStatementLine",
    "clean_text",
    "parse_amount",
    "parse_date",
    "parse_ofx_date",
]
