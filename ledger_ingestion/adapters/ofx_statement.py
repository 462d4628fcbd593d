"""
OFX/QFX bank statement adapter.

OFX 1.x is SGML, not XML: closing tags on leaf elements are optional, so
each ``<STMTTRN>`` block is scanned with regular expressions rather than
an XML parser.  Each block is one statement line:

    DTPOSTED  -> transaction date (YYYYMMDD[HHMMSS[.XXX][TZ]])
    TRNAMT    -> signed amount
    NAME/MEMO -> description ("Unknown" when both are absent)
    CHECKNUM, else FITID -> reference number
    TRNTYPE   -> category
"""

from __future__ import annotations

import re
from typing import Any

from ledger_ingestion.adapters.csv_statement import read_text
from ledger_ingestion.domain.types import ColumnMapping, ParsedStatement, ParsedStatementLine
from ledger_ingestion.domain.values import parse_amount, parse_ofx_date

_TRANSACTION_BLOCK = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)


def _tag(block: str, name: str) -> str | None:
    match = re.search(rf"<{name}>([^<\r\n]+)", block, re.IGNORECASE)
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


class OfxStatementAdapter:
    """Read OFX/QFX downloads into statement lines.  Column mappings do not apply."""

    def parse(self, source: Any, mapping: ColumnMapping | None = None) -> ParsedStatement:
        text = read_text(source)
        blocks = _TRANSACTION_BLOCK.findall(text)
        if not blocks:
            return ParsedStatement(lines=(), warnings=("No transactions found in OFX file",))

        lines: list[ParsedStatementLine] = []
        warnings: list[str] = []
        for block in blocks:
            posted = _tag(block, "DTPOSTED")
            if posted is None:
                warnings.append("Transaction missing DTPOSTED")
                continue
            transaction_date = parse_ofx_date(posted)
            if transaction_date is None:
                warnings.append(f"Invalid OFX date: {posted}")
                continue

            raw_amount = _tag(block, "TRNAMT")
            amount = parse_amount(raw_amount)
            if amount is None:
                warnings.append(f"Invalid OFX amount: {raw_amount}")
                continue

            lines.append(
                ParsedStatementLine(
                    transaction_date=transaction_date,
                    description=_tag(block, "NAME") or _tag(block, "MEMO") or "Unknown",
                    amount=amount,
                    reference_number=_tag(block, "CHECKNUM") or _tag(block, "FITID"),
                    category=_tag(block, "TRNTYPE"),
                )
            )

        return ParsedStatement(lines=tuple(lines), warnings=tuple(warnings))
