"""
Statement adapter protocol and the tabular row parser shared by CSV and XLSX.

Contract:
    StatementAdapter.parse() turns one export into a ParsedStatement.  Rows
    that cannot be read become warnings, never exceptions.

Architecture: ledger_ingestion/adapters. File I/O only, no DB or kernel imports.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from ledger_ingestion.domain.types import ColumnMapping, ParsedStatement, ParsedStatementLine
from ledger_ingestion.domain.values import clean_text, parse_amount, parse_date


@runtime_checkable
class StatementAdapter(Protocol):
    """Protocol for reading one bank export format."""

    def parse(self, source: Any, mapping: ColumnMapping | None = None) -> ParsedStatement:
        ...


# Header keywords per field, in priority order
HEADER_KEYWORDS: dict[str, tuple[str, ...]] = {
    "date": ("date", "trans date", "transaction date", "posting date", "post date", "posted"),
    "description": ("description", "memo", "details", "narrative", "payee", "transaction description"),
    "amount": ("amount", "transaction amount"),
    "debit": ("debit", "withdrawal", "withdrawals", "debit amount", "money out"),
    "credit": ("credit", "deposit", "deposits", "credit amount", "money in"),
    "reference": ("reference", "ref", "check", "check no", "check number", "ref no", "reference number"),
    "category": ("category", "type", "transaction type"),
    "balance": ("balance", "running balance", "available balance"),
}

ZERO = Decimal("0")

_NON_HEADER = re.compile(r"[^a-z0-9\s]")


def _normalize_header(value: Any) -> str:
    return _NON_HEADER.sub("", clean_text(value).lower()).strip()


def detect_column_mapping(header_row: Sequence[Any]) -> ColumnMapping | None:
    """
    Guess a ColumnMapping from a header row.

    A keyword matches a header equal to it or containing it; keywords are
    tried in order, and the first column hit wins.  Returns None unless a
    date column, a description column and amount column(s) are found.
    """
    normalized = [_normalize_header(h) for h in header_row]

    def find(field: str) -> int | None:
        for keyword in HEADER_KEYWORDS[field]:
            for index, header in enumerate(normalized):
                if header == keyword or keyword in header:
                    return index
        return None

    date_col = find("date")
    description_col = find("description")
    if date_col is None or description_col is None:
        return None

    debit_col = find("debit")
    credit_col = find("credit")
    amount_col = find("amount")
    # "Debit Amount" / "Credit Amount" headers are split columns, not a signed one
    if amount_col is not None and amount_col in (debit_col, credit_col):
        amount_col = None
    if amount_col is None and (debit_col is None or credit_col is None):
        return None

    return ColumnMapping(
        date=date_col,
        description=description_col,
        amount=amount_col,
        debit=debit_col,
        credit=credit_col,
        reference=find("reference"),
        category=find("category"),
        balance=find("balance"),
        has_header=True,
    )


def _cell(row: Sequence[Any], index: int | None) -> Any:
    if index is None or index >= len(row):
        return None
    return row[index]


def _is_blank(row: Sequence[Any]) -> bool:
    return all(clean_text(value) == "" for value in row)


def parse_rows(rows: Sequence[Sequence[Any]], mapping: ColumnMapping | None = None) -> ParsedStatement:
    """
    Parse tabular rows (header included) into statement lines.

    Blank rows are dropped before numbering, so "Row N" in a warning is
    the N-th non-blank row of the export.
    """
    rows = [row for row in rows if not _is_blank(row)]
    if not rows:
        return ParsedStatement(lines=(), mapping=mapping, warnings=("Empty file",))

    if mapping is None:
        mapping = detect_column_mapping(rows[0])
        if mapping is None:
            return ParsedStatement(
                lines=(),
                mapping=None,
                warnings=("Could not auto-detect column mapping from header row",),
            )
    start = 1 if mapping.has_header else 0

    lines: list[ParsedStatementLine] = []
    warnings: list[str] = []
    for index in range(start, len(rows)):
        row = rows[index]
        row_number = index + 1

        raw_date = _cell(row, mapping.date)
        transaction_date = parse_date(raw_date)
        if transaction_date is None:
            warnings.append(f'Row {row_number}: invalid date "{clean_text(raw_date)}"')
            continue

        description = clean_text(_cell(row, mapping.description))
        if not description:
            warnings.append(f"Row {row_number}: empty description")
            continue

        if mapping.amount is not None:
            raw_amount = _cell(row, mapping.amount)
            amount = parse_amount(raw_amount)
            if amount is None:
                warnings.append(f'Row {row_number}: invalid amount "{clean_text(raw_amount)}"')
                continue
        else:
            debit = parse_amount(_cell(row, mapping.debit))
            credit = parse_amount(_cell(row, mapping.credit))
            if debit is None and credit is None:
                warnings.append(f"Row {row_number}: no debit or credit amount")
                continue
            # Debits are withdrawals, credits deposits
            amount = (credit or ZERO) - (debit or ZERO)

        reference = clean_text(_cell(row, mapping.reference)) or None
        category = clean_text(_cell(row, mapping.category)) or None
        lines.append(
            ParsedStatementLine(
                transaction_date=transaction_date,
                description=description,
                amount=amount,
                reference_number=reference,
                category=category,
            )
        )

    return ParsedStatement(lines=tuple(lines), mapping=mapping, warnings=tuple(warnings))
