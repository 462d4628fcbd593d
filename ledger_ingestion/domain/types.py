"""
ledger_ingestion.domain.types -- Pure frozen dataclasses for statement import.

ZERO I/O.  A ParsedStatementLine carries exactly the attributes
ReconciliationService.import_statement reads, so parsed lines can be
imported as they are.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class ColumnMapping:
    """
    0-based column indexes of a delimited or spreadsheet bank export.

    Either ``amount`` (signed, deposit > 0) or both ``debit`` (withdrawals)
    and ``credit`` (deposits) must be set.
    """

    date: int
    description: int
    amount: int | None = None
    debit: int | None = None
    credit: int | None = None
    reference: int | None = None
    category: int | None = None
    balance: int | None = None
    has_header: bool = True

    def __post_init__(self) -> None:
        if self.amount is None and (self.debit is None or self.credit is None):
            raise ValueError("ColumnMapping needs an amount column or both debit and credit columns")


@dataclass(frozen=True)
class ParsedStatementLine:
    transaction_date: date
    description: str
    amount: Decimal  # positive = deposit, negative = withdrawal
    reference_number: str | None = None
    post_date: date | None = None
    category: str | None = None


@dataclass(frozen=True)
class ParsedStatement:
    lines: tuple[ParsedStatementLine, ...]
    mapping: ColumnMapping | None = None
    warnings: tuple[str, ...] = ()

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))
