"""
Module: ledger_kernel.models.reconciliation
Responsibility: ORM persistence for bank reconciliation working state:
    bank accounts, imported statements, their lines, and the many-to-many
    matches between lines and ledger transactions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - These rows are working state, not ledger truth: they are created,
      updated and deleted directly (TrackedBase, no version chain).
    - sum(match.amount for a line) <= |line.amount| (ReconciliationService
      rejects violating allocations before persistence).
    - No transaction id appears in more than one match produced by
      auto-matching; the candidate pool excludes already-claimed
      transactions.
    - A statement line's amount is signed: positive = deposit,
      negative = withdrawal.  Ledger transaction amounts are positive.

Audit relevance:
    Completing a statement marks each matched transaction reconciled through
    a new transaction version, so the ledger side of reconciliation is
    fully versioned even though the matching scratchpad is not.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class StatementStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class LineStatus(str, Enum):
    UNMATCHED = "UNMATCHED"
    MATCHED = "MATCHED"
    CONFIRMED = "CONFIRMED"
    SKIPPED = "SKIPPED"


class MatchConfidence(str, Enum):
    UNMATCHED = "UNMATCHED"
    MANUAL = "MANUAL"
    AUTO_EXACT = "AUTO_EXACT"
    AUTO_FUZZY = "AUTO_FUZZY"


class BankAccount(TrackedBase):
    """A bank account linked to the ledger (ASSET) account it mirrors."""

    __tablename__ = "bank_accounts"

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)

    # Entity id of the linked Chart of Accounts account
    account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    last_four: Mapped[str | None] = mapped_column(String(4), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    statements: Mapped[list["BankStatement"]] = relationship(back_populates="bank_account")

    def __repr__(self) -> str:
        return f"<BankAccount {self.name}>"


class BankStatement(TrackedBase):
    __tablename__ = "bank_statements"

    __table_args__ = (
        Index("idx_statement_org_account", "organization_id", "bank_account_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    bank_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bank_accounts.id"),
        nullable=False,
    )

    statement_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    opening_balance: Mapped[Decimal | None] = mapped_column(nullable=True)
    closing_balance: Mapped[Decimal | None] = mapped_column(nullable=True)

    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[StatementStatus] = mapped_column(
        String(20),
        nullable=False,
        default=StatementStatus.DRAFT.value,
    )

    reconciled_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reconciled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    bank_account: Mapped[BankAccount] = relationship(back_populates="statements")

    lines: Mapped[list["BankStatementLine"]] = relationship(
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="BankStatementLine.transaction_date",
    )

    def __repr__(self) -> str:
        return f"<BankStatement {self.statement_date} {self.status}>"

    @property
    def is_finished(self) -> bool:
        return self.status in (StatementStatus.COMPLETED, StatementStatus.CANCELLED)


class BankStatementLine(TrackedBase):
    __tablename__ = "bank_statement_lines"

    __table_args__ = (
        Index("idx_statement_line_status", "bank_statement_id", "status"),
    )

    bank_statement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bank_statements.id", ondelete="CASCADE"),
        nullable=False,
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    post_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Signed: positive = deposit, negative = withdrawal
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[LineStatus] = mapped_column(
        String(20),
        nullable=False,
        default=LineStatus.UNMATCHED.value,
    )

    match_confidence: Mapped[MatchConfidence] = mapped_column(
        String(20),
        nullable=False,
        default=MatchConfidence.UNMATCHED.value,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    statement: Mapped[BankStatement] = relationship(back_populates="lines")

    matches: Mapped[list["BankStatementLineMatch"]] = relationship(
        back_populates="line",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<BankStatementLine {self.transaction_date} {self.amount} {self.status}>"

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def matched_amount(self) -> Decimal:
        return sum((m.amount for m in self.matches), Decimal("0"))


class BankStatementLineMatch(TrackedBase):
    """One (possibly partial) pairing of a statement line with a transaction."""

    __tablename__ = "bank_statement_line_matches"

    line_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bank_statement_lines.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Entity id of the matched ledger transaction
    transaction_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    confidence: Mapped[MatchConfidence] = mapped_column(String(20), nullable=False)

    line: Mapped[BankStatementLine] = relationship(back_populates="matches")

    def __repr__(self) -> str:
        return f"<BankStatementLineMatch line={self.line_id} txn={self.transaction_id} {self.amount}>"
