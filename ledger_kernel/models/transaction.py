"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for ledger postings.  Each transaction
    debits exactly one account and credits exactly one account for the
    same positive amount.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - amount > 0; debit_account_id != credit_account_id (TransactionService).
    - Edits and voids never mutate an existing version's amount or accounts;
      they produce a new version and move balances through the Balance
      Engine (reverse old, post new).
    - A voided or soft-deleted transaction has no balance effect.

Audit relevance:
    The version chain of a transaction shows every amount/account edit,
    who made it, and when; void_reason records why a posting stopped
    counting.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import UUIDString, VersionedBase


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    GENERAL = "GENERAL"
    CLOSING = "CLOSING"


class Transaction(VersionedBase):
    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_org_date", "organization_id", "transaction_date"),
        Index("idx_transaction_debit", "debit_account_id"),
        Index("idx_transaction_credit", "credit_account_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(String(20), nullable=False)

    # Always positive; direction comes from the debit/credit accounts
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    debit_account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    credit_account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    contact_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reconciled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    is_voided: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    voided_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_date} {self.amount} "
            f"dr={self.debit_account_id} cr={self.credit_account_id}>"
        )

    def touches(self, account_id: UUID) -> bool:
        return account_id in (self.debit_account_id, self.credit_account_id)
