"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- the debit and
    credit targets of every transaction.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only versions (VersionedBase) for every descriptive field.
    - current_balance is derived state.  It is written ONLY by the Balance
      Engine, in place on the current version, inside the same unit of work
      as the posting that moves it.
    - code is unique among an organization's current accounts (enforced by
      AccountService).

Failure modes:
    - AccountNotFoundError when a posting references a missing account.
    - AccountInactiveError when a posting targets an inactive account.

Audit relevance:
    Balances can be recomputed from the transaction log at any time
    (BalanceSelector.verify_account_balance) to prove the cache is honest.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import UUIDString, VersionedBase


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class Account(VersionedBase):
    """
    Chart of Accounts entry, owned by an organization.

    Guarantees:
        - account_type is one of ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE.
        - parent_account_id, when set, names another account's entity id.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        Index("idx_account_org_code", "organization_id", "code"),
        Index("idx_account_org_type", "organization_id", "account_type"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    parent_account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Signed running balance in the account's normal-balance direction
    current_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
