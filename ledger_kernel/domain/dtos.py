"""
DTOs -- Pure domain data transfer objects for the kernel.

Responsibility:
    Immutable structures returned by kernel services and selectors:
    fiscal period snapshots, closed-period lookups, balance-engine results,
    balance verification reports, and account trees.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service layer (never from domain logic).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ledger_kernel.models.fiscal_period import FiscalPeriod as FiscalPeriodModel


class PeriodStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class FiscalPeriodInfo:
    """Snapshot of the current version of a fiscal period."""

    id: UUID
    version_id: UUID
    organization_id: UUID
    name: str
    start_date: date
    end_date: date
    status: PeriodStatus
    closing_transaction_ids: tuple[UUID, ...] = ()
    closed_at: datetime | None = None
    closed_by: UUID | None = None
    reopened_at: datetime | None = None
    reopened_by: UUID | None = None

    @property
    def is_closed(self) -> bool:
        return self.status == PeriodStatus.CLOSED

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    @classmethod
    def from_model(cls, period: FiscalPeriodModel) -> FiscalPeriodInfo:
        return cls(
            id=period.id,
            version_id=period.version_id,
            organization_id=period.organization_id,
            name=period.name,
            start_date=period.start_date,
            end_date=period.end_date,
            status=PeriodStatus(period.status),
            closing_transaction_ids=tuple(UUID(str(t)) for t in period.closing_transaction_ids or ()),
            closed_at=period.closed_at,
            closed_by=period.closed_by,
            reopened_at=period.reopened_at,
            reopened_by=period.reopened_by,
        )


@dataclass(frozen=True)
class ClosedPeriodCheck:
    """Answer to "is this date locked?" for one organization."""

    closed: bool
    period_id: UUID | None = None
    period_name: str | None = None


@dataclass(frozen=True)
class BalanceUpdate:
    """New balances after the Balance Engine applied (or reversed) a posting."""

    debit_account_id: UUID
    credit_account_id: UUID
    amount: Decimal
    new_debit_balance: Decimal
    new_credit_balance: Decimal


@dataclass(frozen=True)
class BalanceVerification:
    account_id: UUID
    account_code: str
    stored_balance: Decimal
    calculated_balance: Decimal
    difference: Decimal
    is_consistent: bool


@dataclass(frozen=True)
class BalanceSummary:
    account_id: UUID
    account_name: str
    account_type: str
    current_balance: Decimal
    total_debits: Decimal
    total_credits: Decimal
    posting_count: int


@dataclass(frozen=True)
class TrialBalance:
    """Debit-normal and credit-normal totals across an organization's accounts."""

    total_debit_normal: Decimal
    total_credit_normal: Decimal

    @property
    def difference(self) -> Decimal:
        return self.total_debit_normal - self.total_credit_normal

    @property
    def is_balanced(self) -> bool:
        return self.difference == Decimal("0")


@dataclass(frozen=True)
class AccountNode:
    """One node of the chart-of-accounts tree."""

    account_id: UUID
    code: str
    name: str
    account_type: str
    current_balance: Decimal
    is_active: bool
    children: tuple[AccountNode, ...] = field(default_factory=tuple)

    @property
    def subtree_balance(self) -> Decimal:
        return self.current_balance + sum(
            (child.subtree_balance for child in self.children), Decimal("0")
        )
