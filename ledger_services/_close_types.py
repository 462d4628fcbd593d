"""
ledger_services._close_types -- DTOs for the fiscal period closer.

Responsibility:
    Frozen result types for previewing, executing and reversing a
    year-end close.

Architecture position:
    Services -- these types live beside ``period_close_service`` which
    produces them.  They depend only on engine DTOs and the kernel's
    FiscalPeriodInfo.

Invariants enforced:
    - All DTOs are frozen dataclasses.
    - Totals are signed; ``net_surplus_or_deficit`` is always
      ``total_revenue - total_expenses``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ledger_engines.closing import ClosingEntry
from ledger_kernel.domain.dtos import FiscalPeriodInfo


@dataclass(frozen=True)
class ClosePreview:
    """What ``execute_close`` would post, without posting it."""
    period: FiscalPeriodInfo
    entries: tuple[ClosingEntry, ...]
    total_revenue: Decimal
    total_expenses: Decimal
    fund_balance_account_id: UUID
    fund_balance_account_name: str

    @property
    def net_surplus_or_deficit(self) -> Decimal:
        return self.total_revenue - self.total_expenses


@dataclass(frozen=True)
class CloseResult:
    period: FiscalPeriodInfo
    closing_transaction_ids: tuple[UUID, ...]
    total_revenue: Decimal
    total_expenses: Decimal
    closed_at: datetime

    @property
    def net_surplus_or_deficit(self) -> Decimal:
        return self.total_revenue - self.total_expenses


@dataclass(frozen=True)
class ReopenResult:
    period: FiscalPeriodInfo
    reversed_transaction_ids: tuple[UUID, ...]
    missing_transaction_ids: tuple[UUID, ...]
    reopened_at: datetime
