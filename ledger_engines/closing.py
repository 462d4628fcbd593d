"""
ledger_engines.closing -- Year-end closing entry computation.

Responsibility:
    Given the REVENUE and EXPENSE account balances of an organization and
    its fund-balance (EQUITY) account, compute the postings that zero every
    revenue and expense balance into the fund balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Called by ``ledger_services.period_close_service.PeriodCloseService``
    for both preview and execution, so the two always agree.

Invariants enforced:
    - REVENUE with balance B: debit the account, credit the fund balance,
      amount |B|.  EXPENSE with balance B: debit the fund balance, credit
      the account, amount |B|.
    - Zero balances and inactive accounts produce no entry.
    - Totals are raw signed balances; entry amounts are absolute values.
      A negative expense balance (reimbursements) still gets an entry.
    - Entries are ordered by account code.

Failure modes:
    - ValueError if an account of another type is passed in.

Audit relevance:
    Every invocation is traced via ``@traced_engine`` with a fingerprint of
    the balances it was given.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.closing")

ZERO = Decimal("0")

REVENUE = "REVENUE"
EXPENSE = "EXPENSE"


@dataclass(frozen=True)
class ClosingAccountBalance:
    """Snapshot of one revenue or expense account at close time."""

    account_id: UUID
    code: str
    name: str
    account_type: str
    balance: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class ClosingEntry:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    balance: Decimal
    debit_account_id: UUID
    credit_account_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class ClosingComputation:
    entries: tuple[ClosingEntry, ...]
    total_revenue: Decimal
    total_expenses: Decimal

    @property
    def net_surplus_or_deficit(self) -> Decimal:
        return self.total_revenue - self.total_expenses

    @property
    def is_empty(self) -> bool:
        return not self.entries


class ClosingEngine:
    """Stateless calculator for closing entries."""

    @traced_engine("closing_entries", "1.0", fingerprint_fields=("accounts", "fund_balance_account_id"))
    def compute(
        self,
        accounts: Sequence[ClosingAccountBalance],
        fund_balance_account_id: UUID,
    ) -> ClosingComputation:
        entries: list[ClosingEntry] = []
        total_revenue = ZERO
        total_expenses = ZERO

        for account in sorted(accounts, key=lambda a: a.code):
            account_type = str(getattr(account.account_type, "value", account.account_type))
            if account_type not in (REVENUE, EXPENSE):
                raise ValueError(
                    f"Account {account.code} is {account_type}; only REVENUE and "
                    "EXPENSE accounts are closed"
                )
            if not account.is_active or account.balance == ZERO:
                continue

            if account_type == REVENUE:
                total_revenue += account.balance
                debit, credit = account.account_id, fund_balance_account_id
            else:
                total_expenses += account.balance
                debit, credit = fund_balance_account_id, account.account_id

            entries.append(
                ClosingEntry(
                    account_id=account.account_id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=account_type,
                    balance=account.balance,
                    debit_account_id=debit,
                    credit_account_id=credit,
                    amount=abs(account.balance),
                )
            )

        computation = ClosingComputation(
            entries=tuple(entries),
            total_revenue=total_revenue,
            total_expenses=total_expenses,
        )
        logger.info(
            "closing_entries_computed",
            extra={
                "entry_count": len(entries),
                "total_revenue": total_revenue,
                "total_expenses": total_expenses,
                "net_surplus_or_deficit": computation.net_surplus_or_deficit,
            },
        )
        return computation
