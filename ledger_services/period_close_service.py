"""
ledger_services.period_close_service -- Year-end close and reopen.

Responsibility:
    Preview, post and reverse the closing entries that zero REVENUE and
    EXPENSE balances into the organization's fund-balance account, and move
    the fiscal period between OPEN and CLOSED.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes PeriodService (lookups), TransactionService (posting),
    BalanceEngine (reversal), VersionStore (period and transaction
    versions) and the pure ClosingEngine.

Invariants enforced:
    - State machine OPEN -> CLOSED -> OPEN; closing a CLOSED period or
      reopening an OPEN one fails.
    - Preview and execute derive entries from the same ClosingEngine call
      over the same account snapshot, so they always agree.
    - A close posts every entry and flips the period inside one SAVEPOINT;
      a failure part way leaves no closing transaction and no status change.
    - Reopen exactly undoes the balance effect of the close, then empties
      ``closing_transaction_ids``.
    - The period row is locked (SELECT ... FOR UPDATE) for the duration of
      execute/reopen; the optimistic version close is the backstop on
      stores without row locks.

Failure modes:
    - PeriodNotFoundError: missing, deleted or another organization's.
    - PeriodAlreadyClosedError: preview/execute on a CLOSED period.
    - PeriodNotClosedError: reopen of an OPEN period.
    - ConfigurationError: no (or a dangling) fund-balance account.
    - NoAccountsError: nothing to close.
    - ConcurrentModificationError: another writer closed or reopened first.

Audit relevance:
    Closing transactions are ordinary CLOSING-typed versions with actor and
    reason.  Reopen soft-deletes them with a void reason naming the period
    and stamps ``reopened_at`` / ``reopened_by`` on the period version.
"""

from __future__ import annotations

import time
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engines.closing import ClosingAccountBalance, ClosingComputation, ClosingEngine
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import FiscalPeriodInfo
from ledger_kernel.exceptions import (
    ConfigurationError,
    NoAccountsError,
    PeriodAlreadyClosedError,
    PeriodNotClosedError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.models.organization import Organization
from ledger_kernel.models.transaction import Transaction, TransactionType
from ledger_kernel.services.balance_engine import BalanceEngine
from ledger_kernel.services.transaction_service import TransactionService
from ledger_kernel.services.version_store import VersionStore, not_found
from ledger_services._close_types import ClosePreview, CloseResult, ReopenResult

logger = get_logger("services.period_close")

CLOSING_CATEGORY = "Closing Entry"


class PeriodCloseService:
    """
    Fiscal period closer.

    Contract:
        Every public method runs inside the caller's transaction.  Writes
        are wrapped in ``session.begin_nested()``; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        closing_engine: ClosingEngine | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.versions = VersionStore(session, self.clock)
        self.balances = BalanceEngine(session, self.clock)
        self.transactions = TransactionService(session, self.clock)
        self.engine = closing_engine or ClosingEngine()

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview_close(self, period_id: UUID, organization_id: UUID) -> ClosePreview:
        """
        Closing entries that ``execute_close`` would post right now.

        Raises:
            PeriodAlreadyClosedError: The period is CLOSED.
            ConfigurationError: No usable fund-balance account.
        """
        period = self.versions.require_current(FiscalPeriod, period_id, organization_id)
        return self._preview(period, organization_id)

    def _preview(self, period: FiscalPeriod, organization_id: UUID) -> ClosePreview:
        if period.is_closed:
            raise PeriodAlreadyClosedError(period.name)

        fund_account = self._fund_balance_account(organization_id)
        computation = self._compute(organization_id, fund_account.id)
        return ClosePreview(
            period=FiscalPeriodInfo.from_model(period),
            entries=computation.entries,
            total_revenue=computation.total_revenue,
            total_expenses=computation.total_expenses,
            fund_balance_account_id=fund_account.id,
            fund_balance_account_name=fund_account.name,
        )

    def _fund_balance_account(self, organization_id: UUID) -> Account:
        organization = self.versions.require_current(Organization, organization_id)
        if organization.fund_balance_account_id is None:
            raise ConfigurationError(
                str(organization_id),
                "fund_balance_account_id",
                "set a fund balance account before closing a period",
            )
        account = self.versions.get_current(
            Account, organization.fund_balance_account_id, organization_id
        )
        if account is None:
            raise ConfigurationError(
                str(organization_id),
                "fund_balance_account_id",
                f"account {organization.fund_balance_account_id} no longer exists",
            )
        if account.account_type != AccountType.EQUITY:
            raise ConfigurationError(
                str(organization_id),
                "fund_balance_account_id",
                f"account {account.code} is {account.account_type}, expected EQUITY",
            )
        return account

    def _compute(self, organization_id: UUID, fund_balance_account_id: UUID) -> ClosingComputation:
        accounts = self.versions.list_current(
            Account,
            Account.account_type.in_([AccountType.REVENUE.value, AccountType.EXPENSE.value]),
            Account.is_active.is_(True),
            order_by=Account.code,
            organization_id=organization_id,
        )
        snapshot = [
            ClosingAccountBalance(
                account_id=account.id,
                code=account.code,
                name=account.name,
                account_type=account.account_type,
                balance=account.current_balance,
                is_active=account.is_active,
            )
            for account in accounts
        ]
        return self.engine.compute(snapshot, fund_balance_account_id)

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def execute_close(self, period_id: UUID, organization_id: UUID, actor_id: UUID) -> CloseResult:
        """
        Post one CLOSING transaction per entry and mark the period CLOSED.

        Raises:
            NoAccountsError: No revenue or expense account carries a balance.
        """
        with LogContext.bind(organization_id=organization_id, actor_id=actor_id, entity_id=period_id):
            return self._execute_close(period_id, organization_id, actor_id)

    def _execute_close(self, period_id: UUID, organization_id: UUID, actor_id: UUID) -> CloseResult:
        t0 = time.monotonic()
        with self.session.begin_nested():
            period = self._lock_period(period_id, organization_id)
            preview = self._preview(period, organization_id)
            if not preview.entries:
                raise NoAccountsError(period.name)

            description = f"Year-end closing entry - {period.name}"
            transaction_ids: list[UUID] = []
            for entry in preview.entries:
                transaction = self.transactions.create_transaction(
                    organization_id=organization_id,
                    transaction_date=period.end_date,
                    amount=entry.amount,
                    debit_account_id=entry.debit_account_id,
                    credit_account_id=entry.credit_account_id,
                    description=description,
                    actor_id=actor_id,
                    transaction_type=TransactionType.CLOSING,
                    category=CLOSING_CATEGORY,
                    reason=f"Close {entry.account_code} into fund balance",
                )
                transaction_ids.append(transaction.id)

            closed_at = self.clock.now()
            closed = self.versions.revise(
                period,
                {
                    "status": PeriodStatus.CLOSED.value,
                    "closing_transaction_ids": [str(t) for t in transaction_ids],
                    "closed_at": closed_at,
                    "closed_by": actor_id,
                },
                actor_id,
                reason="Period closed",
                as_of=closed_at,
            )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "period_closed",
            extra={
                "organization_id": str(organization_id),
                "period_id": str(period_id),
                "period_name": closed.name,
                "entry_count": len(transaction_ids),
                "total_revenue": preview.total_revenue,
                "total_expenses": preview.total_expenses,
                "net_surplus_or_deficit": preview.net_surplus_or_deficit,
                "duration_ms": duration_ms,
            },
        )
        return CloseResult(
            period=FiscalPeriodInfo.from_model(closed),
            closing_transaction_ids=tuple(transaction_ids),
            total_revenue=preview.total_revenue,
            total_expenses=preview.total_expenses,
            closed_at=closed_at,
        )

    # ------------------------------------------------------------------
    # Reopen
    # ------------------------------------------------------------------

    def reopen_period(self, period_id: UUID, organization_id: UUID, actor_id: UUID) -> ReopenResult:
        """
        Reverse and soft-delete the closing transactions, then reopen.

        A closing transaction that is no longer current (already deleted
        by hand) is skipped with a warning; the rest are still reversed.

        Raises:
            PeriodNotClosedError: The period is not CLOSED.
        """
        with LogContext.bind(organization_id=organization_id, actor_id=actor_id, entity_id=period_id):
            return self._reopen_period(period_id, organization_id, actor_id)

    def _reopen_period(self, period_id: UUID, organization_id: UUID, actor_id: UUID) -> ReopenResult:
        with self.session.begin_nested():
            period = self._lock_period(period_id, organization_id)
            if not period.is_closed:
                raise PeriodNotClosedError(period.name, str(period.status))

            void_reason = f'Period "{period.name}" reopened'
            reversed_ids: list[UUID] = []
            missing_ids: list[UUID] = []
            for raw_id in period.closing_transaction_ids or []:
                transaction_id = UUID(str(raw_id))
                transaction = self.versions.get_current(Transaction, transaction_id, organization_id)
                if transaction is None:
                    logger.warning(
                        "closing_transaction_missing",
                        extra={"period_id": str(period_id), "transaction_id": str(transaction_id)},
                    )
                    missing_ids.append(transaction_id)
                    continue

                self.balances.reverse_balances(
                    transaction.debit_account_id,
                    transaction.credit_account_id,
                    transaction.amount,
                    organization_id,
                )
                now = self.clock.now()
                self.versions.delete_version(
                    transaction,
                    actor_id,
                    reason=void_reason,
                    changes={
                        "is_voided": True,
                        "voided_at": now,
                        "voided_by": actor_id,
                        "void_reason": void_reason,
                    },
                )
                reversed_ids.append(transaction_id)

            reopened_at = self.clock.now()
            reopened = self.versions.revise(
                period,
                {
                    "status": PeriodStatus.OPEN.value,
                    "closing_transaction_ids": [],
                    "reopened_at": reopened_at,
                    "reopened_by": actor_id,
                },
                actor_id,
                reason="Period reopened",
                as_of=reopened_at,
            )

        logger.info(
            "period_reopened",
            extra={
                "organization_id": str(organization_id),
                "period_id": str(period_id),
                "period_name": reopened.name,
                "reversed_count": len(reversed_ids),
                "missing_count": len(missing_ids),
            },
        )
        return ReopenResult(
            period=FiscalPeriodInfo.from_model(reopened),
            reversed_transaction_ids=tuple(reversed_ids),
            missing_transaction_ids=tuple(missing_ids),
            reopened_at=reopened_at,
        )

    def _lock_period(self, period_id: UUID, organization_id: UUID) -> FiscalPeriod:
        period = self.session.execute(
            select(FiscalPeriod)
            .where(
                VersionStore.current_version_filter(
                    FiscalPeriod, id=period_id, organization_id=organization_id
                )
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise not_found(FiscalPeriod, period_id)
        return period
