"""
Module: ledger_kernel.selectors.balance_selector
Responsibility: Read-side checks of the stored balance cache.  Recomputes an
    account's balance from the posting log and compares it with
    ``Account.current_balance``; produces trial balances and subtree totals.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - The posting log is every current, non-voided transaction version.
      Superseded versions and voided transactions have no balance effect.
    - A stored balance is consistent when it differs from the
      recomputation by less than the verification tolerance (0.01).

Audit relevance:
    ``verify_all_balances`` is the proof that the BalanceEngine has been the
    only writer.  Inconsistencies are logged at WARNING level.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select

from ledger_kernel.domain.balance import (
    DEFAULT_VERIFICATION_TOLERANCE,
    ZERO,
    is_debit_normal,
    recalculate_balance,
    subtree_balance,
    summarize_postings,
    verify_balance,
)
from ledger_kernel.domain.dtos import BalanceSummary, BalanceVerification, TrialBalance
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import Transaction
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.services.version_store import VersionStore

logger = get_logger("selectors.balance")


class BalanceSelector(BaseSelector[Account]):
    model = Account

    def __init__(self, session, tolerance: Decimal = DEFAULT_VERIFICATION_TOLERANCE):
        super().__init__(session)
        self.tolerance = tolerance

    def _account(self, account_id: UUID, organization_id: UUID) -> Account:
        return self._current(account_id, organization_id)

    def _postings(self, organization_id: UUID, account_id: UUID | None = None) -> list[Transaction]:
        stmt = select(Transaction).where(
            VersionStore.current_version_filter(Transaction, organization_id=organization_id),
            Transaction.is_voided.is_(False),
        )
        if account_id is not None:
            stmt = stmt.where(
                or_(
                    Transaction.debit_account_id == account_id,
                    Transaction.credit_account_id == account_id,
                )
            )
        return list(self.session.execute(stmt).scalars())

    def recalculate_account_balance(self, account_id: UUID, organization_id: UUID) -> Decimal:
        account = self._account(account_id, organization_id)
        return recalculate_balance(
            self._postings(organization_id, account_id), account.id, account.account_type
        )

    def verify_account_balance(self, account_id: UUID, organization_id: UUID) -> BalanceVerification:
        account = self._account(account_id, organization_id)
        calculated = recalculate_balance(
            self._postings(organization_id, account_id), account.id, account.account_type
        )
        return self._verification(account, calculated)

    def verify_all_balances(self, organization_id: UUID) -> list[BalanceVerification]:
        """One verification per current account, ordered by code."""
        accounts = self.versions.list_current(
            Account, order_by=Account.code, organization_id=organization_id
        )
        postings = self._postings(organization_id)
        results = [
            self._verification(
                account,
                recalculate_balance(postings, account.id, account.account_type),
            )
            for account in accounts
        ]
        inconsistent = [r for r in results if not r.is_consistent]
        if inconsistent:
            logger.warning(
                "balance_verification_failed",
                extra={
                    "organization_id": str(organization_id),
                    "inconsistent_accounts": [r.account_code for r in inconsistent],
                },
            )
        return results

    def balance_summary(self, account_id: UUID, organization_id: UUID) -> BalanceSummary:
        account = self._account(account_id, organization_id)
        totals = summarize_postings(self._postings(organization_id, account_id), account.id)
        return BalanceSummary(
            account_id=account.id,
            account_name=account.name,
            account_type=account.account_type,
            current_balance=account.current_balance,
            total_debits=totals.total_debits,
            total_credits=totals.total_credits,
            posting_count=totals.posting_count,
        )

    def trial_balance(self, organization_id: UUID) -> TrialBalance:
        accounts = self._all_current(organization_id)
        debit_total = ZERO
        credit_total = ZERO
        for account in accounts:
            if is_debit_normal(account.account_type):
                debit_total += account.current_balance
            else:
                credit_total += account.current_balance
        return TrialBalance(total_debit_normal=debit_total, total_credit_normal=credit_total)

    def hierarchical_balance(self, account_id: UUID, organization_id: UUID) -> Decimal:
        """Balance of the account plus all of its current descendants."""
        self._account(account_id, organization_id)
        accounts = self._all_current(organization_id)
        return subtree_balance(
            account_id,
            {a.id: a.current_balance for a in accounts},
            {a.id: a.parent_account_id for a in accounts},
        )

    def _verification(self, account: Account, calculated: Decimal) -> BalanceVerification:
        check = verify_balance(account.current_balance, calculated, self.tolerance)
        return BalanceVerification(
            account_id=account.id,
            account_code=account.code,
            stored_balance=check.stored,
            calculated_balance=check.calculated,
            difference=check.difference,
            is_consistent=check.is_consistent,
        )
