"""
BalanceEngine -- the single writer of ``Account.current_balance``.

Responsibility:
    Apply a posting (debit one account, credit another, same amount) to the
    stored running balances, or apply its exact inverse.  Every caller that
    moves money (transaction CRUD, closing entries, reopen) goes through
    ``post_balances`` / ``reverse_balances``.

Architecture position:
    Kernel > Services -- imperative shell around the pure sign rules in
    ``ledger_kernel.domain.balance``.

Invariants enforced:
    - Debit increases ASSET/EXPENSE and decreases LIABILITY/EQUITY/REVENUE;
      credit is the mirror.  Encoded once, in the domain module.
    - ``reverse_balances`` after ``post_balances`` with the same arguments
      leaves every balance exactly where it was.
    - The balance write happens in the caller's unit of work, alongside the
      transaction version it accounts for.
    - The write is conditional on the account version still being current;
      a superseded version is never silently updated.

Failure modes:
    - AccountNotFoundError if either account has no current version.
    - InvalidAmountError if the amount is not positive.
    - ConcurrentModificationError if an account version was superseded
      between the read and the write.

Audit relevance:
    ``balances_posted`` / ``balances_reversed`` records carry both account
    ids, the amount and the resulting balances.  BalanceSelector can
    recompute every balance from the posting log to prove the cache.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update

from ledger_kernel.domain.balance import PostingSide, apply_posting, reverse_posting
from ledger_kernel.domain.dtos import BalanceUpdate
from ledger_kernel.domain.temporal import MAX_DATE
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConcurrentModificationError,
    InvalidAmountError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.version_store import VersionStore

logger = get_logger("services.balance_engine")

_BalanceRule = Callable[[Decimal, str, PostingSide, Decimal], Decimal]


class BalanceEngine(BaseService[Account]):
    """
    Keeps stored account balances in lockstep with posted transactions.

    Contract:
        Returns the new balances it wrote; it never re-reads them.
    """

    def post_balances(
        self,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: Decimal,
        organization_id: UUID | None = None,
    ) -> BalanceUpdate:
        update_ = self._apply(debit_account_id, credit_account_id, amount, organization_id, apply_posting)
        logger.info(
            "balances_posted",
            extra={
                "debit_account_id": str(debit_account_id),
                "credit_account_id": str(credit_account_id),
                "amount": amount,
                "new_debit_balance": update_.new_debit_balance,
                "new_credit_balance": update_.new_credit_balance,
            },
        )
        return update_

    def reverse_balances(
        self,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: Decimal,
        organization_id: UUID | None = None,
    ) -> BalanceUpdate:
        update_ = self._apply(debit_account_id, credit_account_id, amount, organization_id, reverse_posting)
        logger.info(
            "balances_reversed",
            extra={
                "debit_account_id": str(debit_account_id),
                "credit_account_id": str(credit_account_id),
                "amount": amount,
                "new_debit_balance": update_.new_debit_balance,
                "new_credit_balance": update_.new_credit_balance,
            },
        )
        return update_

    def _apply(
        self,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: Decimal,
        organization_id: UUID | None,
        rule: _BalanceRule,
    ) -> BalanceUpdate:
        if amount <= 0:
            raise InvalidAmountError(str(amount))

        accounts = self._lock_accounts({debit_account_id, credit_account_id}, organization_id)
        debit_account = accounts[debit_account_id]
        credit_account = accounts[credit_account_id]

        balances = {account_id: account.current_balance for account_id, account in accounts.items()}
        balances[debit_account_id] = rule(
            balances[debit_account_id], debit_account.account_type, PostingSide.DEBIT, amount
        )
        balances[credit_account_id] = rule(
            balances[credit_account_id], credit_account.account_type, PostingSide.CREDIT, amount
        )

        for account_id, new_balance in balances.items():
            self._write_balance(accounts[account_id], new_balance)

        return BalanceUpdate(
            debit_account_id=debit_account_id,
            credit_account_id=credit_account_id,
            amount=amount,
            new_debit_balance=balances[debit_account_id],
            new_credit_balance=balances[credit_account_id],
        )

    def _lock_accounts(
        self,
        account_ids: set[UUID],
        organization_id: UUID | None,
    ) -> dict[UUID, Account]:
        filters = {} if organization_id is None else {"organization_id": organization_id}
        rows = self.session.execute(
            select(Account)
            .where(
                VersionStore.current_version_filter(Account, **filters),
                Account.id.in_(account_ids),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars()
        accounts = {account.id: account for account in rows}
        for account_id in sorted(account_ids, key=str):
            if account_id not in accounts:
                raise AccountNotFoundError(str(account_id))
        return accounts

    def _write_balance(self, account: Account, new_balance: Decimal) -> None:
        result = self.session.execute(
            update(Account)
            .where(Account.version_id == account.version_id, Account.system_to == MAX_DATE)
            .values(current_balance=new_balance)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount == 0:
            logger.warning(
                "balance_write_conflict",
                extra={"account_id": str(account.id), "version_id": str(account.version_id)},
            )
            raise ConcurrentModificationError("Account", str(account.version_id))
