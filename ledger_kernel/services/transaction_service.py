"""
TransactionService -- create, edit and void ledger postings.

Responsibility:
    The posting path for every double-entry transaction.  Each write
    produces a transaction version and moves account balances through the
    BalanceEngine in the same unit of work.

Architecture position:
    Kernel > Services -- imperative shell.
    Uses PeriodService (closed-period lock), VersionStore (versioning) and
    BalanceEngine (balances).  Called by the PeriodCloseService to post
    closing entries and by the ReconciliationService to mark postings
    reconciled.

Invariants enforced:
    - A transaction debits exactly one account and credits a different
      one for the same positive amount.
    - No posting, edit or void dated inside a CLOSED period.
    - An edit never mutates the amount or accounts of an existing
      version: the old version is closed, its balance effect reversed, the
      new version written and its balance effect posted.
    - A voided transaction keeps its amount and accounts; its balance
      effect is reversed and it can no longer be edited or voided.

Failure modes:
    - InvalidAmountError / InvalidPostingError for a malformed posting.
    - ClosedPeriodError for a date inside a CLOSED period.
    - AccountNotFoundError / AccountInactiveError for a bad account.
    - TransactionNotFoundError / TransactionVoidedError on edit or void.
    - ConcurrentModificationError when another writer got there first.

Audit relevance:
    Every version records the actor and reason; voids also record
    voided_at / voided_by / void_reason.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import (
    AccountInactiveError,
    InvalidAmountError,
    InvalidPostingError,
    TransactionVoidedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.contact import Contact
from ledger_kernel.models.transaction import Transaction, TransactionType
from ledger_kernel.services.balance_engine import BalanceEngine
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.version_store import VersionStore

logger = get_logger("services.transaction")

# Fields an edit may change; everything else carries forward
EDITABLE_FIELDS = frozenset({
    "transaction_date",
    "amount",
    "debit_account_id",
    "credit_account_id",
    "description",
    "category",
    "reference_number",
    "contact_id",
})


class TransactionService(BaseService[Transaction]):
    """
    Service for posting, editing and voiding transactions.

    Contract:
        Returns the ORM version it wrote.  Never commits.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self.balances = BalanceEngine(session, self.clock)
        self.periods = PeriodService(session, self.clock)

    def create_transaction(
        self,
        organization_id: UUID,
        transaction_date: date,
        amount: Decimal,
        debit_account_id: UUID,
        credit_account_id: UUID,
        description: str,
        actor_id: UUID,
        transaction_type: TransactionType | str = TransactionType.GENERAL,
        category: str | None = None,
        reference_number: str | None = None,
        contact_id: UUID | None = None,
        reason: str | None = None,
    ) -> Transaction:
        """
        Post a new transaction and update both account balances.

        Preconditions:
            - amount > 0 and debit_account_id != credit_account_id.
            - transaction_date is not inside a CLOSED period.
            - Both accounts are current, active and owned by the organization.
        """
        transaction_type = TransactionType(transaction_type)
        _validate_posting(amount, debit_account_id, credit_account_id)
        self.periods.validate_posting_date(organization_id, transaction_date)
        self._validate_accounts(organization_id, debit_account_id, credit_account_id)
        if contact_id is not None:
            self.versions.require_current(Contact, contact_id, organization_id)

        transaction = self.versions.create(
            Transaction(
                organization_id=organization_id,
                transaction_date=transaction_date,
                transaction_type=transaction_type.value,
                amount=amount,
                debit_account_id=debit_account_id,
                credit_account_id=credit_account_id,
                description=description,
                category=category,
                reference_number=reference_number,
                contact_id=contact_id,
                reconciled=False,
                is_voided=False,
            ),
            actor_id,
            reason=reason,
        )
        self.balances.post_balances(debit_account_id, credit_account_id, amount, organization_id)

        logger.info(
            "transaction_created",
            extra={
                "organization_id": str(organization_id),
                "transaction_id": str(transaction.id),
                "transaction_type": transaction_type.value,
                "amount": amount,
                "transaction_date": str(transaction_date),
            },
        )
        return transaction

    def edit_transaction(
        self,
        transaction_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        reason: str,
        **changes: Any,
    ) -> Transaction:
        """
        Write a new version of a transaction.

        When the amount or either account changes, the old balance effect
        is reversed and the new one posted.  Both the old and the new date
        must be outside CLOSED periods.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit transaction field(s): {sorted(unknown)}")

        current = self._require_live(transaction_id, organization_id)
        self.periods.validate_posting_date(organization_id, current.transaction_date)
        new_date = changes.get("transaction_date", current.transaction_date)
        if new_date != current.transaction_date:
            self.periods.validate_posting_date(organization_id, new_date)

        old_amount = current.amount
        old_debit = current.debit_account_id
        old_credit = current.credit_account_id
        new_amount = changes.get("amount", old_amount)
        new_debit = changes.get("debit_account_id", old_debit)
        new_credit = changes.get("credit_account_id", old_credit)
        _validate_posting(new_amount, new_debit, new_credit)

        moves_money = (new_amount, new_debit, new_credit) != (old_amount, old_debit, old_credit)
        if moves_money and (new_debit, new_credit) != (old_debit, old_credit):
            self._validate_accounts(organization_id, new_debit, new_credit)
        if changes.get("contact_id") is not None:
            self.versions.require_current(Contact, changes["contact_id"], organization_id)

        edited = self.versions.revise(current, changes, actor_id, reason)
        if moves_money:
            self.balances.reverse_balances(old_debit, old_credit, old_amount, organization_id)
            self.balances.post_balances(new_debit, new_credit, new_amount, organization_id)

        logger.info(
            "transaction_edited",
            extra={
                "transaction_id": str(transaction_id),
                "fields": sorted(changes),
                "balances_moved": moves_money,
            },
        )
        return edited

    def void_transaction(
        self,
        transaction_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        void_reason: str,
    ) -> Transaction:
        """Reverse the balance effect and write a voided version."""
        current = self._require_live(transaction_id, organization_id)
        self.periods.validate_posting_date(organization_id, current.transaction_date)

        now = self.clock.now()
        voided = self.versions.revise(
            current,
            {
                "is_voided": True,
                "voided_at": now,
                "voided_by": actor_id,
                "void_reason": void_reason,
            },
            actor_id,
            reason=void_reason,
            as_of=now,
        )
        self.balances.reverse_balances(
            current.debit_account_id, current.credit_account_id, current.amount, organization_id
        )

        logger.info(
            "transaction_voided",
            extra={"transaction_id": str(transaction_id), "amount": current.amount},
        )
        return voided

    def mark_reconciled(self, transaction: Transaction, actor_id: UUID) -> Transaction:
        """New version flagged reconciled; balances are untouched."""
        now = self.clock.now()
        return self.versions.revise(
            transaction,
            {"reconciled": True, "reconciled_at": now},
            actor_id,
            reason="Bank reconciliation",
            as_of=now,
        )

    def get_transaction(self, transaction_id: UUID, organization_id: UUID) -> Transaction:
        return self.versions.require_current(Transaction, transaction_id, organization_id)

    def list_transactions(
        self,
        organization_id: UUID,
        as_of: datetime | None = None,
        system_as_of: datetime | None = None,
        account_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        include_voided: bool = False,
    ) -> list[Transaction]:
        """
        Transactions ordered by date.

        Without ``as_of`` / ``system_as_of`` the current versions are
        returned.  Either one (or both) switches to the historical view on
        that time axis.
        """
        if as_of is not None and system_as_of is not None:
            predicate = VersionStore.bitemporal_filter(
                Transaction, as_of, system_as_of, organization_id=organization_id
            )
        elif as_of is not None:
            predicate = VersionStore.as_of_filter(Transaction, as_of, organization_id=organization_id)
        elif system_as_of is not None:
            predicate = VersionStore.system_as_of_filter(
                Transaction, system_as_of, organization_id=organization_id
            )
        else:
            predicate = VersionStore.current_version_filter(
                Transaction, organization_id=organization_id
            )

        stmt = select(Transaction).where(predicate)
        if not include_voided:
            stmt = stmt.where(Transaction.is_voided.is_(False))
        if account_id is not None:
            stmt = stmt.where(
                or_(
                    Transaction.debit_account_id == account_id,
                    Transaction.credit_account_id == account_id,
                )
            )
        if start_date is not None:
            stmt = stmt.where(Transaction.transaction_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Transaction.transaction_date <= end_date)
        stmt = stmt.order_by(Transaction.transaction_date, Transaction.id)
        return list(self.session.execute(stmt).scalars())

    def history(self, transaction_id: UUID, organization_id: UUID) -> list[Transaction]:
        return self.versions.history(Transaction, transaction_id, organization_id)

    def _require_live(self, transaction_id: UUID, organization_id: UUID) -> Transaction:
        current = self.versions.require_current(Transaction, transaction_id, organization_id)
        if current.is_voided:
            raise TransactionVoidedError(str(transaction_id))
        return current

    def _validate_accounts(
        self,
        organization_id: UUID,
        debit_account_id: UUID,
        credit_account_id: UUID,
    ) -> None:
        for account_id in (debit_account_id, credit_account_id):
            account = self.versions.require_current(Account, account_id, organization_id)
            if not account.is_active:
                raise AccountInactiveError(str(account_id))


def _validate_posting(amount: Decimal, debit_account_id: UUID, credit_account_id: UUID) -> None:
    if amount is None or amount <= 0:
        raise InvalidAmountError(str(amount))
    if debit_account_id == credit_account_id:
        raise InvalidPostingError(str(debit_account_id), str(credit_account_id))
