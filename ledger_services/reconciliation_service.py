"""
ledger_services.reconciliation_service -- Bank statement reconciliation.

Responsibility:
    Link bank accounts to ledger accounts, import pre-parsed statements,
    auto-match statement lines to unreconciled ledger transactions, support
    manual matching, skipping and unmatching, and complete a statement by
    marking its matched transactions reconciled.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Loads inputs for the pure ``StatementMatcher`` and persists its
    proposals as BankStatementLineMatch rows.  Marks transactions
    reconciled through ``TransactionService`` so the ledger side stays
    versioned.

Invariants enforced:
    - No transaction id is claimed by more than one auto-match: the
      candidate pool excludes transactions with any existing match row,
      the matcher never proposes one twice, and each insert re-checks for
      a competing match before it is written.
    - The statement row is locked (SELECT ... FOR UPDATE) for the whole
      auto-match run, serializing concurrent runs per statement.
    - sum(matches of a line) <= |line.amount|; violating manual
      allocations are rejected before anything is written.
    - A line is MATCHED only when its matches cover |line.amount| exactly.
    - COMPLETED and CANCELLED statements are read-only.

Failure modes:
    - BankAccountNotFoundError / StatementNotFoundError /
      StatementLineNotFoundError / MatchNotFoundError for unknown or
      foreign ids.
    - ExceedsLineAmountError, InvalidAmountError for bad allocations.
    - StatementClosedError, StatementAlreadyCompletedError on finished
      statements.
    - UnresolvedLinesError when completing with unmatched lines and no
      acknowledgment.

Audit relevance:
    Match rows record their creator.  Reconciled transactions get a new
    version with ``reconciled_at``; every run logs its counts.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from ledger_engines.matching import (
    LedgerCandidate,
    MatchRules,
    StatementLineCandidate,
    StatementMatcher,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    BankAccountNotFoundError,
    ExceedsLineAmountError,
    InvalidAmountError,
    MatchNotFoundError,
    StatementAlreadyCompletedError,
    StatementClosedError,
    StatementLineNotFoundError,
    StatementNotFoundError,
    TransactionVoidedError,
    UnresolvedLinesError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.reconciliation import (
    BankAccount,
    BankStatement,
    BankStatementLine,
    BankStatementLineMatch,
    LineStatus,
    MatchConfidence,
    StatementStatus,
)
from ledger_kernel.models.transaction import Transaction
from ledger_kernel.services.transaction_service import TransactionService
from ledger_kernel.services.version_store import VersionStore
from ledger_services._reconciliation_types import (
    AutoMatchRecord,
    AutoMatchSummary,
    CompletionResult,
    MatchAllocation,
    StatementLineInput,
    StatementProgress,
)

logger = get_logger("services.reconciliation")

ZERO = Decimal("0")


class ReconciliationService:
    """
    Reconciliation matcher and statement workflow.

    Contract:
        Runs inside the caller's transaction.  Multi-row writes are
        wrapped in ``session.begin_nested()``; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        matcher: StatementMatcher | None = None,
        rules: MatchRules | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.versions = VersionStore(session, self.clock)
        self.transactions = TransactionService(session, self.clock)
        self.matcher = matcher or StatementMatcher()
        self.rules = rules or MatchRules()

    @classmethod
    def from_settings(cls, session: Session, settings, clock: Clock | None = None) -> "ReconciliationService":
        """Build with matching rules taken from ``LedgerSettings.matching``."""
        rules = MatchRules(
            date_tolerance_days=settings.matching.date_tolerance_days,
            amount_tolerance=settings.matching.amount_tolerance,
        )
        return cls(session, clock, rules=rules)

    # ------------------------------------------------------------------
    # Bank accounts and statements
    # ------------------------------------------------------------------

    def create_bank_account(
        self,
        organization_id: UUID,
        account_id: UUID,
        name: str,
        actor_id: UUID,
        bank_name: str | None = None,
        last_four: str | None = None,
    ) -> BankAccount:
        """
        Link a bank account to a current ledger account of the organization.

        Raises:
            AccountNotFoundError: The ledger account is missing or foreign.
        """
        self.versions.require_current(Account, account_id, organization_id)
        bank_account = BankAccount(
            organization_id=organization_id,
            account_id=account_id,
            name=name,
            bank_name=bank_name,
            last_four=last_four,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(bank_account)
        self.session.flush()
        logger.info(
            "bank_account_created",
            extra={
                "organization_id": str(organization_id),
                "bank_account_id": str(bank_account.id),
                "account_id": str(account_id),
            },
        )
        return bank_account

    def get_bank_account(self, bank_account_id: UUID, organization_id: UUID) -> BankAccount:
        bank_account = self.session.execute(
            select(BankAccount).where(
                BankAccount.id == bank_account_id,
                BankAccount.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if bank_account is None:
            raise BankAccountNotFoundError(str(bank_account_id))
        return bank_account

    def list_bank_accounts(self, organization_id: UUID) -> list[BankAccount]:
        return list(
            self.session.execute(
                select(BankAccount)
                .where(BankAccount.organization_id == organization_id)
                .order_by(BankAccount.name)
            ).scalars()
        )

    def import_statement(
        self,
        bank_account_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        statement_date: date,
        period_start: date,
        period_end: date,
        lines: Sequence[StatementLineInput],
        opening_balance: Decimal | None = None,
        closing_balance: Decimal | None = None,
        file_name: str | None = None,
    ) -> BankStatement:
        """
        Store a statement and its lines, all UNMATCHED.

        Raises:
            ValueError: period_start after period_end.
        """
        if period_start > period_end:
            raise ValueError(
                f"period_start ({period_start}) cannot be after period_end ({period_end})"
            )
        self.get_bank_account(bank_account_id, organization_id)

        statement = BankStatement(
            organization_id=organization_id,
            bank_account_id=bank_account_id,
            statement_date=statement_date,
            period_start=period_start,
            period_end=period_end,
            opening_balance=opening_balance,
            closing_balance=closing_balance,
            file_name=file_name,
            status=StatementStatus.DRAFT.value,
            created_by_id=actor_id,
        )
        for line in lines:
            statement.lines.append(
                BankStatementLine(
                    transaction_date=line.transaction_date,
                    post_date=line.post_date,
                    description=line.description,
                    reference_number=line.reference_number,
                    amount=line.amount,
                    category=line.category,
                    status=LineStatus.UNMATCHED.value,
                    match_confidence=MatchConfidence.UNMATCHED.value,
                    created_by_id=actor_id,
                )
            )
        self.session.add(statement)
        self.session.flush()

        logger.info(
            "statement_imported",
            extra={
                "organization_id": str(organization_id),
                "statement_id": str(statement.id),
                "line_count": len(lines),
                "file_name": file_name,
            },
        )
        return statement

    def get_statement(self, statement_id: UUID, organization_id: UUID) -> BankStatement:
        statement = self.session.execute(
            select(BankStatement).where(
                BankStatement.id == statement_id,
                BankStatement.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if statement is None:
            raise StatementNotFoundError(str(statement_id))
        return statement

    # ------------------------------------------------------------------
    # Auto-match
    # ------------------------------------------------------------------

    def auto_match_statement(
        self,
        statement_id: UUID,
        bank_account_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
    ) -> AutoMatchSummary:
        """
        Match every untouched UNMATCHED line to at most one transaction.

        Lines that already carry partial manual matches are left alone.
        """
        with LogContext.bind(organization_id=organization_id, actor_id=actor_id, entity_id=statement_id):
            return self._auto_match_statement(statement_id, bank_account_id, organization_id, actor_id)

    def _auto_match_statement(
        self,
        statement_id: UUID,
        bank_account_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
    ) -> AutoMatchSummary:
        t0 = time.monotonic()
        with self.session.begin_nested():
            statement = self._lock_statement(statement_id, organization_id)
            if statement.bank_account_id != bank_account_id:
                raise StatementNotFoundError(str(statement_id))
            _require_open(statement)
            bank_account = self.get_bank_account(bank_account_id, organization_id)

            lines = [
                line for line in statement.lines
                if line.status == LineStatus.UNMATCHED and not line.matches
            ]
            line_inputs = [
                StatementLineCandidate(
                    line_id=line.id,
                    transaction_date=line.transaction_date,
                    amount=line.amount,
                    description=line.description,
                    reference_number=line.reference_number,
                )
                for line in lines
            ]
            candidates = self._load_candidates(
                organization_id, bank_account.account_id, statement, lines
            ) if lines else []

            plan = self.matcher.plan(line_inputs, candidates, self.rules)

            by_id = {line.id: line for line in lines}
            records: list[AutoMatchRecord] = []
            for proposal in plan.proposals:
                if self._is_claimed(proposal.transaction_id):
                    logger.warning(
                        "auto_match_claim_conflict",
                        extra={
                            "statement_id": str(statement_id),
                            "line_id": str(proposal.line_id),
                            "transaction_id": str(proposal.transaction_id),
                        },
                    )
                    continue
                confidence = MatchConfidence(proposal.kind.value)
                line = by_id[proposal.line_id]
                line.matches.append(
                    BankStatementLineMatch(
                        transaction_id=proposal.transaction_id,
                        amount=proposal.amount,
                        confidence=confidence.value,
                        created_by_id=actor_id,
                    )
                )
                line.status = LineStatus.MATCHED.value
                line.match_confidence = confidence.value
                line.updated_by_id = actor_id
                self.session.flush()
                records.append(
                    AutoMatchRecord(
                        line_id=line.id,
                        transaction_id=proposal.transaction_id,
                        amount=proposal.amount,
                        confidence=confidence,
                        reason=proposal.reason,
                    )
                )

            if statement.status == StatementStatus.DRAFT:
                statement.status = StatementStatus.IN_PROGRESS.value
                statement.updated_by_id = actor_id
            self.session.flush()

        summary = AutoMatchSummary(
            statement_id=statement_id,
            total=len(lines),
            exact_matches=sum(1 for r in records if r.confidence == MatchConfidence.AUTO_EXACT),
            fuzzy_matches=sum(1 for r in records if r.confidence == MatchConfidence.AUTO_FUZZY),
            unmatched=len(lines) - len(records),
            matches=tuple(records),
        )
        logger.info(
            "auto_match_completed",
            extra={
                "statement_id": str(statement_id),
                "total": summary.total,
                "exact_matches": summary.exact_matches,
                "fuzzy_matches": summary.fuzzy_matches,
                "unmatched": summary.unmatched,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return summary

    def _load_candidates(
        self,
        organization_id: UUID,
        ledger_account_id: UUID,
        statement: BankStatement,
        lines: Sequence[BankStatementLine],
    ) -> list[LedgerCandidate]:
        tolerance = timedelta(days=self.rules.date_tolerance_days)
        line_dates = [line.transaction_date for line in lines]
        window_start = min([statement.period_start, *line_dates]) - tolerance
        window_end = max([statement.period_end, *line_dates]) + tolerance

        claimed = exists().where(BankStatementLineMatch.transaction_id == Transaction.id)
        transactions = self.session.execute(
            select(Transaction)
            .where(
                VersionStore.current_version_filter(Transaction, organization_id=organization_id),
                Transaction.reconciled.is_(False),
                Transaction.is_voided.is_(False),
                or_(
                    Transaction.debit_account_id == ledger_account_id,
                    Transaction.credit_account_id == ledger_account_id,
                ),
                Transaction.transaction_date >= window_start,
                Transaction.transaction_date <= window_end,
                ~claimed,
            )
            .order_by(Transaction.transaction_date, Transaction.id)
        ).scalars()
        return [
            LedgerCandidate(
                transaction_id=t.id,
                transaction_date=t.transaction_date,
                amount=t.amount,
                description=t.description,
                reference_number=t.reference_number,
            )
            for t in transactions
        ]

    def _is_claimed(self, transaction_id: UUID) -> bool:
        return self.session.execute(
            select(BankStatementLineMatch.id)
            .where(BankStatementLineMatch.transaction_id == transaction_id)
            .limit(1)
        ).first() is not None

    # ------------------------------------------------------------------
    # Manual operations
    # ------------------------------------------------------------------

    def manual_match(
        self,
        line_id: UUID,
        organization_id: UUID,
        allocations: Sequence[MatchAllocation],
        actor_id: UUID,
    ) -> BankStatementLine:
        """
        Add one match per allocation.

        The line becomes MATCHED only once its matches cover its absolute
        amount exactly; partial coverage leaves it UNMATCHED.

        Raises:
            InvalidAmountError: An allocation amount is not positive.
            ExceedsLineAmountError: Existing plus new matches exceed |amount|.
            TransactionNotFoundError / TransactionVoidedError: Bad target.
        """
        with self.session.begin_nested():
            line = self._get_line(line_id, organization_id)
            _require_open(line.statement)

            requested = ZERO
            for allocation in allocations:
                if allocation.amount is None or allocation.amount <= 0:
                    raise InvalidAmountError(str(allocation.amount))
                transaction = self.versions.require_current(
                    Transaction, allocation.transaction_id, organization_id
                )
                if transaction.is_voided:
                    raise TransactionVoidedError(str(transaction.id))
                requested += allocation.amount

            already_matched = line.matched_amount
            if already_matched + requested > line.absolute_amount:
                raise ExceedsLineAmountError(
                    str(line.id),
                    str(line.absolute_amount),
                    str(already_matched),
                    str(requested),
                )

            for allocation in allocations:
                line.matches.append(
                    BankStatementLineMatch(
                        transaction_id=allocation.transaction_id,
                        amount=allocation.amount,
                        confidence=MatchConfidence.MANUAL.value,
                        created_by_id=actor_id,
                    )
                )
            fully_matched = line.matched_amount == line.absolute_amount
            line.status = (LineStatus.MATCHED if fully_matched else LineStatus.UNMATCHED).value
            line.match_confidence = MatchConfidence.MANUAL.value
            line.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "manual_match_recorded",
            extra={
                "line_id": str(line_id),
                "allocation_count": len(allocations),
                "allocated": requested,
                "fully_matched": fully_matched,
            },
        )
        return line

    def unmatch_line(self, line_id: UUID, organization_id: UUID, actor_id: UUID) -> BankStatementLine:
        """Delete every match of the line and reset it to UNMATCHED."""
        with self.session.begin_nested():
            line = self._get_line(line_id, organization_id)
            _require_open(line.statement)
            removed = len(line.matches)
            self._reset_line(line, actor_id)
            self.session.flush()

        logger.info("line_unmatched", extra={"line_id": str(line_id), "removed_matches": removed})
        return line

    def skip_line(
        self,
        line_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        notes: str,
    ) -> BankStatementLine:
        """Mark a line as needing no ledger counterpart (bank fees, etc.)."""
        with self.session.begin_nested():
            line = self._get_line(line_id, organization_id)
            _require_open(line.statement)
            self._reset_line(line, actor_id)
            line.status = LineStatus.SKIPPED.value
            line.notes = notes
            self.session.flush()

        logger.info("line_skipped", extra={"line_id": str(line_id)})
        return line

    def remove_match(self, match_id: UUID, organization_id: UUID, actor_id: UUID) -> BankStatementLine:
        """Delete one match; the line drops back to UNMATCHED if it no longer covers its amount."""
        with self.session.begin_nested():
            match = self.session.execute(
                select(BankStatementLineMatch)
                .join(BankStatementLine, BankStatementLineMatch.line_id == BankStatementLine.id)
                .join(BankStatement, BankStatementLine.bank_statement_id == BankStatement.id)
                .where(
                    BankStatementLineMatch.id == match_id,
                    BankStatement.organization_id == organization_id,
                )
            ).scalar_one_or_none()
            if match is None:
                raise MatchNotFoundError(str(match_id))

            line = match.line
            _require_open(line.statement)
            line.matches.remove(match)
            if not line.matches:
                line.match_confidence = MatchConfidence.UNMATCHED.value
            if line.matched_amount != line.absolute_amount:
                line.status = LineStatus.UNMATCHED.value
            line.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "match_removed",
            extra={"match_id": str(match_id), "line_id": str(line.id)},
        )
        return line

    # ------------------------------------------------------------------
    # Progress and completion
    # ------------------------------------------------------------------

    def get_statement_progress(self, statement_id: UUID, organization_id: UUID) -> StatementProgress:
        statement = self.get_statement(statement_id, organization_id)
        counts = {status: 0 for status in LineStatus}
        partial = 0
        matched_amount = ZERO
        for line in statement.lines:
            counts[LineStatus(line.status)] += 1
            matched_amount += line.matched_amount
            if line.status == LineStatus.UNMATCHED and line.matches:
                partial += 1
        return StatementProgress(
            statement_id=statement.id,
            status=StatementStatus(statement.status),
            total_lines=len(statement.lines),
            matched_lines=counts[LineStatus.MATCHED],
            confirmed_lines=counts[LineStatus.CONFIRMED],
            skipped_lines=counts[LineStatus.SKIPPED],
            unmatched_lines=counts[LineStatus.UNMATCHED],
            partially_matched_lines=partial,
            matched_amount=matched_amount,
        )

    def complete_statement(
        self,
        statement_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        acknowledge_unresolved: bool = False,
    ) -> CompletionResult:
        """
        Reconcile every matched transaction and close the statement.

        Raises:
            StatementAlreadyCompletedError: Already COMPLETED.
            StatementClosedError: CANCELLED.
            UnresolvedLinesError: UNMATCHED lines remain and
                ``acknowledge_unresolved`` is False.
        """
        with LogContext.bind(organization_id=organization_id, actor_id=actor_id, entity_id=statement_id):
            return self._complete_statement(statement_id, organization_id, actor_id, acknowledge_unresolved)

    def _complete_statement(
        self,
        statement_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        acknowledge_unresolved: bool,
    ) -> CompletionResult:
        with self.session.begin_nested():
            statement = self._lock_statement(statement_id, organization_id)
            if statement.status == StatementStatus.COMPLETED:
                raise StatementAlreadyCompletedError(str(statement_id))
            _require_open(statement)

            unresolved = [l for l in statement.lines if l.status == LineStatus.UNMATCHED]
            if unresolved and not acknowledge_unresolved:
                raise UnresolvedLinesError(str(statement_id), len(unresolved))

            reconciled: list[UUID] = []
            confirmed = 0
            for line in statement.lines:
                if line.status != LineStatus.MATCHED:
                    continue
                for match in line.matches:
                    if match.transaction_id in reconciled:
                        continue
                    transaction = self.versions.require_current(
                        Transaction, match.transaction_id, organization_id
                    )
                    if transaction.is_voided:
                        raise TransactionVoidedError(str(transaction.id))
                    if not transaction.reconciled:
                        self.transactions.mark_reconciled(transaction, actor_id)
                    reconciled.append(match.transaction_id)
                line.status = LineStatus.CONFIRMED.value
                line.updated_by_id = actor_id
                confirmed += 1

            completed_at = self.clock.now()
            statement.status = StatementStatus.COMPLETED.value
            statement.reconciled_by = actor_id
            statement.reconciled_at = completed_at
            statement.updated_by_id = actor_id
            self.session.flush()

        skipped = sum(1 for l in statement.lines if l.status == LineStatus.SKIPPED)
        if unresolved:
            logger.warning(
                "statement_completed_with_unresolved_lines",
                extra={"statement_id": str(statement_id), "unresolved": len(unresolved)},
            )
        logger.info(
            "statement_completed",
            extra={
                "statement_id": str(statement_id),
                "confirmed_lines": confirmed,
                "reconciled_transactions": len(reconciled),
            },
        )
        return CompletionResult(
            statement_id=statement_id,
            confirmed_lines=confirmed,
            skipped_lines=skipped,
            unresolved_lines=len(unresolved),
            reconciled_transaction_ids=tuple(reconciled),
            completed_at=completed_at,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_statement(self, statement_id: UUID, organization_id: UUID) -> BankStatement:
        statement = self.session.execute(
            select(BankStatement)
            .where(
                BankStatement.id == statement_id,
                BankStatement.organization_id == organization_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if statement is None:
            raise StatementNotFoundError(str(statement_id))
        return statement

    def _get_line(self, line_id: UUID, organization_id: UUID) -> BankStatementLine:
        line = self.session.execute(
            select(BankStatementLine)
            .join(BankStatement, BankStatementLine.bank_statement_id == BankStatement.id)
            .where(
                BankStatementLine.id == line_id,
                BankStatement.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if line is None:
            raise StatementLineNotFoundError(str(line_id))
        return line

    @staticmethod
    def _reset_line(line: BankStatementLine, actor_id: UUID) -> None:
        line.matches.clear()
        line.status = LineStatus.UNMATCHED.value
        line.match_confidence = MatchConfidence.UNMATCHED.value
        line.updated_by_id = actor_id


def _require_open(statement: BankStatement) -> None:
    if statement.is_finished:
        raise StatementClosedError(str(statement.id), str(statement.status))
