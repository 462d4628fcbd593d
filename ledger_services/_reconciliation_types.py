"""
ledger_services._reconciliation_types -- DTOs for bank reconciliation.

Responsibility:
    Frozen inputs and results of the ReconciliationService: pre-parsed
    statement lines, manual allocations, auto-match summaries, statement
    progress and completion results.

Architecture position:
    Services -- produced and consumed by ``reconciliation_service``.
    ``ledger_ingestion.ParsedStatementLine`` carries the same attributes as
    ``StatementLineInput`` and is accepted wherever it is.

Invariants enforced:
    - All DTOs are frozen dataclasses.
    - Statement line amounts are signed (deposit > 0, withdrawal < 0);
      allocation amounts are positive.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from ledger_kernel.models.reconciliation import MatchConfidence, StatementStatus


@dataclass(frozen=True)
class StatementLineInput:
    """One pre-parsed bank statement line."""
    transaction_date: date
    description: str
    amount: Decimal
    reference_number: str | None = None
    post_date: date | None = None
    category: str | None = None


@dataclass(frozen=True)
class MatchAllocation:
    """Part (or all) of a statement line assigned to one transaction."""
    transaction_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class AutoMatchRecord:
    line_id: UUID
    transaction_id: UUID
    amount: Decimal
    confidence: MatchConfidence
    reason: str


@dataclass(frozen=True)
class AutoMatchSummary:
    statement_id: UUID
    total: int
    exact_matches: int
    fuzzy_matches: int
    unmatched: int
    matches: tuple[AutoMatchRecord, ...] = ()


@dataclass(frozen=True)
class StatementProgress:
    statement_id: UUID
    status: StatementStatus
    total_lines: int
    matched_lines: int
    confirmed_lines: int
    skipped_lines: int
    unmatched_lines: int
    partially_matched_lines: int
    matched_amount: Decimal

    @property
    def resolved_lines(self) -> int:
        return self.matched_lines + self.confirmed_lines + self.skipped_lines

    @property
    def is_fully_resolved(self) -> bool:
        return self.unmatched_lines == 0


@dataclass(frozen=True)
class CompletionResult:
    statement_id: UUID
    confirmed_lines: int
    skipped_lines: int
    unresolved_lines: int
    reconciled_transaction_ids: tuple[UUID, ...]
    completed_at: datetime
