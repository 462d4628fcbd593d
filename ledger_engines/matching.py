"""
ledger_engines.matching -- Bank statement line to ledger transaction matcher.

Responsibility:
    Given the unmatched lines of one bank statement and the unclaimed
    ledger transactions that could explain them, propose at most one
    transaction per line using exact and fuzzy rules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Called by ``ledger_services.reconciliation_service.ReconciliationService``,
    which loads the inputs and persists the resulting matches.

Invariants enforced:
    - No transaction id appears in more than one proposal.  Matching is
      greedy and first-come: once claimed, a transaction leaves the pool.
    - Deterministic: lines are processed by (transaction_date, line_id);
      ties between eligible transactions break on absolute date delta,
      then description similarity (higher first), then transaction id.
    - Exact pass first over every line, then a fuzzy pass over the lines
      the exact pass left unmatched.
    - Decimal-only amount comparison; no floats.

Exact rule:
    |line.amount| equals the transaction amount (within the amount
    tolerance), same calendar day, and both reference numbers are present
    and equal after trimming.

Fuzzy rule:
    |line.amount| equals the transaction amount and the dates are at most
    ``date_tolerance_days`` apart.

Audit relevance:
    Each proposal carries a human-readable reason.  Every invocation is
    traced via ``@traced_engine``.
"""

from __future__ import annotations

import re
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.matching")

DEFAULT_DATE_TOLERANCE_DAYS = 3
DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")

_NON_ALNUM = re.compile(r"[^a-z0-9]")


class MatchKind(str, Enum):
    """Confidence of an automatic match; values match MatchConfidence."""

    EXACT = "AUTO_EXACT"
    FUZZY = "AUTO_FUZZY"


@dataclass(frozen=True)
class MatchRules:
    date_tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS
    amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE

    def __post_init__(self) -> None:
        if self.date_tolerance_days < 0:
            raise ValueError("date_tolerance_days must be >= 0")
        if self.amount_tolerance <= 0:
            raise ValueError("amount_tolerance must be > 0")


@dataclass(frozen=True)
class StatementLineCandidate:
    """A bank statement line awaiting a match.  Amount is signed."""

    line_id: UUID
    transaction_date: date
    amount: Decimal
    description: str
    reference_number: str | None = None


@dataclass(frozen=True)
class LedgerCandidate:
    """An unclaimed ledger transaction.  Amount is positive."""

    transaction_id: UUID
    transaction_date: date
    amount: Decimal
    description: str
    reference_number: str | None = None


@dataclass(frozen=True)
class MatchProposal:
    line_id: UUID
    transaction_id: UUID
    amount: Decimal
    kind: MatchKind
    date_delta_days: int
    description_similarity: Decimal
    reason: str


@dataclass(frozen=True)
class MatchPlan:
    """Outcome of one matcher run."""

    proposals: tuple[MatchProposal, ...]
    unmatched_line_ids: tuple[UUID, ...]

    @property
    def total(self) -> int:
        return len(self.proposals) + len(self.unmatched_line_ids)

    @property
    def exact_count(self) -> int:
        return sum(1 for p in self.proposals if p.kind == MatchKind.EXACT)

    @property
    def fuzzy_count(self) -> int:
        return sum(1 for p in self.proposals if p.kind == MatchKind.FUZZY)


def normalize_description(text: str | None) -> str:
    return _NON_ALNUM.sub("", (text or "").lower())


def description_similarity(a: str | None, b: str | None) -> Decimal:
    """
    Similarity in [0, 1] of two descriptions.

    1 when equal after normalization, 0.8 when one contains the other,
    otherwise the Jaccard index of their character sets.
    """
    na = normalize_description(a)
    nb = normalize_description(b)
    if na == nb:
        return Decimal("1")
    if na in nb or nb in na:
        return Decimal("0.8")
    set_a = set(na)
    set_b = set(nb)
    union = set_a | set_b
    if not union:
        return Decimal("0")
    return Decimal(len(set_a & set_b)) / Decimal(len(union))


def amounts_match(
    statement_amount: Decimal,
    transaction_amount: Decimal,
    tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
) -> bool:
    """Statement amounts are signed, ledger amounts positive; compare magnitudes."""
    return abs(abs(statement_amount) - abs(transaction_amount)) < tolerance


def _references_equal(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    a = a.strip()
    b = b.strip()
    return bool(a) and a == b


class StatementMatcher:
    """
    Greedy two-pass matcher.

    Stateless; a single instance may be reused across statements.
    """

    @traced_engine("statement_matcher", "1.0", fingerprint_fields=("lines", "candidates", "rules"))
    def plan(
        self,
        lines: Sequence[StatementLineCandidate],
        candidates: Sequence[LedgerCandidate],
        rules: MatchRules = MatchRules(),
    ) -> MatchPlan:
        t0 = time.monotonic()
        logger.info(
            "statement_match_started",
            extra={"line_count": len(lines), "candidate_count": len(candidates)},
        )

        ordered_lines = sorted(lines, key=lambda l: (l.transaction_date, str(l.line_id)))
        claimed: set[UUID] = set()
        proposals: dict[UUID, MatchProposal] = {}

        for line in ordered_lines:
            best = self._best_candidate(line, candidates, claimed, rules, exact=True)
            if best is not None:
                proposals[line.line_id] = self._propose(line, best, MatchKind.EXACT)
                claimed.add(best.transaction_id)

        for line in ordered_lines:
            if line.line_id in proposals:
                continue
            best = self._best_candidate(line, candidates, claimed, rules, exact=False)
            if best is not None:
                proposals[line.line_id] = self._propose(line, best, MatchKind.FUZZY)
                claimed.add(best.transaction_id)

        plan = MatchPlan(
            proposals=tuple(proposals[l.line_id] for l in ordered_lines if l.line_id in proposals),
            unmatched_line_ids=tuple(l.line_id for l in ordered_lines if l.line_id not in proposals),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "statement_match_completed",
            extra={
                "exact_matches": plan.exact_count,
                "fuzzy_matches": plan.fuzzy_count,
                "unmatched": len(plan.unmatched_line_ids),
                "duration_ms": duration_ms,
            },
        )
        return plan

    def _best_candidate(
        self,
        line: StatementLineCandidate,
        candidates: Sequence[LedgerCandidate],
        claimed: set[UUID],
        rules: MatchRules,
        exact: bool,
    ) -> LedgerCandidate | None:
        eligible = []
        for candidate in candidates:
            if candidate.transaction_id in claimed:
                continue
            if not amounts_match(line.amount, candidate.amount, rules.amount_tolerance):
                continue
            delta = abs((line.transaction_date - candidate.transaction_date).days)
            if exact:
                if delta != 0 or not _references_equal(line.reference_number, candidate.reference_number):
                    continue
            elif delta > rules.date_tolerance_days:
                continue
            eligible.append(candidate)

        if not eligible:
            return None
        return min(eligible, key=lambda c: self._rank(line, c))

    @staticmethod
    def _rank(line: StatementLineCandidate, candidate: LedgerCandidate) -> tuple:
        return (
            abs((line.transaction_date - candidate.transaction_date).days),
            -description_similarity(line.description, candidate.description),
            str(candidate.transaction_id),
        )

    @staticmethod
    def _propose(
        line: StatementLineCandidate,
        candidate: LedgerCandidate,
        kind: MatchKind,
    ) -> MatchProposal:
        delta = abs((line.transaction_date - candidate.transaction_date).days)
        if kind == MatchKind.EXACT:
            reason = "Exact match: amount, date, and reference number"
        else:
            reason = f"Fuzzy match: amount matches, dates {delta} day(s) apart"
        return MatchProposal(
            line_id=line.line_id,
            transaction_id=candidate.transaction_id,
            amount=abs(line.amount),
            kind=kind,
            date_delta_days=delta,
            description_similarity=description_similarity(line.description, candidate.description),
            reason=reason,
        )
