"""
Module: ledger_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines.  This is
    the import surface for ``ledger_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import ``ledger_kernel.logging_config`` and sibling engine modules.
    MUST NOT import ``ledger_services`` or touch a database session.

Invariants enforced:
    - Engines never read the clock; dates arrive as parameters.
    - Decimal-only arithmetic for money.
    - Identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine``, emitting
    LEDGER_ENGINE_TRACE records with engine name, version, input
    fingerprint and duration.
"""

from ledger_engines.closing import (
    ClosingAccountBalance,
    ClosingComputation,
    ClosingEngine,
    ClosingEntry,
)
from ledger_engines.matching import (
    LedgerCandidate,
    MatchKind,
    MatchPlan,
    MatchProposal,
    MatchRules,
    StatementLineCandidate,
    StatementMatcher,
    amounts_match,
    description_similarity,
)
from ledger_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "ClosingAccountBalance",
    "ClosingComputation",
    "ClosingEngine",
    "ClosingEntry",
    "LedgerCandidate",
    "MatchKind",
    "MatchPlan",
    "MatchProposal",
    "MatchRules",
    "StatementLineCandidate",
    "StatementMatcher",
    "amounts_match",
    "compute_input_fingerprint",
    "description_similarity",
    "traced_engine",
]
