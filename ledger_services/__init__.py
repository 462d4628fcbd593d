"""
Module: ledger_services
Responsibility:
    Orchestration services that compose kernel services with the pure
    engines: the fiscal period closer and the bank reconciliation matcher.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    May import ``ledger_kernel`` and ``ledger_engines``; never the reverse.
"""

from ledger_services._close_types import ClosePreview, CloseResult, ReopenResult
from ledger_services._reconciliation_types import (
    AutoMatchRecord,
    AutoMatchSummary,
    CompletionResult,
    MatchAllocation,
    StatementLineInput,
    StatementProgress,
)
from ledger_services.period_close_service import PeriodCloseService
from ledger_services.reconciliation_service import ReconciliationService

__all__ = [
    "AutoMatchRecord",
    "AutoMatchSummary",
    "ClosePreview",
    "CloseResult",
    "CompletionResult",
    "MatchAllocation",
    "PeriodCloseService",
    "ReconciliationService",
    "ReopenResult",
    "StatementLineInput",
    "StatementProgress",
]
