"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.contact import Contact, ContactRole, ContactType
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.models.membership import MemberRole, Membership
from ledger_kernel.models.organization import Organization, OrganizationStatus
from ledger_kernel.models.reconciliation import (
    BankAccount,
    BankStatement,
    BankStatementLine,
    BankStatementLineMatch,
    LineStatus,
    MatchConfidence,
    StatementStatus,
)
from ledger_kernel.models.transaction import Transaction, TransactionType

__all__ = [
    "Account",
    "AccountType",
    "BankAccount",
    "BankStatement",
    "BankStatementLine",
    "BankStatementLineMatch",
    "Contact",
    "ContactRole",
    "ContactType",
    "FiscalPeriod",
    "LineStatus",
    "MatchConfidence",
    "MemberRole",
    "Membership",
    "Organization",
    "OrganizationStatus",
    "PeriodStatus",
    "StatementStatus",
    "Transaction",
    "TransactionType",
]
