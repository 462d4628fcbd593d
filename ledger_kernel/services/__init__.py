"""Kernel services.  Each flushes within the caller's transaction and never commits."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.balance_engine import BalanceEngine
from ledger_kernel.services.contact_service import ContactService
from ledger_kernel.services.membership_service import MembershipService
from ledger_kernel.services.organization_service import OrganizationService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.transaction_service import TransactionService
from ledger_kernel.services.version_store import VersionStore

__all__ = [
    "AccountService",
    "BalanceEngine",
    "ContactService",
    "MembershipService",
    "OrganizationService",
    "PeriodService",
    "TransactionService",
    "VersionStore",
]
