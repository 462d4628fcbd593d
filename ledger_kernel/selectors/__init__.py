"""Read-only selectors over ledger state."""

from ledger_kernel.selectors.balance_selector import BalanceSelector

__all__ = ["BalanceSelector"]
