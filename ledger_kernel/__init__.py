"""
Ledger Kernel

The accounting core of a multi-tenant nonprofit bookkeeping product:
- Bitemporal, append-only version chains for every business record
- Double-entry running balances kept in lockstep with postings
- Fiscal period registry with closed-period locking
- Optimistic concurrency via affected-row counts
"""

__version__ = "0.1.0"
