"""
Balance rules -- the double-entry sign convention, encoded once.

Responsibility:
    Pure functions that compute how a debit or credit of a given amount
    moves an account's running balance, and the read-side verification
    helpers that recompute balances from the posting log.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The Balance Engine
    (``services/balance_engine.py``) is the only writer that applies these
    rules to stored balances.

Invariants enforced:
    - Debits increase ASSET and EXPENSE balances; credits increase
      LIABILITY, EQUITY and REVENUE balances.  Everything else is the mirror.
    - ``reverse_posting(apply_posting(b, ...), ...) == b`` exactly, because
      both use the same signed delta with Decimal arithmetic.
    - No floats.

Failure modes:
    - ValueError for an unknown account type.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol

ZERO = Decimal("0")
DEFAULT_VERIFICATION_TOLERANCE = Decimal("0.01")

DEBIT_NORMAL_TYPES = frozenset({"ASSET", "EXPENSE"})
CREDIT_NORMAL_TYPES = frozenset({"LIABILITY", "EQUITY", "REVENUE"})


class PostingSide(str, Enum):
    """Side of a posting an account sits on."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class Posting(Protocol):
    debit_account_id: object
    credit_account_id: object
    amount: Decimal


def _type_key(account_type: str) -> str:
    key = account_type.value if isinstance(account_type, Enum) else str(account_type)
    key = key.upper()
    if key not in DEBIT_NORMAL_TYPES and key not in CREDIT_NORMAL_TYPES:
        raise ValueError(f"Unknown account type: {account_type!r}")
    return key


def is_debit_normal(account_type: str) -> bool:
    return _type_key(account_type) in DEBIT_NORMAL_TYPES


def balance_delta(account_type: str, side: PostingSide, amount: Decimal) -> Decimal:
    """Signed change to an account balance for one side of a posting."""
    increases = (side == PostingSide.DEBIT) == is_debit_normal(account_type)
    return amount if increases else -amount


def apply_posting(
    balance: Decimal,
    account_type: str,
    side: PostingSide,
    amount: Decimal,
) -> Decimal:
    return balance + balance_delta(account_type, side, amount)


def reverse_posting(
    balance: Decimal,
    account_type: str,
    side: PostingSide,
    amount: Decimal,
) -> Decimal:
    return balance - balance_delta(account_type, side, amount)


def recalculate_balance(
    postings: Iterable[Posting],
    account_id: object,
    account_type: str,
    initial_balance: Decimal = ZERO,
) -> Decimal:
    """Replay a posting log against one account."""
    balance = initial_balance
    for posting in postings:
        if posting.debit_account_id == account_id:
            balance = apply_posting(balance, account_type, PostingSide.DEBIT, posting.amount)
        if posting.credit_account_id == account_id:
            balance = apply_posting(balance, account_type, PostingSide.CREDIT, posting.amount)
    return balance


@dataclass(frozen=True)
class BalanceCheck:
    """Outcome of comparing a stored balance with its recomputation."""

    stored: Decimal
    calculated: Decimal
    difference: Decimal
    is_consistent: bool


def verify_balance(
    stored: Decimal,
    calculated: Decimal,
    tolerance: Decimal = DEFAULT_VERIFICATION_TOLERANCE,
) -> BalanceCheck:
    difference = abs(stored - calculated)
    return BalanceCheck(
        stored=stored,
        calculated=calculated,
        difference=difference,
        is_consistent=difference < tolerance,
    )


@dataclass(frozen=True)
class PostingTotals:
    total_debits: Decimal
    total_credits: Decimal
    posting_count: int


def summarize_postings(postings: Iterable[Posting], account_id: object) -> PostingTotals:
    """Total debits and credits touching one account."""
    debits = ZERO
    credits = ZERO
    count = 0
    for posting in postings:
        if posting.debit_account_id == account_id:
            debits += posting.amount
            count += 1
        if posting.credit_account_id == account_id:
            credits += posting.amount
            count += 1
    return PostingTotals(total_debits=debits, total_credits=credits, posting_count=count)


def subtree_balance(
    account_id: object,
    balances: Mapping[object, Decimal],
    parents: Mapping[object, object | None],
) -> Decimal:
    """
    Balance of an account plus every descendant.

    ``parents`` maps account id to parent id.  Each descendant is counted
    exactly once.
    """
    children: dict[object, list[object]] = {}
    for child_id, parent_id in parents.items():
        if parent_id is not None:
            children.setdefault(parent_id, []).append(child_id)

    total = ZERO
    seen: set[object] = set()
    stack = [account_id]
    while stack:
        node = stack.pop()
        if node in seen:
            continue
        seen.add(node)
        total += balances.get(node, ZERO)
        stack.extend(children.get(node, ()))
    return total
