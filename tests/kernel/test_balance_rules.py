"""
Pure domain rules: double-entry sign convention and bitemporal predicates.

Property-based where the rule is algebraic (post then reverse is the
identity), example-based for the convention table itself.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.balance import (
    PostingSide,
    apply_posting,
    balance_delta,
    is_debit_normal,
    recalculate_balance,
    reverse_posting,
    subtree_balance,
    summarize_postings,
    verify_balance,
)
from ledger_kernel.domain.temporal import (
    MAX_DATE,
    chain_is_contiguous,
    is_current,
    is_valid_at,
    is_visible_at,
    order_chain,
)

ACCOUNT_TYPES = ("ASSET", "LIABILITY", "EQUITY", "REVENUE", "EXPENSE")

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
balances = st.decimals(
    min_value=Decimal("-999999999.99"),
    max_value=Decimal("999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


@dataclass
class _Posting:
    debit_account_id: UUID
    credit_account_id: UUID
    amount: Decimal


@dataclass
class _Version:
    version_id: UUID
    previous_version_id: UUID | None
    valid_from: datetime
    valid_to: datetime
    system_from: datetime
    system_to: datetime
    is_deleted: bool = False


T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _chain(*instants: datetime) -> list[_Version]:
    """Versions written at the given instants; the last one is open-ended."""
    versions: list[_Version] = []
    for i, start in enumerate(instants):
        end = instants[i + 1] if i + 1 < len(instants) else MAX_DATE
        versions.append(
            _Version(
                version_id=uuid4(),
                previous_version_id=versions[-1].version_id if versions else None,
                valid_from=start,
                valid_to=end,
                system_from=start,
                system_to=end,
            )
        )
    return versions


class TestSignConvention:
    """Debit increases ASSET/EXPENSE; credit increases LIABILITY/EQUITY/REVENUE."""

    @pytest.mark.parametrize("account_type", ["ASSET", "EXPENSE"])
    def test_debit_normal_types(self, account_type):
        assert is_debit_normal(account_type)
        assert balance_delta(account_type, PostingSide.DEBIT, Decimal("10")) == Decimal("10")
        assert balance_delta(account_type, PostingSide.CREDIT, Decimal("10")) == Decimal("-10")

    @pytest.mark.parametrize("account_type", ["LIABILITY", "EQUITY", "REVENUE"])
    def test_credit_normal_types(self, account_type):
        assert not is_debit_normal(account_type)
        assert balance_delta(account_type, PostingSide.CREDIT, Decimal("10")) == Decimal("10")
        assert balance_delta(account_type, PostingSide.DEBIT, Decimal("10")) == Decimal("-10")

    def test_lowercase_type_accepted(self):
        assert is_debit_normal("asset")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError, match="Unknown account type"):
            is_debit_normal("CONTRA")


class TestRoundTrip:
    """reverse_posting undoes apply_posting exactly."""

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        balance=balances,
        amount=amounts,
        account_type=st.sampled_from(ACCOUNT_TYPES),
        side=st.sampled_from(list(PostingSide)),
    )
    def test_reverse_after_apply_is_identity(self, balance, amount, account_type, side):
        posted = apply_posting(balance, account_type, side, amount)
        assert reverse_posting(posted, account_type, side, amount) == balance

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        start_debit=balances,
        start_credit=balances,
        amount=amounts,
        debit_type=st.sampled_from(ACCOUNT_TYPES),
        credit_type=st.sampled_from(ACCOUNT_TYPES),
    )
    def test_posting_pair_round_trip(self, start_debit, start_credit, amount, debit_type, credit_type):
        debit = apply_posting(start_debit, debit_type, PostingSide.DEBIT, amount)
        credit = apply_posting(start_credit, credit_type, PostingSide.CREDIT, amount)

        assert reverse_posting(debit, debit_type, PostingSide.DEBIT, amount) == start_debit
        assert reverse_posting(credit, credit_type, PostingSide.CREDIT, amount) == start_credit


class TestRecalculation:
    """Replaying the posting log reproduces the balance."""

    def test_recalculate_from_postings(self):
        cash, revenue, rent = uuid4(), uuid4(), uuid4()
        postings = [
            _Posting(cash, revenue, Decimal("500.00")),
            _Posting(cash, revenue, Decimal("250.00")),
            _Posting(rent, cash, Decimal("100.00")),
        ]

        assert recalculate_balance(postings, cash, "ASSET") == Decimal("650.00")
        assert recalculate_balance(postings, revenue, "REVENUE") == Decimal("750.00")
        assert recalculate_balance(postings, rent, "EXPENSE") == Decimal("100.00")

    def test_summarize_postings_counts_both_sides(self):
        cash, revenue = uuid4(), uuid4()
        postings = [
            _Posting(cash, revenue, Decimal("40")),
            _Posting(revenue, cash, Decimal("15")),
        ]

        totals = summarize_postings(postings, cash)

        assert totals.total_debits == Decimal("40")
        assert totals.total_credits == Decimal("15")
        assert totals.posting_count == 2

    def test_verify_balance_tolerance(self):
        assert verify_balance(Decimal("100.00"), Decimal("100.005")).is_consistent
        assert not verify_balance(Decimal("100.00"), Decimal("100.02")).is_consistent

    def test_subtree_counts_each_descendant_once(self):
        root, child, grandchild, other = uuid4(), uuid4(), uuid4(), uuid4()
        balances_by_id = {
            root: Decimal("1"),
            child: Decimal("10"),
            grandchild: Decimal("100"),
            other: Decimal("1000"),
        }
        parents = {root: None, child: root, grandchild: child, other: None}

        assert subtree_balance(root, balances_by_id, parents) == Decimal("111")
        assert subtree_balance(child, balances_by_id, parents) == Decimal("110")


class TestTemporalPredicates:
    """Half-open intervals and the MAX_DATE sentinel."""

    def test_current_requires_open_ended_and_not_deleted(self):
        (version,) = _chain(T0)
        assert is_current(version)

        version.is_deleted = True
        assert not is_current(version)

    def test_intervals_are_half_open(self):
        first, second = _chain(T0, T0 + timedelta(days=1))

        assert is_valid_at(first, T0)
        assert not is_valid_at(first, T0 + timedelta(days=1))
        assert is_valid_at(second, T0 + timedelta(days=1))
        assert is_visible_at(first, T0 + timedelta(hours=23))
        assert not is_visible_at(second, T0)

    def test_contiguous_chain(self):
        chain = _chain(T0, T0 + timedelta(days=1), T0 + timedelta(days=2))

        assert chain_is_contiguous(list(reversed(chain)))
        assert [v.version_id for v in order_chain(list(reversed(chain)))] == [
            v.version_id for v in chain
        ]

    def test_gap_breaks_contiguity(self):
        first, second = _chain(T0, T0 + timedelta(days=1))
        first.valid_to = T0 + timedelta(hours=12)

        assert not chain_is_contiguous([first, second])

    def test_two_open_ended_versions_break_contiguity(self):
        first, second = _chain(T0, T0 + timedelta(days=1))
        first.system_to = MAX_DATE

        assert not chain_is_contiguous([first, second])

    def test_fork_is_not_a_chain(self):
        first, second = _chain(T0, T0 + timedelta(days=1))
        fork = _Version(
            version_id=uuid4(),
            previous_version_id=first.version_id,
            valid_from=second.valid_from,
            valid_to=MAX_DATE,
            system_from=second.system_from,
            system_to=MAX_DATE,
        )

        assert order_chain([first, second, fork]) is None
        assert not chain_is_contiguous([first, second, fork])
