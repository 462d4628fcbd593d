"""
Statement matcher engine tests.

Pure: no database.  Lines carry signed bank amounts, candidates positive
ledger amounts.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ledger_engines.matching import (
    LedgerCandidate,
    MatchKind,
    MatchRules,
    StatementLineCandidate,
    StatementMatcher,
    amounts_match,
    description_similarity,
)

D = date(2026, 3, 10)


def _line(amount, on=D, description="CHECK 1234", reference=None, line_id=None):
    return StatementLineCandidate(
        line_id=line_id or uuid4(),
        transaction_date=on,
        amount=Decimal(amount),
        description=description,
        reference_number=reference,
    )


def _txn(amount, on=D, description="Office supplies", reference=None, transaction_id=None):
    return LedgerCandidate(
        transaction_id=transaction_id or uuid4(),
        transaction_date=on,
        amount=Decimal(amount),
        description=description,
        reference_number=reference,
    )


@pytest.fixture
def matcher():
    return StatementMatcher()


class TestExactPass:
    """Amount, same day and equal references."""

    def test_exact_match(self, matcher):
        line = _line("-150.00", reference="CHK1234")
        txn = _txn("150.00", reference="CHK1234")

        plan = matcher.plan([line], [txn])

        assert len(plan.proposals) == 1
        proposal = plan.proposals[0]
        assert proposal.kind == MatchKind.EXACT
        assert proposal.kind.value == "AUTO_EXACT"
        assert proposal.transaction_id == txn.transaction_id
        assert proposal.amount == Decimal("150.00")
        assert plan.unmatched_line_ids == ()

    def test_references_are_trimmed(self, matcher):
        plan = matcher.plan([_line("20", reference=" 77 ")], [_txn("20", reference="77")])

        assert plan.exact_count == 1

    def test_missing_reference_falls_to_fuzzy(self, matcher):
        plan = matcher.plan([_line("20", reference="77")], [_txn("20")])

        assert plan.exact_count == 0
        assert plan.fuzzy_count == 1

    def test_exact_beats_fuzzy_for_the_same_transaction(self, matcher):
        txn = _txn("50.00", reference="R1")
        fuzzy_line = _line("50.00", on=D - timedelta(days=1))
        exact_line = _line("50.00", reference="R1")

        plan = matcher.plan([fuzzy_line, exact_line], [txn])

        assert [p.line_id for p in plan.proposals] == [exact_line.line_id]
        assert plan.unmatched_line_ids == (fuzzy_line.line_id,)


class TestFuzzyPass:
    """Amount within tolerance and dates a few days apart."""

    def test_two_day_gap(self, matcher):
        line = _line("-75.50", on=D)
        txn = _txn("75.50", on=D - timedelta(days=2))

        plan = matcher.plan([line], [txn])

        assert plan.proposals[0].kind == MatchKind.FUZZY
        assert plan.proposals[0].date_delta_days == 2
        assert "2 day(s)" in plan.proposals[0].reason

    def test_outside_date_tolerance(self, matcher):
        plan = matcher.plan([_line("10", on=D)], [_txn("10", on=D + timedelta(days=4))])

        assert plan.proposals == ()

    def test_custom_tolerance(self, matcher):
        rules = MatchRules(date_tolerance_days=7)

        plan = matcher.plan([_line("10", on=D)], [_txn("10", on=D + timedelta(days=6))], rules)

        assert plan.fuzzy_count == 1

    def test_amount_mismatch(self, matcher):
        plan = matcher.plan([_line("-150.00")], [_txn("200.00")])

        assert plan.proposals == ()
        assert len(plan.unmatched_line_ids) == 1
        assert plan.total == 1


class TestTieBreaks:
    """Closest date, then description, then id."""

    def test_closest_date_wins(self, matcher):
        far = _txn("30", on=D - timedelta(days=3))
        near = _txn("30", on=D - timedelta(days=1))

        plan = matcher.plan([_line("30")], [far, near])

        assert plan.proposals[0].transaction_id == near.transaction_id

    def test_description_breaks_date_tie(self, matcher):
        unrelated = _txn("30", on=D + timedelta(days=1), description="Zzz")
        similar = _txn("30", on=D - timedelta(days=1), description="Check 1234")

        plan = matcher.plan([_line("30", description="CHECK 1234")], [unrelated, similar])

        assert plan.proposals[0].transaction_id == similar.transaction_id

    def test_id_breaks_full_tie(self, matcher):
        low = _txn("30", description="same", transaction_id=UUID(int=1))
        high = _txn("30", description="same", transaction_id=UUID(int=2))

        plan = matcher.plan([_line("30", description="same")], [high, low])

        assert plan.proposals[0].transaction_id == low.transaction_id

    def test_earlier_line_claims_first(self, matcher):
        txn = _txn("40", on=D)
        early = _line("40", on=D - timedelta(days=1))
        late = _line("40", on=D)

        plan = matcher.plan([late, early], [txn])

        assert plan.proposals[0].line_id == early.line_id
        assert plan.unmatched_line_ids == (late.line_id,)


class TestNoDoubleClaim:
    """A transaction is proposed for at most one line."""

    def test_two_lines_one_transaction(self, matcher):
        txn = _txn("25")

        plan = matcher.plan([_line("25"), _line("-25")], [txn])

        assert len(plan.proposals) == 1

    @settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        line_specs=st.lists(
            st.tuples(st.integers(min_value=1, max_value=5), st.integers(min_value=-4, max_value=4)),
            max_size=8,
        ),
        txn_specs=st.lists(
            st.tuples(st.integers(min_value=1, max_value=5), st.integers(min_value=-4, max_value=4)),
            max_size=8,
        ),
    )
    def test_claims_are_unique(self, line_specs, txn_specs):
        lines = [_line(str(a), on=D + timedelta(days=d)) for a, d in line_specs]
        txns = [_txn(str(a), on=D + timedelta(days=d)) for a, d in txn_specs]

        plan = StatementMatcher().plan(lines, txns)

        claimed = [p.transaction_id for p in plan.proposals]
        assert len(claimed) == len(set(claimed))
        assert plan.total == len(lines)
        for proposal in plan.proposals:
            assert proposal.date_delta_days <= 3


class TestHelpers:
    """Rule validation and comparison helpers."""

    @pytest.mark.parametrize(
        "kwargs",
        [{"date_tolerance_days": -1}, {"amount_tolerance": Decimal("0")}],
    )
    def test_invalid_rules(self, kwargs):
        with pytest.raises(ValueError):
            MatchRules(**kwargs)

    def test_amounts_compare_magnitudes(self):
        assert amounts_match(Decimal("-10.00"), Decimal("10.00"))
        assert amounts_match(Decimal("10.004"), Decimal("10.00"))
        assert not amounts_match(Decimal("10.01"), Decimal("10.00"))

    def test_description_similarity(self):
        assert description_similarity("Check #1234", "check 1234") == Decimal("1")
        assert description_similarity("Deposit", "ATM deposit downtown") == Decimal("0.8")
        assert description_similarity("", "") == Decimal("1")
        assert Decimal("0") <= description_similarity("abc", "xyz") < Decimal("0.5")
