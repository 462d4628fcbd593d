"""
Closing engine tests.

Revenue is credit-normal (positive balance = income earned); expense is
debit-normal.  The engine turns each non-zero balance into a posting
against the fund balance account.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.closing import ClosingAccountBalance, ClosingEngine

FUND = uuid4()


def _account(code, account_type, balance, is_active=True):
    return ClosingAccountBalance(
        account_id=uuid4(),
        code=code,
        name=f"Account {code}",
        account_type=account_type,
        balance=Decimal(balance),
        is_active=is_active,
    )


class TestClosingEntries:
    """Direction and amount of each entry."""

    def test_revenue_and_expense(self):
        revenue = _account("4000", "REVENUE", "1000.00")
        expense = _account("5000", "EXPENSE", "400.00")

        result = ClosingEngine().compute([expense, revenue], FUND)

        assert [e.account_code for e in result.entries] == ["4000", "5000"]
        rev_entry, exp_entry = result.entries
        assert (rev_entry.debit_account_id, rev_entry.credit_account_id) == (revenue.account_id, FUND)
        assert (exp_entry.debit_account_id, exp_entry.credit_account_id) == (FUND, expense.account_id)
        assert rev_entry.amount == Decimal("1000.00")
        assert exp_entry.amount == Decimal("400.00")
        assert result.net_surplus_or_deficit == Decimal("600.00")

    def test_negative_expense_balance(self):
        revenue = _account("4000", "REVENUE", "1000")
        refunds = _account("5000", "EXPENSE", "-200")

        result = ClosingEngine().compute([revenue, refunds], FUND)

        assert len(result.entries) == 2
        assert result.entries[1].amount == Decimal("200")
        assert result.total_expenses == Decimal("-200")
        assert result.net_surplus_or_deficit == Decimal("1200")

    def test_zero_and_inactive_skipped(self):
        accounts = [
            _account("4000", "REVENUE", "0"),
            _account("4100", "REVENUE", "50", is_active=False),
            _account("5000", "EXPENSE", "10"),
        ]

        result = ClosingEngine().compute(accounts, FUND)

        assert [e.account_code for e in result.entries] == ["5000"]
        assert result.total_revenue == Decimal("0")

    def test_nothing_to_close(self):
        result = ClosingEngine().compute([_account("4000", "REVENUE", "0")], FUND)

        assert result.is_empty

    @pytest.mark.parametrize("account_type", ["ASSET", "LIABILITY", "EQUITY"])
    def test_other_types_rejected(self, account_type):
        with pytest.raises(ValueError, match="only REVENUE and EXPENSE"):
            ClosingEngine().compute([_account("1010", account_type, "5")], FUND)


class TestClosingTrace:
    """Invocations are traced with a fingerprint of the inputs."""

    def test_trace_emitted(self, captured_logs):
        accounts = [_account("4000", "REVENUE", "10")]

        ClosingEngine().compute(accounts, FUND)

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "closing_entries"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_same_inputs_same_fingerprint(self, captured_logs):
        accounts = [_account("4000", "REVENUE", "10")]

        ClosingEngine().compute(accounts, FUND)
        ClosingEngine().compute(accounts=accounts, fund_balance_account_id=FUND)

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
