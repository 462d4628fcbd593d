"""
Balance Engine tests against the stored account balances.

Verifies:
- post_balances moves both accounts per the sign convention
- reverse_balances is the exact inverse
- Bad amounts and unknown accounts are rejected before any write
- The selector's recomputation agrees with the cache after postings
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import AccountNotFoundError, InvalidAmountError


def _balance(account_service, organization, account) -> Decimal:
    return account_service.get_account(account.id, organization.id).current_balance


class TestPostBalances:
    """Debit one account, credit another, same amount."""

    def test_donation_increases_cash_and_revenue(
        self, balance_engine, account_service, organization, accounts
    ):
        cash, donations = accounts["1010"], accounts["4000"]

        update = balance_engine.post_balances(cash.id, donations.id, Decimal("250.00"), organization.id)

        assert update.new_debit_balance == Decimal("250.00")
        assert update.new_credit_balance == Decimal("250.00")
        assert _balance(account_service, organization, cash) == Decimal("250.00")
        assert _balance(account_service, organization, donations) == Decimal("250.00")

    def test_expense_payment_decreases_cash(
        self, balance_engine, account_service, organization, accounts
    ):
        cash, insurance = accounts["1010"], accounts["5140"]

        balance_engine.post_balances(insurance.id, cash.id, Decimal("80.00"), organization.id)

        assert _balance(account_service, organization, insurance) == Decimal("80.00")
        assert _balance(account_service, organization, cash) == Decimal("-80.00")

    def test_liability_credit_increases_payable(
        self, balance_engine, account_service, organization, accounts
    ):
        payable, fees = accounts["2000"], accounts["5150"]

        balance_engine.post_balances(fees.id, payable.id, Decimal("45.50"), organization.id)

        assert _balance(account_service, organization, payable) == Decimal("45.50")

    def test_posting_is_logged(self, balance_engine, organization, accounts, captured_logs):
        balance_engine.post_balances(accounts["1010"].id, accounts["4000"].id, Decimal("10"), organization.id)

        posted = [r for r in captured_logs() if r["message"] == "balances_posted"]
        assert len(posted) == 1
        assert posted[0]["amount"] == "10"


class TestReverseBalances:
    """Reversal restores the pre-posting state exactly."""

    @pytest.mark.parametrize(
        "debit_code,credit_code,amount",
        [
            ("1010", "4000", Decimal("1000.00")),
            ("5140", "1010", Decimal("0.01")),
            ("1100", "2200", Decimal("12345.67")),
            ("3000", "5000", Decimal("75.25")),
        ],
    )
    def test_round_trip(
        self, balance_engine, account_service, organization, accounts, debit_code, credit_code, amount
    ):
        debit, credit = accounts[debit_code], accounts[credit_code]
        balance_engine.post_balances(debit.id, credit.id, Decimal("40.00"), organization.id)
        before = (
            _balance(account_service, organization, debit),
            _balance(account_service, organization, credit),
        )

        balance_engine.post_balances(debit.id, credit.id, amount, organization.id)
        balance_engine.reverse_balances(debit.id, credit.id, amount, organization.id)

        after = (
            _balance(account_service, organization, debit),
            _balance(account_service, organization, credit),
        )
        assert after == before


class TestRejections:
    """Nothing is written for an invalid posting."""

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount(self, balance_engine, organization, accounts, amount):
        with pytest.raises(InvalidAmountError):
            balance_engine.post_balances(accounts["1010"].id, accounts["4000"].id, amount, organization.id)

    def test_unknown_account(self, balance_engine, account_service, organization, accounts):
        with pytest.raises(AccountNotFoundError):
            balance_engine.post_balances(accounts["1010"].id, uuid4(), Decimal("5"), organization.id)

        assert _balance(account_service, organization, accounts["1010"]) == Decimal("0")

    def test_account_of_other_organization(self, balance_engine, accounts):
        with pytest.raises(AccountNotFoundError):
            balance_engine.post_balances(accounts["1010"].id, accounts["4000"].id, Decimal("5"), uuid4())


class TestCacheMatchesLog:
    """Balances written through postings match a replay of the log."""

    def test_verify_all_after_mixed_activity(
        self, post, accounts, balance_selector, organization, transaction_service, test_actor_id
    ):
        post(accounts, "1010", "4000", Decimal("500.00"), date(2026, 2, 1))
        post(accounts, "5140", "1010", Decimal("120.00"), date(2026, 2, 3))
        voided = post(accounts, "1010", "4100", Decimal("60.00"), date(2026, 2, 4))
        transaction_service.void_transaction(voided.id, organization.id, test_actor_id, "entered twice")

        results = balance_selector.verify_all_balances(organization.id)

        assert results
        assert all(r.is_consistent for r in results)
        cash = next(r for r in results if r.account_code == "1010")
        assert cash.stored_balance == Decimal("380.00")
        assert cash.calculated_balance == Decimal("380.00")
