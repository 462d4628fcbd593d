"""
Fiscal period registry tests.

Verifies:
- Inclusive date ranges never overlap within one organization
- Only OPEN periods can be edited or deleted
- Closed-period lookup and the current-period rule
"""

from datetime import date

import pytest

from ledger_kernel.domain.dtos import PeriodStatus
from ledger_kernel.exceptions import (
    ClosedPeriodError,
    PeriodImmutableError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from ledger_kernel.models.fiscal_period import FiscalPeriod


@pytest.fixture
def january(period_service, organization, test_actor_id):
    return period_service.create_period(
        organization.id, "January 2026", date(2026, 1, 1), date(2026, 1, 31), test_actor_id
    )


def _close(version_store, period_info, organization, actor_id):
    period = version_store.require_current(FiscalPeriod, period_info.id, organization.id)
    version_store.revise(period, {"status": "CLOSED"}, actor_id, reason="locked in test")


class TestCreatePeriod:
    """Date range validation."""

    def test_new_period_is_open(self, january):
        assert january.status == PeriodStatus.OPEN
        assert january.closing_transaction_ids == ()
        assert january.contains_date(date(2026, 1, 31))
        assert not january.contains_date(date(2026, 2, 1))

    def test_inverted_range_rejected(self, period_service, organization, test_actor_id):
        with pytest.raises(ValueError):
            period_service.create_period(
                organization.id, "Backwards", date(2026, 3, 31), date(2026, 3, 1), test_actor_id
            )

    def test_single_day_period_allowed(self, period_service, organization, test_actor_id):
        period = period_service.create_period(
            organization.id, "Audit day", date(2026, 6, 30), date(2026, 6, 30), test_actor_id
        )

        assert period.start_date == period.end_date

    @pytest.mark.parametrize(
        "start,end",
        [
            (date(2026, 1, 31), date(2026, 2, 28)),  # shares the end date
            (date(2025, 12, 1), date(2026, 1, 1)),  # shares the start date
            (date(2026, 1, 10), date(2026, 1, 20)),  # inside
            (date(2025, 12, 1), date(2026, 3, 1)),  # contains
        ],
    )
    def test_overlap_rejected(self, january, period_service, organization, test_actor_id, start, end):
        with pytest.raises(PeriodOverlapError) as exc_info:
            period_service.create_period(organization.id, "Overlapping", start, end, test_actor_id)

        assert exc_info.value.existing_period_name == "January 2026"

    def test_adjacent_period_allowed(self, january, period_service, organization, test_actor_id):
        february = period_service.create_period(
            organization.id, "February 2026", date(2026, 2, 1), date(2026, 2, 28), test_actor_id
        )

        assert [p.name for p in period_service.list_periods(organization.id)] == [
            "February 2026",
            "January 2026",
        ]
        assert february.status == PeriodStatus.OPEN

    def test_other_organization_may_overlap(
        self, january, period_service, organization_service, test_actor_id
    ):
        other = organization_service.create_organization("Other", "other-org", test_actor_id)

        period = period_service.create_period(
            other.id, "January 2026", date(2026, 1, 1), date(2026, 1, 31), test_actor_id
        )

        assert period.organization_id == other.id


class TestUpdateAndDelete:
    """Closed periods are immutable."""

    def test_rename_open_period(self, january, period_service, organization, test_actor_id):
        renamed = period_service.update_period(january.id, organization.id, test_actor_id, name="Jan 26")

        assert renamed.name == "Jan 26"
        assert renamed.version_id != january.version_id

    def test_extend_into_neighbour_rejected(self, january, period_service, organization, test_actor_id):
        period_service.create_period(
            organization.id, "February 2026", date(2026, 2, 1), date(2026, 2, 28), test_actor_id
        )

        with pytest.raises(PeriodOverlapError):
            period_service.update_period(
                january.id, organization.id, test_actor_id, end_date=date(2026, 2, 3)
            )

    def test_edit_closed_rejected(self, january, period_service, version_store, organization, test_actor_id):
        _close(version_store, january, organization, test_actor_id)

        with pytest.raises(PeriodImmutableError) as exc_info:
            period_service.update_period(january.id, organization.id, test_actor_id, name="Renamed")

        assert exc_info.value.operation == "edit"

    def test_delete_closed_rejected(self, january, period_service, version_store, organization, test_actor_id):
        _close(version_store, january, organization, test_actor_id)

        with pytest.raises(PeriodImmutableError):
            period_service.delete_period(january.id, organization.id, test_actor_id)

    def test_delete_open_period(self, january, period_service, organization, test_actor_id):
        period_service.delete_period(january.id, organization.id, test_actor_id)

        with pytest.raises(PeriodNotFoundError):
            period_service.get_period(january.id, organization.id)
        # The dates are free again
        period_service.create_period(
            organization.id, "January again", date(2026, 1, 1), date(2026, 1, 31), test_actor_id
        )


class TestClosedPeriodLookup:
    """Posting-date checks."""

    def test_open_period_does_not_lock(self, january, period_service, organization):
        assert period_service.is_date_in_closed_period(organization.id, date(2026, 1, 15)).closed is False
        period_service.validate_posting_date(organization.id, date(2026, 1, 15))

    def test_closed_period_locks_inclusive_range(
        self, january, period_service, version_store, organization, test_actor_id
    ):
        _close(version_store, january, organization, test_actor_id)

        for locked in (date(2026, 1, 1), date(2026, 1, 31)):
            check = period_service.is_date_in_closed_period(organization.id, locked)
            assert check.closed is True
            assert check.period_id == january.id
        assert period_service.is_date_in_closed_period(organization.id, date(2026, 2, 1)).closed is False

        with pytest.raises(ClosedPeriodError):
            period_service.validate_posting_date(organization.id, date(2026, 1, 31))

    def test_current_period_is_latest_open(
        self, january, period_service, version_store, organization, test_actor_id
    ):
        february = period_service.create_period(
            organization.id, "February 2026", date(2026, 2, 1), date(2026, 2, 28), test_actor_id
        )
        assert period_service.get_current_period(organization.id).id == february.id

        _close(version_store, february, organization, test_actor_id)

        assert period_service.get_current_period(organization.id).id == january.id

    def test_no_periods(self, period_service, organization):
        assert period_service.get_current_period(organization.id) is None
        assert period_service.list_periods(organization.id) == []
