"""
PeriodService -- fiscal period registry and posting-date validation.

Responsibility:
    Creates, edits and deletes fiscal periods, and answers "is this date
    locked?" for every posting path.  Closing and reopening (which post and
    reverse closing entries) live in ``ledger_services.period_close_service``.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by TransactionService before every write, and by the
    PeriodCloseService for period lookups.

Invariants enforced:
    - No two current periods of one organization have intersecting
      ``[start_date, end_date]`` ranges (inclusive on both ends).
    - Closed period enforcement: ``validate_posting_date()`` rejects a
      date inside a CLOSED period.
    - Only OPEN periods can be edited or deleted.
    - Returns frozen ``FiscalPeriodInfo`` DTOs, never ORM entities.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - ValueError: start_date after end_date.
    - PeriodOverlapError: date range intersects another period.
    - PeriodNotFoundError: missing, deleted, or owned by another organization.
    - PeriodImmutableError: edit/delete of a CLOSED period.
    - ClosedPeriodError: posting dated inside a CLOSED period.

Audit relevance:
    Period versions record who created, edited, closed and reopened them.
    Rejected postings are logged at WARNING level.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import ClosedPeriodCheck, FiscalPeriodInfo
from ledger_kernel.exceptions import (
    ClosedPeriodError,
    PeriodImmutableError,
    PeriodOverlapError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.version_store import VersionStore

logger = get_logger("services.period")


class PeriodService(BaseService[FiscalPeriod]):
    """
    Service for the fiscal period registry of each organization.

    Contract:
        Accepts organization-scoped period ids or dates and returns frozen
        ``FiscalPeriodInfo`` DTOs.  Lifecycle methods flush within the
        caller's transaction.

    Non-goals:
        - Does NOT post or reverse closing entries (PeriodCloseService).
    """

    def create_period(
        self,
        organization_id: UUID,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
    ) -> FiscalPeriodInfo:
        """
        Create a new OPEN fiscal period.

        Raises:
            ValueError: If start_date > end_date.
            PeriodOverlapError: If the range intersects an existing period.
        """
        _validate_range(start_date, end_date)
        self._validate_no_overlap(organization_id, name, start_date, end_date)

        period = self.versions.create(
            FiscalPeriod(
                organization_id=organization_id,
                name=name,
                start_date=start_date,
                end_date=end_date,
                status=PeriodStatus.OPEN.value,
                closing_transaction_ids=[],
            ),
            actor_id,
            reason="Period created",
        )

        logger.info(
            "period_created",
            extra={
                "organization_id": str(organization_id),
                "period_id": str(period.id),
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return FiscalPeriodInfo.from_model(period)

    def _validate_no_overlap(
        self,
        organization_id: UUID,
        new_period_name: str,
        start_date: date,
        end_date: date,
        exclude_period_id: UUID | None = None,
    ) -> None:
        """
        Two ranges overlap if: start1 <= end2 AND start2 <= end1

        Raises:
            PeriodOverlapError: If overlap is detected.
        """
        stmt = (
            select(FiscalPeriod)
            .where(
                VersionStore.current_version_filter(FiscalPeriod, organization_id=organization_id),
                FiscalPeriod.start_date <= end_date,
                FiscalPeriod.end_date >= start_date,
            )
            .order_by(FiscalPeriod.start_date)
        )
        if exclude_period_id is not None:
            stmt = stmt.where(FiscalPeriod.id != exclude_period_id)
        overlapping = self.session.execute(stmt).scalars().first()

        if overlapping is not None:
            raise PeriodOverlapError(
                new_period_name=new_period_name,
                existing_period_name=overlapping.name,
                overlap_start=str(max(start_date, overlapping.start_date)),
                overlap_end=str(min(end_date, overlapping.end_date)),
            )

    def get_period(self, period_id: UUID, organization_id: UUID) -> FiscalPeriodInfo:
        return FiscalPeriodInfo.from_model(
            self.versions.require_current(FiscalPeriod, period_id, organization_id)
        )

    def list_periods(self, organization_id: UUID) -> list[FiscalPeriodInfo]:
        """Current periods, most recent start date first."""
        periods = self.versions.list_current(
            FiscalPeriod,
            order_by=FiscalPeriod.start_date.desc(),
            organization_id=organization_id,
        )
        return [FiscalPeriodInfo.from_model(p) for p in periods]

    def get_current_period(self, organization_id: UUID) -> FiscalPeriodInfo | None:
        """The OPEN period with the latest start date."""
        periods = self.versions.list_current(
            FiscalPeriod,
            order_by=FiscalPeriod.start_date.desc(),
            organization_id=organization_id,
            status=PeriodStatus.OPEN.value,
        )
        return FiscalPeriodInfo.from_model(periods[0]) if periods else None

    def update_period(
        self,
        period_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> FiscalPeriodInfo:
        """
        Rename or re-date an OPEN period.

        Raises:
            PeriodImmutableError: The period is CLOSED.
            ValueError / PeriodOverlapError: The new range is invalid.
        """
        current = self.versions.require_current(FiscalPeriod, period_id, organization_id)
        if current.is_closed:
            raise PeriodImmutableError(current.name, "edit")

        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = name
        if start_date is not None:
            changes["start_date"] = start_date
        if end_date is not None:
            changes["end_date"] = end_date

        new_start = start_date or current.start_date
        new_end = end_date or current.end_date
        _validate_range(new_start, new_end)
        self._validate_no_overlap(
            organization_id,
            name or current.name,
            new_start,
            new_end,
            exclude_period_id=period_id,
        )

        period = self.versions.revise(current, changes, actor_id, reason="Period updated")
        logger.info(
            "period_updated",
            extra={"period_id": str(period_id), "fields": sorted(changes)},
        )
        return FiscalPeriodInfo.from_model(period)

    def delete_period(self, period_id: UUID, organization_id: UUID, actor_id: UUID) -> None:
        """
        Raises:
            PeriodImmutableError: The period is CLOSED.
        """
        current = self.versions.require_current(FiscalPeriod, period_id, organization_id)
        if current.is_closed:
            raise PeriodImmutableError(current.name, "delete")
        self.versions.delete_version(current, actor_id, reason="Period deleted")
        logger.info("period_deleted", extra={"period_id": str(period_id)})

    def is_date_in_closed_period(self, organization_id: UUID, check_date: date) -> ClosedPeriodCheck:
        period = self.session.execute(
            select(FiscalPeriod).where(
                VersionStore.current_version_filter(
                    FiscalPeriod,
                    organization_id=organization_id,
                    status=PeriodStatus.CLOSED.value,
                ),
                FiscalPeriod.start_date <= check_date,
                FiscalPeriod.end_date >= check_date,
            )
        ).scalars().first()
        if period is None:
            return ClosedPeriodCheck(closed=False)
        return ClosedPeriodCheck(closed=True, period_id=period.id, period_name=period.name)

    def validate_posting_date(self, organization_id: UUID, posting_date: date) -> None:
        """
        Raises:
            ClosedPeriodError: The date falls inside a CLOSED period.
        """
        check = self.is_date_in_closed_period(organization_id, posting_date)
        if check.closed:
            logger.warning(
                "period_closed_violation",
                extra={
                    "organization_id": str(organization_id),
                    "period_name": check.period_name,
                    "posting_date": str(posting_date),
                },
            )
            raise ClosedPeriodError(check.period_name, str(posting_date))


def _validate_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ValueError(
            f"start_date ({start_date}) cannot be after end_date ({end_date})"
        )
