"""
Module: ledger_kernel.models.fiscal_period
Responsibility: ORM persistence for fiscal periods and their close state.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/dtos.py (the PeriodStatus enum).

Invariants enforced:
    - No two current periods of one organization have intersecting
      [start_date, end_date] ranges (PeriodService).
    - status moves OPEN -> CLOSED -> OPEN only (PeriodCloseService).
    - closing_transaction_ids lists exactly the CLOSING transactions posted
      by the close that produced the current CLOSED version; it is emptied
      on reopen.

Failure modes:
    - ClosedPeriodError when a posting is dated inside a CLOSED period.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import JSON, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import UUIDString, VersionedBase
from ledger_kernel.domain.dtos import PeriodStatus


class FiscalPeriod(VersionedBase):
    __tablename__ = "fiscal_periods"

    __table_args__ = (
        Index("idx_period_org_dates", "organization_id", "start_date", "end_date"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PeriodStatus.OPEN.value,
    )

    # Entity ids (as strings) of the CLOSING transactions of the last close
    closing_transaction_ids: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reopened_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reopened_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.name} ({self.start_date} to {self.end_date}) {self.status}>"

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == PeriodStatus.CLOSED
