"""
Module: ledger_kernel.models.organization
Responsibility: ORM persistence for tenant organizations.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only versions (VersionedBase); slug unique among current
      organizations (enforced by OrganizationService).
    - fund_balance_account_id names the EQUITY account that absorbs closing
      entries.  Missing at close time -> ConfigurationError.

Audit relevance:
    Pointing the fund-balance account elsewhere changes where future closes
    post, so every change is a new, attributable version.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import UUIDString, VersionedBase


class OrganizationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class Organization(VersionedBase):
    """A tenant.  Every ledger record is scoped to exactly one organization."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    slug: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[OrganizationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=OrganizationStatus.ACTIVE.value,
    )

    fund_balance_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Organization {self.slug}: {self.name}>"
