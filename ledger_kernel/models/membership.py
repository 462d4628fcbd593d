"""
Module: ledger_kernel.models.membership
Responsibility: ORM persistence for a user's membership in an organization
    and the role it grants.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import UUIDString, VersionedBase


class MemberRole(str, Enum):
    PLATFORM_ADMIN = "PLATFORM_ADMIN"
    ORG_ADMIN = "ORG_ADMIN"
    DONOR = "DONOR"
    PUBLIC = "PUBLIC"


class Membership(VersionedBase):
    __tablename__ = "organization_users"

    __table_args__ = (
        Index("idx_membership_org_user", "organization_id", "user_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    role: Mapped[MemberRole] = mapped_column(
        String(20),
        nullable=False,
        default=MemberRole.DONOR.value,
    )

    anonymous_donor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    show_in_highlights: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Membership user={self.user_id} org={self.organization_id} role={self.role}>"
