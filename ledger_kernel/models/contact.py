"""
Module: ledger_kernel.models.contact
Responsibility: ORM persistence for donors and vendors an organization
    transacts with.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import UUIDString, VersionedBase


class ContactType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    ORGANIZATION = "ORGANIZATION"


class ContactRole(str, Enum):
    DONOR = "DONOR"
    VENDOR = "VENDOR"


class Contact(VersionedBase):
    __tablename__ = "contacts"

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    contact_type: Mapped[ContactType] = mapped_column(
        String(20),
        nullable=False,
        default=ContactType.INDIVIDUAL.value,
    )

    # ContactRole values, stored as a JSON array
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Platform user linked to this contact, if any
    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Contact {self.name}>"

    def has_role(self, role: ContactRole | str) -> bool:
        value = role.value if isinstance(role, ContactRole) else role
        return value in (self.roles or [])
