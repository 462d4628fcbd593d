"""Service layer for donor and vendor contacts."""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import func, or_

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.contact import Contact, ContactRole, ContactType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.contact")


def _role_values(roles: Iterable[ContactRole | str]) -> list[str]:
    return sorted({ContactRole(role).value for role in roles})


class ContactService(BaseService[Contact]):
    def create_contact(
        self,
        organization_id: UUID,
        name: str,
        actor_id: UUID,
        roles: Iterable[ContactRole | str] = (ContactRole.DONOR,),
        contact_type: ContactType | str = ContactType.INDIVIDUAL,
        email: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        notes: str | None = None,
        user_id: UUID | None = None,
    ) -> Contact:
        contact = self.versions.create(
            Contact(
                organization_id=organization_id,
                name=name,
                contact_type=ContactType(contact_type).value,
                roles=_role_values(roles),
                email=email,
                phone=phone,
                address=address,
                notes=notes,
                user_id=user_id,
                is_active=True,
            ),
            actor_id,
            reason="Contact created",
        )
        logger.info(
            "contact_created",
            extra={"organization_id": str(organization_id), "contact_id": str(contact.id)},
        )
        return contact

    def get_contact(self, contact_id: UUID, organization_id: UUID) -> Contact:
        return self.versions.require_current(Contact, contact_id, organization_id)

    def list_contacts(
        self,
        organization_id: UUID,
        role: ContactRole | str | None = None,
        search: str | None = None,
        is_active: bool | None = None,
    ) -> list[Contact]:
        """
        Current contacts ordered by name.

        ``search`` is a case-insensitive substring of name or email.  The
        role filter runs in Python because roles are a JSON array.
        """
        criteria = []
        if is_active is not None:
            criteria.append(Contact.is_active.is_(is_active))
        if search:
            pattern = f"%{search.lower()}%"
            criteria.append(
                or_(func.lower(Contact.name).like(pattern), func.lower(Contact.email).like(pattern))
            )
        contacts = self.versions.list_current(
            Contact, *criteria, order_by=Contact.name, organization_id=organization_id
        )
        if role is not None:
            contacts = [c for c in contacts if c.has_role(ContactRole(role))]
        return contacts

    def update_contact(
        self,
        contact_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        **changes: Any,
    ) -> Contact:
        if "roles" in changes:
            changes["roles"] = _role_values(changes["roles"])
        if "contact_type" in changes:
            changes["contact_type"] = ContactType(changes["contact_type"]).value
        contact = self.versions.update(
            Contact, contact_id, changes, actor_id, reason, organization_id=organization_id
        )
        logger.info(
            "contact_updated",
            extra={"contact_id": str(contact_id), "fields": sorted(changes)},
        )
        return contact

    def delete_contact(
        self,
        contact_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> Contact:
        deleted = self.versions.soft_delete(
            Contact, contact_id, actor_id, reason, organization_id=organization_id
        )
        logger.info("contact_deleted", extra={"contact_id": str(contact_id)})
        return deleted

    def history(self, contact_id: UUID, organization_id: UUID | None = None) -> list[Contact]:
        return self.versions.history(Contact, contact_id, organization_id)
