"""Service layer for organization memberships (users and their roles)."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import DuplicateCodeError, MembershipNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.membership import MemberRole, Membership
from ledger_kernel.services.base import BaseService

logger = get_logger("services.membership")


class MembershipService(BaseService[Membership]):
    """
    A user holds at most one current membership per organization.

    Lookups are by (organization_id, user_id); the membership's own entity
    id stays stable across role changes.
    """

    def add_member(
        self,
        organization_id: UUID,
        user_id: UUID,
        actor_id: UUID,
        role: MemberRole | str = MemberRole.DONOR,
        anonymous_donor: bool = False,
        show_in_highlights: bool = True,
    ) -> Membership:
        """
        Raises:
            DuplicateCodeError: The user is already a member.
        """
        if self.find_membership(organization_id, user_id) is not None:
            raise DuplicateCodeError("membership", str(user_id))

        membership = self.versions.create(
            Membership(
                organization_id=organization_id,
                user_id=user_id,
                role=MemberRole(role).value,
                anonymous_donor=anonymous_donor,
                show_in_highlights=show_in_highlights,
            ),
            actor_id,
            reason="Member added",
        )
        logger.info(
            "member_added",
            extra={
                "organization_id": str(organization_id),
                "user_id": str(user_id),
                "role": membership.role,
            },
        )
        return membership

    def find_membership(self, organization_id: UUID, user_id: UUID) -> Membership | None:
        found = self.versions.list_current(
            Membership, organization_id=organization_id, user_id=user_id
        )
        return found[0] if found else None

    def get_membership(self, organization_id: UUID, user_id: UUID) -> Membership:
        membership = self.find_membership(organization_id, user_id)
        if membership is None:
            raise MembershipNotFoundError(f"{organization_id}/{user_id}")
        return membership

    def list_members(
        self,
        organization_id: UUID,
        role: MemberRole | str | None = None,
    ) -> list[Membership]:
        filters: dict[str, Any] = {"organization_id": organization_id}
        if role is not None:
            filters["role"] = MemberRole(role).value
        return self.versions.list_current(Membership, order_by=Membership.system_from, **filters)

    def has_role(
        self,
        organization_id: UUID,
        user_id: UUID,
        *roles: MemberRole | str,
    ) -> bool:
        membership = self.find_membership(organization_id, user_id)
        if membership is None:
            return False
        return membership.role in {MemberRole(role).value for role in roles}

    def update_membership(
        self,
        organization_id: UUID,
        user_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        **changes: Any,
    ) -> Membership:
        if "role" in changes:
            changes["role"] = MemberRole(changes["role"]).value
        current = self.get_membership(organization_id, user_id)
        membership = self.versions.revise(current, changes, actor_id, reason)
        logger.info(
            "membership_updated",
            extra={"user_id": str(user_id), "fields": sorted(changes)},
        )
        return membership

    def remove_member(
        self,
        organization_id: UUID,
        user_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> Membership:
        current = self.get_membership(organization_id, user_id)
        removed = self.versions.delete_version(current, actor_id, reason)
        logger.info(
            "member_removed",
            extra={"organization_id": str(organization_id), "user_id": str(user_id)},
        )
        return removed

    def history(self, organization_id: UUID, user_id: UUID) -> list[Membership]:
        """Version chain of the user's latest membership, removals included."""
        entity_id = self.session.execute(
            select(Membership.id)
            .where(Membership.organization_id == organization_id, Membership.user_id == user_id)
            .order_by(Membership.system_from.desc())
            .limit(1)
        ).scalar_one_or_none()
        if entity_id is None:
            raise MembershipNotFoundError(f"{organization_id}/{user_id}")
        return self.versions.history(Membership, entity_id, organization_id)
