"""
Service layer for Organization operations.

Organizations are the tenants; every other record is scoped to one.  All
edits go through the VersionStore, so an organization's settings history
(including where closing entries post) is fully reconstructable.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import ConfigurationError, DuplicateCodeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.membership import MemberRole, Membership
from ledger_kernel.models.organization import Organization, OrganizationStatus
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.version_store import VersionStore

logger = get_logger("services.organization")


class OrganizationService(BaseService[Organization]):
    """
    Service for managing organizations.

    Creating an organization also makes its creator an ORG_ADMIN member,
    in the same unit of work.
    """

    def create_organization(
        self,
        name: str,
        slug: str,
        actor_id: UUID,
        description: str | None = None,
    ) -> Organization:
        """
        Create an organization and its founding ORG_ADMIN membership.

        Raises:
            DuplicateCodeError: If the slug is taken by a current organization.
        """
        if not self.is_slug_available(slug):
            raise DuplicateCodeError("slug", slug)

        now = self.clock.now()
        organization = self.versions.create(
            Organization(
                name=name,
                slug=slug,
                description=description,
                status=OrganizationStatus.ACTIVE.value,
            ),
            actor_id,
            reason="Organization created",
            as_of=now,
        )
        self.versions.create(
            Membership(
                organization_id=organization.id,
                user_id=actor_id,
                role=MemberRole.ORG_ADMIN.value,
            ),
            actor_id,
            reason="Founding administrator",
            as_of=now,
        )

        logger.info(
            "organization_created",
            extra={"organization_id": str(organization.id), "slug": slug},
        )
        return organization

    def get_organization(self, organization_id: UUID) -> Organization:
        return self.versions.require_current(Organization, organization_id)

    def find_by_slug(self, slug: str) -> Organization | None:
        return self.session.execute(
            select(Organization).where(
                VersionStore.current_version_filter(Organization, slug=slug)
            )
        ).scalar_one_or_none()

    def list_organizations(self) -> list[Organization]:
        return self.versions.list_current(Organization, order_by=Organization.name)

    def update_organization(
        self,
        organization_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        **changes: Any,
    ) -> Organization:
        """
        Write a new version with ``changes`` applied.

        Raises:
            OrganizationNotFoundError: No current version.
            DuplicateCodeError: A new slug is already in use.
            ValueError: Unknown field in ``changes``.
        """
        slug = changes.get("slug")
        if slug is not None and not self.is_slug_available(slug, exclude_id=organization_id):
            raise DuplicateCodeError("slug", slug)

        organization = self.versions.update(
            Organization, organization_id, changes, actor_id, reason
        )
        logger.info(
            "organization_updated",
            extra={"organization_id": str(organization_id), "fields": sorted(changes)},
        )
        return organization

    def set_fund_balance_account(
        self,
        organization_id: UUID,
        account_id: UUID,
        actor_id: UUID,
    ) -> Organization:
        """
        Designate the EQUITY account that absorbs closing entries.

        Raises:
            AccountNotFoundError: Account missing or owned by another organization.
            ConfigurationError: Account is not an EQUITY account.
        """
        account = self.versions.require_current(Account, account_id, organization_id)
        if account.account_type != AccountType.EQUITY:
            raise ConfigurationError(
                str(organization_id),
                "fund_balance_account_id",
                f"account {account.code} is {account.account_type}, expected EQUITY",
            )
        return self.update_organization(
            organization_id,
            actor_id,
            reason="Fund balance account set",
            fund_balance_account_id=account_id,
        )

    def delete_organization(
        self,
        organization_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> Organization:
        deleted = self.versions.soft_delete(Organization, organization_id, actor_id, reason)
        logger.info("organization_deleted", extra={"organization_id": str(organization_id)})
        return deleted

    def history(self, organization_id: UUID) -> list[Organization]:
        return self.versions.history(Organization, organization_id)

    def as_of(self, organization_id: UUID, as_of: datetime) -> Organization | None:
        return self.versions.find_as_of(Organization, organization_id, as_of)

    def is_slug_available(self, slug: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(Organization.id).where(
            VersionStore.current_version_filter(Organization, slug=slug)
        )
        if exclude_id is not None:
            stmt = stmt.where(Organization.id != exclude_id)
        return self.session.execute(stmt).first() is None
