"""
Service layer for Chart of Accounts operations.

Accounts are versioned like every other ledger record, with one exception:
``current_balance`` is a cache written in place by the BalanceEngine.  This
service refuses to touch it, so an edit can never overwrite a posting.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select

from ledger_kernel.domain.chart_templates import get_template
from ledger_kernel.domain.dtos import AccountNode
from ledger_kernel.exceptions import DuplicateCodeError, InvalidStateError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.version_store import VersionStore

logger = get_logger("services.account")


class AccountService(BaseService[Account]):
    """
    Service for managing the chart of accounts.

    All reads are scoped to an organization; an account owned by another
    organization is reported as not found.
    """

    def create_account(
        self,
        organization_id: UUID,
        code: str,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        parent_account_id: UUID | None = None,
        description: str | None = None,
        is_active: bool = True,
    ) -> Account:
        """
        Create an account with a zero balance.

        Raises:
            ValueError: Unknown account type.
            DuplicateCodeError: Code already used by a current account.
            AccountNotFoundError: Parent missing or in another organization.
        """
        account_type = AccountType(account_type)
        if not self.is_code_available(organization_id, code):
            raise DuplicateCodeError("code", code)
        if parent_account_id is not None:
            self.versions.require_current(Account, parent_account_id, organization_id)

        account = self.versions.create(
            Account(
                organization_id=organization_id,
                code=code,
                name=name,
                account_type=account_type.value,
                parent_account_id=parent_account_id,
                description=description,
                current_balance=Decimal("0"),
                is_active=is_active,
            ),
            actor_id,
            reason="Account created",
        )
        logger.info(
            "account_created",
            extra={
                "organization_id": str(organization_id),
                "account_id": str(account.id),
                "code": code,
                "account_type": account_type.value,
            },
        )
        return account

    def get_account(self, account_id: UUID, organization_id: UUID) -> Account:
        return self.versions.require_current(Account, account_id, organization_id)

    def list_accounts(self, organization_id: UUID) -> list[Account]:
        return self.versions.list_current(
            Account, order_by=Account.code, organization_id=organization_id
        )

    def list_active_accounts(self, organization_id: UUID) -> list[Account]:
        return self.versions.list_current(
            Account,
            Account.is_active.is_(True),
            order_by=Account.code,
            organization_id=organization_id,
        )

    def list_by_type(
        self,
        organization_id: UUID,
        account_type: AccountType | str,
    ) -> list[Account]:
        return self.versions.list_current(
            Account,
            order_by=Account.code,
            organization_id=organization_id,
            account_type=AccountType(account_type).value,
        )

    def update_account(
        self,
        account_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        **changes: Any,
    ) -> Account:
        """
        Write a new account version.

        Raises:
            ValueError: ``current_balance`` in changes, an unknown field,
                or a parent that would create a cycle.
            DuplicateCodeError: New code already in use.
            InvalidStateError: Type change on an account with a balance.
        """
        if "current_balance" in changes:
            raise ValueError("current_balance is maintained by the BalanceEngine")

        current = self.versions.require_current(Account, account_id, organization_id)

        code = changes.get("code")
        if code is not None and code != current.code:
            if not self.is_code_available(organization_id, code, exclude_account_id=account_id):
                raise DuplicateCodeError("code", code)
        if "account_type" in changes:
            changes["account_type"] = AccountType(changes["account_type"]).value
            # The cached balance is signed by the old type's normal side
            if changes["account_type"] != current.account_type and current.current_balance != 0:
                raise InvalidStateError(
                    f"Account {current.code} has balance {current.current_balance}; "
                    "its type cannot change until the balance is zero"
                )
        if changes.get("parent_account_id") is not None:
            self._check_parent(account_id, changes["parent_account_id"], organization_id)

        account = self.versions.revise(current, changes, actor_id, reason)
        logger.info(
            "account_updated",
            extra={"account_id": str(account_id), "fields": sorted(changes)},
        )
        return account

    def toggle_active(self, account_id: UUID, organization_id: UUID, actor_id: UUID) -> Account:
        current = self.versions.require_current(Account, account_id, organization_id)
        return self.versions.revise(
            current,
            {"is_active": not current.is_active},
            actor_id,
            reason="Deactivated" if current.is_active else "Activated",
        )

    def delete_account(
        self,
        account_id: UUID,
        organization_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> Account:
        """
        Deactivate and soft-delete an account.

        Raises:
            InvalidStateError: The account still carries a balance.
        """
        current = self.versions.require_current(Account, account_id, organization_id)
        if current.current_balance != 0:
            raise InvalidStateError(
                f"Account {current.code} has balance {current.current_balance}; "
                "move it to another account before deleting"
            )
        deleted = self.versions.delete_version(
            current, actor_id, reason, changes={"is_active": False}
        )
        logger.info("account_deleted", extra={"account_id": str(account_id)})
        return deleted

    def history(self, account_id: UUID, organization_id: UUID | None = None) -> list[Account]:
        return self.versions.history(Account, account_id, organization_id)

    def as_of(self, account_id: UUID, as_of: datetime, organization_id: UUID | None = None) -> Account | None:
        return self.versions.find_as_of(Account, account_id, as_of, organization_id)

    def is_code_available(
        self,
        organization_id: UUID,
        code: str,
        exclude_account_id: UUID | None = None,
    ) -> bool:
        stmt = select(Account.id).where(
            VersionStore.current_version_filter(Account, organization_id=organization_id, code=code)
        )
        if exclude_account_id is not None:
            stmt = stmt.where(Account.id != exclude_account_id)
        return self.session.execute(stmt).first() is None

    def hierarchy(self, organization_id: UUID) -> list[AccountNode]:
        """
        Chart of accounts as a forest ordered by code.

        An account whose parent is not current becomes a root.
        """
        accounts = self.list_accounts(organization_id)
        by_id = {account.id: account for account in accounts}
        children: dict[UUID | None, list[Account]] = {}
        for account in accounts:
            parent = account.parent_account_id if account.parent_account_id in by_id else None
            children.setdefault(parent, []).append(account)

        def build(account: Account) -> AccountNode:
            return AccountNode(
                account_id=account.id,
                code=account.code,
                name=account.name,
                account_type=account.account_type,
                current_balance=account.current_balance,
                is_active=account.is_active,
                children=tuple(build(child) for child in children.get(account.id, [])),
            )

        return [build(root) for root in children.get(None, [])]

    def seed_chart(
        self,
        organization_id: UUID,
        actor_id: UUID,
        template: str = "nonprofit-standard",
    ) -> list[Account]:
        """
        Create every account of a chart template.

        Raises:
            ValueError: Unknown template.
            InvalidStateError: The organization already has accounts.
        """
        rows = get_template(template)
        existing = self.session.execute(
            select(func.count()).select_from(Account).where(
                VersionStore.current_version_filter(Account, organization_id=organization_id)
            )
        ).scalar_one()
        if existing:
            raise InvalidStateError(
                "A chart template can only be applied to an empty chart of accounts"
            )

        now = self.clock.now()
        ids_by_code: dict[str, UUID] = {}
        created: list[Account] = []
        for row in rows:
            account = Account(
                id=uuid4(),
                organization_id=organization_id,
                code=row.code,
                name=row.name,
                account_type=row.account_type,
                parent_account_id=ids_by_code.get(row.parent_code) if row.parent_code else None,
                description=row.description,
                current_balance=Decimal("0"),
                is_active=True,
            )
            ids_by_code[row.code] = account.id
            created.append(
                self.versions.create(account, actor_id, reason=f"Seeded from {template}", as_of=now)
            )

        logger.info(
            "chart_seeded",
            extra={
                "organization_id": str(organization_id),
                "template": template,
                "account_count": len(created),
            },
        )
        return created

    def _check_parent(self, account_id: UUID, parent_id: UUID, organization_id: UUID) -> None:
        if parent_id == account_id:
            raise ValueError("An account cannot be its own parent")
        parent = self.versions.require_current(Account, parent_id, organization_id)
        seen = {account_id}
        while parent is not None and parent.parent_account_id is not None:
            if parent.parent_account_id in seen:
                raise ValueError("Parent assignment would create a cycle")
            seen.add(parent.id)
            parent = self.versions.get_current(Account, parent.parent_account_id, organization_id)
