"""
VersionStore -- append-only bitemporal versioning for every ledger entity.

Responsibility:
    Create, revise, soft-delete and restore versioned records without ever
    updating business content in place, and render the "current", "as of"
    and "system as of" predicates as SQL for every read path.

Architecture position:
    Kernel > Services -- imperative shell.  Used by every entity service,
    the Balance Engine's callers, the Fiscal Period Closer and the
    Reconciliation Matcher.  The pure mirrors of the SQL predicates live in
    ``ledger_kernel.domain.temporal``.

Invariants enforced:
    - Exactly one version per entity id is open-ended in system time and
      not deleted (the current version).  There is no head pointer.
    - A superseded version's valid_to and system_to equal the successor's
      valid_from and system_from (one ``as_of`` instant per revision).
    - Optimistic concurrency: closing a version is a conditional UPDATE
      ``WHERE version_id = :v AND system_to = MAX_DATE``.  Zero affected
      rows means another writer superseded it first.

Failure modes:
    - NotFoundError subclass when no current version exists (or it belongs
      to another organization).
    - ConcurrentModificationError when the close race is lost.
    - ValueError when ``changes`` names an unknown or protected column.

Audit relevance:
    Every version carries changed_by / change_reason; deletes carry
    deleted_at / deleted_by.  The whole history of an entity is
    reconstructable from its chain.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import and_, inspect, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from ledger_kernel.db.base import VersionedBase
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.temporal import MAX_DATE, order_chain
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConcurrentModificationError,
    ContactNotFoundError,
    EntityNotDeletedError,
    MembershipNotFoundError,
    NotFoundError,
    OrganizationNotFoundError,
    PeriodNotFoundError,
    TransactionNotFoundError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.version_store")

V = TypeVar("V", bound=VersionedBase)

# Columns a caller may never set through ``changes``
PROTECTED_COLUMNS = frozenset({
    "version_id",
    "id",
    "previous_version_id",
    "valid_from",
    "valid_to",
    "system_from",
    "system_to",
    "changed_by",
    "change_reason",
})

_NOT_FOUND_ERRORS: dict[str, type[NotFoundError]] = {
    "Organization": OrganizationNotFoundError,
    "Account": AccountNotFoundError,
    "Contact": ContactNotFoundError,
    "Membership": MembershipNotFoundError,
    "Transaction": TransactionNotFoundError,
    "FiscalPeriod": PeriodNotFoundError,
}


def not_found(model: type[VersionedBase], entity_id: UUID) -> NotFoundError:
    """Typed not-found error for a versioned model."""
    error_cls = _NOT_FOUND_ERRORS.get(model.__name__)
    if error_cls is None:
        return NotFoundError(str(entity_id), model.__name__)
    return error_cls(str(entity_id))


def _equality_filters(model: type[VersionedBase], filters: Mapping[str, Any]) -> list[ColumnElement]:
    return [getattr(model, name) == value for name, value in filters.items()]


class VersionStore:
    """
    Generic version-chain operations for any ``VersionedBase`` model.

    Contract:
        Flushes within the caller's transaction and never commits.  All
        timestamps come from the injected clock; a single revision uses a
        single instant for the close and the new version.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @staticmethod
    def current_version_filter(model: type[V], **filters: Any) -> ColumnElement[bool]:
        """``system_to = MAX AND valid_to = MAX AND NOT is_deleted`` plus equality filters."""
        return and_(
            model.system_to == MAX_DATE,
            model.valid_to == MAX_DATE,
            model.is_deleted.is_(False),
            *_equality_filters(model, filters),
        )

    @staticmethod
    def as_of_filter(model: type[V], as_of: datetime, **filters: Any) -> ColumnElement[bool]:
        """Business time: ``valid_from <= as_of < valid_to``."""
        return and_(
            model.valid_from <= as_of,
            model.valid_to > as_of,
            model.is_deleted.is_(False),
            *_equality_filters(model, filters),
        )

    @staticmethod
    def system_as_of_filter(model: type[V], at: datetime, **filters: Any) -> ColumnElement[bool]:
        """System time: ``system_from <= at < system_to``."""
        return and_(
            model.system_from <= at,
            model.system_to > at,
            model.is_deleted.is_(False),
            *_equality_filters(model, filters),
        )

    @staticmethod
    def bitemporal_filter(
        model: type[V],
        as_of: datetime,
        at: datetime,
        **filters: Any,
    ) -> ColumnElement[bool]:
        """Both axes at once: what the system believed at ``at`` about ``as_of``."""
        return and_(
            model.valid_from <= as_of,
            model.valid_to > as_of,
            model.system_from <= at,
            model.system_to > at,
            model.is_deleted.is_(False),
            *_equality_filters(model, filters),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_current(
        self,
        model: type[V],
        entity_id: UUID,
        organization_id: UUID | None = None,
    ) -> V | None:
        filters: dict[str, Any] = {"id": entity_id}
        if organization_id is not None:
            filters["organization_id"] = organization_id
        return self.session.execute(
            select(model).where(self.current_version_filter(model, **filters))
        ).scalar_one_or_none()

    def require_current(
        self,
        model: type[V],
        entity_id: UUID,
        organization_id: UUID | None = None,
    ) -> V:
        """
        Current version or a typed NotFoundError.

        A version owned by another organization is reported as not found.
        """
        version = self.get_current(model, entity_id, organization_id)
        if version is None:
            raise not_found(model, entity_id)
        return version

    def list_current(
        self,
        model: type[V],
        *criteria: ColumnElement[bool],
        order_by: Any = None,
        **filters: Any,
    ) -> list[V]:
        stmt = select(model).where(self.current_version_filter(model, **filters), *criteria)
        if order_by is not None:
            stmt = stmt.order_by(*order_by) if isinstance(order_by, (list, tuple)) else stmt.order_by(order_by)
        return list(self.session.execute(stmt).scalars())

    def find_as_of(
        self,
        model: type[V],
        entity_id: UUID,
        as_of: datetime,
        organization_id: UUID | None = None,
    ) -> V | None:
        filters: dict[str, Any] = {"id": entity_id}
        if organization_id is not None:
            filters["organization_id"] = organization_id
        return self.session.execute(
            select(model).where(self.as_of_filter(model, as_of, **filters))
        ).scalar_one_or_none()

    def find_system_as_of(
        self,
        model: type[V],
        entity_id: UUID,
        at: datetime,
        organization_id: UUID | None = None,
    ) -> V | None:
        filters: dict[str, Any] = {"id": entity_id}
        if organization_id is not None:
            filters["organization_id"] = organization_id
        return self.session.execute(
            select(model).where(self.system_as_of_filter(model, at, **filters))
        ).scalar_one_or_none()

    def history(
        self,
        model: type[V],
        entity_id: UUID,
        organization_id: UUID | None = None,
    ) -> list[V]:
        """
        Every version of an entity, newest first, deleted versions included.

        Ordering follows the predecessor links, so versions written at the
        same instant still come back in chain order.
        """
        stmt = select(model).where(model.id == entity_id)
        if organization_id is not None:
            stmt = stmt.where(model.organization_id == organization_id)
        versions = list(self.session.execute(stmt).scalars())
        ordered = order_chain(versions)
        if ordered is None:
            ordered = sorted(versions, key=lambda v: (v.system_from, v.valid_from))
        return list(reversed(ordered))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        entity: V,
        actor_id: UUID,
        reason: str | None = None,
        as_of: datetime | None = None,
    ) -> V:
        """Insert the first version of a new entity."""
        as_of = as_of or self.clock.now()
        if entity.id is None:
            entity.id = uuid4()
        entity.version_id = uuid4()
        entity.previous_version_id = None
        entity.valid_from = as_of
        entity.valid_to = MAX_DATE
        entity.system_from = as_of
        entity.system_to = MAX_DATE
        entity.is_deleted = False
        entity.changed_by = actor_id
        entity.change_reason = reason
        self.session.add(entity)
        self.session.flush()

        logger.info(
            "version_created",
            extra={
                "entity_type": type(entity).__name__,
                "entity_id": str(entity.id),
                "version_id": str(entity.version_id),
                "previous_version_id": None,
            },
        )
        return entity

    def close_version(self, model: type[V], version_id: UUID, as_of: datetime) -> None:
        """
        Supersede one version at ``as_of``.

        Raises:
            ConcurrentModificationError: the version was already closed.
        """
        result = self.session.execute(
            update(model)
            .where(model.version_id == version_id, model.system_to == MAX_DATE)
            .values(valid_to=as_of, system_to=as_of)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount == 0:
            logger.warning(
                "version_close_conflict",
                extra={"entity_type": model.__name__, "version_id": str(version_id)},
            )
            raise ConcurrentModificationError(model.__name__, str(version_id))

        logger.debug(
            "version_closed",
            extra={
                "entity_type": model.__name__,
                "version_id": str(version_id),
                "closed_at": as_of,
            },
        )

    def create_new_version(
        self,
        previous: V,
        changes: Mapping[str, Any],
        as_of: datetime,
        actor_id: UUID,
        reason: str | None = None,
    ) -> V:
        """
        Build and insert the successor of ``previous``.

        Fields absent from ``changes`` carry forward unchanged.  The
        deletion flags are reset unless ``changes`` sets them.
        """
        model = type(previous)
        columns = {attr.key for attr in inspect(model).column_attrs}
        unknown = set(changes) - columns
        if unknown:
            raise ValueError(f"Unknown {model.__name__} field(s): {sorted(unknown)}")
        protected = set(changes) & PROTECTED_COLUMNS
        if protected:
            raise ValueError(f"Cannot change {model.__name__} field(s): {sorted(protected)}")

        values = {key: copy.copy(getattr(previous, key)) for key in columns}
        values.update(
            version_id=uuid4(),
            id=previous.id,
            previous_version_id=previous.version_id,
            valid_from=as_of,
            valid_to=MAX_DATE,
            system_from=as_of,
            system_to=MAX_DATE,
            is_deleted=False,
            deleted_at=None,
            deleted_by=None,
            changed_by=actor_id,
            change_reason=reason,
        )
        values.update(changes)

        successor = model(**values)
        self.session.add(successor)
        self.session.flush()

        logger.info(
            "version_created",
            extra={
                "entity_type": model.__name__,
                "entity_id": str(successor.id),
                "version_id": str(successor.version_id),
                "previous_version_id": str(previous.version_id),
                "changed_fields": sorted(changes),
            },
        )
        return successor

    def revise(
        self,
        previous: V,
        changes: Mapping[str, Any],
        actor_id: UUID,
        reason: str | None = None,
        as_of: datetime | None = None,
    ) -> V:
        """Close ``previous`` and write its successor at one instant."""
        as_of = as_of or self.clock.now()
        self.close_version(type(previous), previous.version_id, as_of)
        return self.create_new_version(previous, changes, as_of, actor_id, reason)

    def update(
        self,
        model: type[V],
        entity_id: UUID,
        changes: Mapping[str, Any],
        actor_id: UUID,
        reason: str | None = None,
        organization_id: UUID | None = None,
    ) -> V:
        """Read the current version, then revise it."""
        current = self.require_current(model, entity_id, organization_id)
        return self.revise(current, changes, actor_id, reason)

    def soft_delete(
        self,
        model: type[V],
        entity_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        organization_id: UUID | None = None,
        changes: Mapping[str, Any] | None = None,
    ) -> V:
        """Supersede the current version with a deleted one."""
        current = self.require_current(model, entity_id, organization_id)
        return self.delete_version(current, actor_id, reason, changes)

    def delete_version(
        self,
        current: V,
        actor_id: UUID,
        reason: str | None = None,
        changes: Mapping[str, Any] | None = None,
    ) -> V:
        as_of = self.clock.now()
        values = dict(changes or {})
        values.update(is_deleted=True, deleted_at=as_of, deleted_by=actor_id)
        deleted = self.revise(current, values, actor_id, reason, as_of=as_of)
        logger.info(
            "version_deleted",
            extra={"entity_type": type(current).__name__, "entity_id": str(current.id)},
        )
        return deleted

    def restore(
        self,
        model: type[V],
        entity_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        organization_id: UUID | None = None,
    ) -> V:
        """
        Undo a soft delete with a new, non-deleted version.

        Raises:
            EntityNotDeletedError: the entity is live.
            NotFoundError: the entity never existed.
        """
        stmt = select(model).where(
            model.id == entity_id,
            model.system_to == MAX_DATE,
            model.is_deleted.is_(True),
        )
        if organization_id is not None:
            stmt = stmt.where(model.organization_id == organization_id)
        deleted = self.session.execute(stmt).scalar_one_or_none()

        if deleted is None:
            if self.get_current(model, entity_id, organization_id) is not None:
                raise EntityNotDeletedError(model.__name__, str(entity_id))
            raise not_found(model, entity_id)

        restored = self.revise(deleted, {}, actor_id, reason)
        logger.info(
            "version_restored",
            extra={"entity_type": model.__name__, "entity_id": str(entity_id)},
        )
        return restored
