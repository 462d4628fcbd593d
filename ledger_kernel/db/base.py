"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the portable UUID and UTC timestamp column types, the type annotation map,
    the VersionedBase mixin carrying the bitemporal version columns, and the
    TrackedBase mixin for non-versioned working-state tables.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  May import the
    MAX_DATE sentinel from domain/temporal.py; MUST NOT import from models/,
    services/, selectors/, or outer layers.

Invariants enforced:
    - Version rows are keyed by version_id; the stable entity id is shared
      by every version of the same entity.  There is no head pointer: the
      current version is the row with open-ended valid_to/system_to and
      is_deleted = false.
    - Open-ended intervals use the MAX_DATE sentinel, never NULL.
    - Decimal precision: Python Decimal maps to Numeric(38, 9).
      NEVER use float for monetary amounts.
    - Timestamps are stored and returned in UTC, timezone-aware, on every
      backend (SQLite drops tzinfo; UTCDateTime restores it).

Failure modes:
    - IntegrityError on duplicate version_id (uuid4; protected by PK).

Audit relevance:
    changed_by / change_reason / deleted_by on every version row, plus the
    two time axes, make every edit attributable and reconstructable.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Boolean, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from ledger_kernel.domain.temporal import MAX_DATE


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return value if isinstance(value, PyUUID) else PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp normalized to UTC.

    Guarantees:
        - Naive values are treated as UTC on the way in.
        - Loaded values are always aware UTC datetimes, so comparisons with
          MAX_DATE and Clock.now() never mix naive and aware values.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - Decimal maps to Numeric(38, 9) -- financial-grade precision.
        - datetime maps to UTCDateTime -- always timezone-aware UTC.
        - UUID maps to String(36).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }


class VersionedBase(Base):
    """
    Abstract base for append-only, bitemporal business records.

    Contract:
        Rows are never updated in place except for the close of a
        superseded version (valid_to/system_to set to the close instant) and
        the Balance Engine's write of Account.current_balance on the
        current version.  All other edits produce a new row through
        ``VersionStore``.

    Guarantees:
        - version_id is unique per row; id is shared across the chain.
        - previous_version_id links each version to its predecessor.
        - valid_to and system_to default to MAX_DATE.
    """

    __abstract__ = True

    version_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
        default=uuid4,
        index=True,
    )

    previous_version_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # Business time
    valid_from: Mapped[datetime] = mapped_column(nullable=False)
    valid_to: Mapped[datetime] = mapped_column(nullable=False, default=MAX_DATE)

    # System (record) time
    system_from: Mapped[datetime] = mapped_column(nullable=False)
    system_to: Mapped[datetime] = mapped_column(
        nullable=False,
        default=MAX_DATE,
        index=True,
    )

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_by: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)

    changed_by: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)
    change_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)


class TrackedBase(Base):
    """
    Abstract base for non-versioned working state (reconciliation data).

    Contract:
        Rows are created, updated and deleted directly.  They are
        reconciliation working state, not ledger truth.

    Guarantees:
        - id is a uuid4 primary key.
        - created_at is set on INSERT; updated_at refreshes on every UPDATE.
        - created_by_id is required -- every row has a creator.
    """

    __abstract__ = True

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
