"""
BaseService -- shared wiring for kernel services.

Responsibility:
    Hands every kernel service the caller's ``Session``, one injected
    ``Clock`` and a ``VersionStore`` bound to both, so that all version
    timestamps written during one operation come from the same time source.

Architecture position:
    Kernel > Services.  Subclasses own one versioned entity type
    (``BaseService[Account]``, ``BaseService[FiscalPeriod]``, ...).

Invariants enforced:
    Services flush and never commit or roll back.  The caller
    (``session_scope()``, an outer service, or the test harness) owns the
    unit of work, so a version close and its successor, or a posting and
    its balance update, always land together.

Failure modes:
    - A subclass that commits on its own can persist a closed version
      without its successor, breaking chain contiguity.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import VersionedBase
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.services.version_store import VersionStore

ModelType = TypeVar("ModelType", bound=VersionedBase)


class BaseService(ABC, Generic[ModelType]):
    """
    Contract:
        ``self.session`` is the caller's open session, ``self.clock`` the
        only source of "now", ``self.versions`` the only writer of version
        rows.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
        self.versions = VersionStore(session, self.clock)
