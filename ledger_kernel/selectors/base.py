"""
Module: ledger_kernel.selectors.base
Responsibility: Base for read-only selectors.  Selectors answer questions
    about current ledger state (balances, trial balances) and return frozen
    DTOs, never ORM rows for the caller to mutate.
Architecture position: Kernel > Selectors.  May import from db/, domain/,
    models/ and the read side of the VersionStore.

Invariants enforced:
    - Selectors never add, delete, flush or commit.
    - Every lookup goes through the current-version predicate.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.base import VersionedBase
from ledger_kernel.services.version_store import VersionStore

ModelType = TypeVar("ModelType", bound=VersionedBase)


class BaseSelector(ABC, Generic[ModelType]):
    model: type[ModelType]

    def __init__(self, session: Session):
        self.session = session
        self.versions = VersionStore(session)

    def _current(self, entity_id: UUID, organization_id: UUID) -> ModelType:
        return self.versions.require_current(self.model, entity_id, organization_id)

    def _all_current(self, organization_id: UUID) -> list[ModelType]:
        return self.versions.list_current(self.model, organization_id=organization_id)
