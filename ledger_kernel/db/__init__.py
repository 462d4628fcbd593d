"""Database layer - engine and base classes."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString, VersionedBase
from ledger_kernel.db.engine import create_tables, get_engine, get_session, session_scope

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "VersionedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
