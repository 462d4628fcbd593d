"""
Temporal -- bitemporal sentinel and pure version predicates.

Responsibility:
    Defines the single far-future sentinel (``MAX_DATE``) that denotes an
    open-ended ``valid_to`` / ``system_to`` and the pure predicates that
    classify a version row: current, valid at a business instant, visible
    at a system instant.  The SQL renderings of the same predicates live in
    ``ledger_kernel.services.version_store``; the two must agree.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by
    ``db/base.py`` for the column defaults (sentinel only).

Invariants enforced:
    - Open-ended intervals are expressed with MAX_DATE, never NULL.
    - Intervals are half-open: ``from <= instant < to``.
    - A chain is contiguous when every superseded version's ``valid_to``
      equals its successor's ``valid_from``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Protocol

MAX_DATE = datetime(9999, 12, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)


class TemporalRecord(Protocol):
    """Anything carrying the bitemporal version columns."""

    version_id: object
    previous_version_id: object | None
    valid_from: datetime
    valid_to: datetime
    system_from: datetime
    system_to: datetime
    is_deleted: bool


def is_open_ended(instant: datetime) -> bool:
    return instant == MAX_DATE


def is_current(version: TemporalRecord) -> bool:
    """True for the live, non-deleted head of a version chain."""
    return (
        is_open_ended(version.system_to)
        and is_open_ended(version.valid_to)
        and not version.is_deleted
    )


def is_valid_at(version: TemporalRecord, as_of: datetime) -> bool:
    """Business-time membership: ``valid_from <= as_of < valid_to``."""
    return version.valid_from <= as_of < version.valid_to


def is_visible_at(version: TemporalRecord, at: datetime) -> bool:
    """System-time membership: ``system_from <= at < system_to``."""
    return version.system_from <= at < version.system_to


def order_chain(versions: Sequence[TemporalRecord]) -> list[TemporalRecord] | None:
    """
    Order one entity's versions oldest first by following predecessor links.

    Returns None when the rows do not form a single linked list (no unique
    head, a fork, or an unreachable version).
    """
    if not versions:
        return []

    heads = [v for v in versions if v.previous_version_id is None]
    successors = {v.previous_version_id: v for v in versions if v.previous_version_id is not None}
    if len(heads) != 1 or len(successors) != len(versions) - 1:
        return None

    ordered = [heads[0]]
    while ordered[-1].version_id in successors:
        ordered.append(successors[ordered[-1].version_id])
    if len(ordered) != len(versions):
        return None
    return ordered


def chain_is_contiguous(versions: Sequence[TemporalRecord]) -> bool:
    """
    Check the linked-list shape of one entity's version chain.

    The chain must start at a version without predecessor, every later
    version must point at the one before it, the business-time intervals
    must abut with no gaps, and at most one version may be open-ended in
    system time.
    """
    ordered = order_chain(versions)
    if ordered is None:
        return False

    for previous, successor in zip(ordered, ordered[1:]):
        if previous.valid_to != successor.valid_from:
            return False
        if is_open_ended(previous.system_to):
            return False

    return True
