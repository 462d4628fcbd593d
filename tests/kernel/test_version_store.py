"""
Version store tests.

Verifies:
- One current version per entity id, whatever the number of edits
- Closing a version and writing its successor share one instant
- Lost close races surface as ConcurrentModificationError
- Soft delete and restore are version transitions
- As-of (business time) and system-as-of reads are independent
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.temporal import MAX_DATE, chain_is_contiguous, is_current
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConcurrentModificationError,
    EntityNotDeletedError,
    OrganizationNotFoundError,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.organization import Organization, OrganizationStatus
from ledger_kernel.services.version_store import VersionStore


def _new_org(version_store, actor_id, name="Riverside Shelter", slug=None):
    return version_store.create(
        Organization(
            name=name,
            slug=slug or f"org-{uuid4().hex[:8]}",
            status=OrganizationStatus.ACTIVE.value,
        ),
        actor_id,
        reason="created in test",
    )


def _current_count(session, model, entity_id) -> int:
    return session.execute(
        select(func.count()).select_from(model).where(
            VersionStore.current_version_filter(model, id=entity_id)
        )
    ).scalar_one()


class TestCreate:
    """First versions are open-ended and attributed."""

    def test_first_version_is_current(self, version_store, test_actor_id):
        org = _new_org(version_store, test_actor_id)

        assert org.previous_version_id is None
        assert org.valid_to == MAX_DATE
        assert org.system_to == MAX_DATE
        assert org.is_deleted is False
        assert org.changed_by == test_actor_id
        assert org.change_reason == "created in test"
        assert is_current(org)

    def test_timestamps_come_from_clock(self, version_store, deterministic_clock, test_actor_id):
        org = _new_org(version_store, test_actor_id)

        assert org.valid_from == deterministic_clock.now()
        assert org.system_from == deterministic_clock.now()


class TestRevise:
    """Close + create produce a contiguous chain."""

    def test_successor_links_to_predecessor(self, version_store, deterministic_clock, test_actor_id):
        org = _new_org(version_store, test_actor_id)
        first_version_id = org.version_id
        deterministic_clock.advance(60)

        revised = version_store.revise(org, {"name": "Riverside Family Shelter"}, test_actor_id, "rename")

        assert revised.id == org.id
        assert revised.version_id != first_version_id
        assert revised.previous_version_id == first_version_id
        assert revised.name == "Riverside Family Shelter"
        # Unspecified fields carry forward
        assert revised.slug == org.slug
        assert revised.status == org.status

    def test_closed_valid_to_equals_successor_valid_from(
        self, version_store, deterministic_clock, test_actor_id
    ):
        org = _new_org(version_store, test_actor_id)
        deterministic_clock.advance(60)

        revised = version_store.revise(org, {"name": "Renamed"}, test_actor_id)
        closed = next(v for v in version_store.history(Organization, org.id) if v.version_id != revised.version_id)

        assert closed.valid_to == revised.valid_from
        assert closed.system_to == revised.system_from
        assert closed.system_to == deterministic_clock.now()

    def test_exactly_one_current_version_after_many_edits(
        self, session, version_store, deterministic_clock, test_actor_id
    ):
        org = _new_org(version_store, test_actor_id)
        current = org
        for i in range(5):
            deterministic_clock.advance(1)
            current = version_store.revise(current, {"name": f"Name {i}"}, test_actor_id)

        assert _current_count(session, Organization, org.id) == 1
        assert version_store.get_current(Organization, org.id).name == "Name 4"

        history = version_store.history(Organization, org.id)
        assert len(history) == 6
        assert history[0].version_id == current.version_id
        assert chain_is_contiguous(history)

    def test_same_instant_revisions_keep_chain_order(self, version_store, test_actor_id):
        org = _new_org(version_store, test_actor_id)
        second = version_store.revise(org, {"name": "Second"}, test_actor_id)
        third = version_store.revise(second, {"name": "Third"}, test_actor_id)

        history = version_store.history(Organization, org.id)

        assert [v.name for v in history] == ["Third", "Second", "Riverside Shelter"]
        assert history[0].version_id == third.version_id

    def test_unknown_field_rejected(self, version_store, test_actor_id):
        org = _new_org(version_store, test_actor_id)

        with pytest.raises(ValueError, match="Unknown"):
            version_store.create_new_version(
                org, {"favourite_colour": "blue"}, org.valid_from, test_actor_id
            )

    def test_protected_field_rejected(self, version_store, test_actor_id):
        org = _new_org(version_store, test_actor_id)

        with pytest.raises(ValueError, match="Cannot change"):
            version_store.create_new_version(
                org, {"previous_version_id": uuid4()}, org.valid_from, test_actor_id
            )


class TestConcurrentModification:
    """The affected-row count of the close is the concurrency token."""

    def test_second_close_of_same_version_fails(
        self, session, version_store, deterministic_clock, test_actor_id
    ):
        org = _new_org(version_store, test_actor_id)
        # Both callers read the same current version
        seen_by_a = version_store.get_current(Organization, org.id)
        seen_by_b_version_id = seen_by_a.version_id

        deterministic_clock.advance(1)
        version_store.revise(seen_by_a, {"name": "Caller A"}, test_actor_id)

        deterministic_clock.advance(1)
        with pytest.raises(ConcurrentModificationError) as exc_info:
            version_store.close_version(Organization, seen_by_b_version_id, deterministic_clock.now())

        assert exc_info.value.version_id == str(seen_by_b_version_id)
        assert _current_count(session, Organization, org.id) == 1
        assert version_store.get_current(Organization, org.id).name == "Caller A"

    def test_revise_of_stale_version_writes_nothing(
        self, session, version_store, deterministic_clock, test_actor_id
    ):
        org = _new_org(version_store, test_actor_id)
        stale = version_store.get_current(Organization, org.id)
        version_store.revise(stale, {"name": "Winner"}, test_actor_id)

        with pytest.raises(ConcurrentModificationError):
            version_store.revise(stale, {"name": "Loser"}, test_actor_id)

        assert len(version_store.history(Organization, org.id)) == 2
        assert version_store.get_current(Organization, org.id).name == "Winner"

    def test_conflict_is_logged(self, version_store, test_actor_id, captured_logs):
        org = _new_org(version_store, test_actor_id)
        stale = version_store.get_current(Organization, org.id)
        version_store.revise(stale, {"name": "Winner"}, test_actor_id)

        with pytest.raises(ConcurrentModificationError):
            version_store.revise(stale, {"name": "Loser"}, test_actor_id)

        conflicts = [r for r in captured_logs() if r["message"] == "version_close_conflict"]
        assert len(conflicts) == 1
        assert conflicts[0]["level"] == "WARNING"
        assert conflicts[0]["entity_type"] == "Organization"


class TestSoftDeleteAndRestore:
    """Deletion is a version with is_deleted = true; restore is another version."""

    def test_soft_delete_hides_entity(self, version_store, test_actor_id):
        org = _new_org(version_store, test_actor_id)

        deleted = version_store.soft_delete(Organization, org.id, test_actor_id, reason="duplicate")

        assert deleted.is_deleted is True
        assert deleted.deleted_by == test_actor_id
        assert deleted.deleted_at is not None
        assert deleted.name == org.name
        assert version_store.get_current(Organization, org.id) is None
        with pytest.raises(OrganizationNotFoundError):
            version_store.require_current(Organization, org.id)

    def test_deleted_version_stays_in_history(self, version_store, test_actor_id):
        org = _new_org(version_store, test_actor_id)
        version_store.soft_delete(Organization, org.id, test_actor_id)

        history = version_store.history(Organization, org.id)

        assert len(history) == 2
        assert history[0].is_deleted is True
        assert history[1].is_deleted is False

    def test_restore_creates_live_version(self, version_store, deterministic_clock, test_actor_id):
        org = _new_org(version_store, test_actor_id)
        deterministic_clock.advance(5)
        version_store.soft_delete(Organization, org.id, test_actor_id)
        deterministic_clock.advance(5)

        restored = version_store.restore(Organization, org.id, test_actor_id, reason="undo")

        assert restored.is_deleted is False
        assert restored.deleted_at is None
        assert version_store.require_current(Organization, org.id).version_id == restored.version_id
        assert len(version_store.history(Organization, org.id)) == 3

    def test_restore_live_entity_rejected(self, version_store, test_actor_id):
        org = _new_org(version_store, test_actor_id)

        with pytest.raises(EntityNotDeletedError):
            version_store.restore(Organization, org.id, test_actor_id)

    def test_restore_unknown_entity_not_found(self, version_store, test_actor_id):
        with pytest.raises(OrganizationNotFoundError):
            version_store.restore(Organization, uuid4(), test_actor_id)


class TestTemporalReads:
    """Business time and system time are queried independently."""

    def test_as_of_returns_version_valid_then(self, version_store, deterministic_clock, test_actor_id):
        org = _new_org(version_store, test_actor_id, name="Before")
        created_at = deterministic_clock.now()
        deterministic_clock.advance(3600)
        version_store.revise(org, {"name": "After"}, test_actor_id)

        assert version_store.find_as_of(Organization, org.id, created_at).name == "Before"
        assert version_store.find_as_of(Organization, org.id, deterministic_clock.now()).name == "After"
        assert version_store.find_as_of(Organization, org.id, created_at - timedelta(seconds=1)) is None

    def test_system_as_of_returns_version_visible_then(
        self, version_store, deterministic_clock, test_actor_id
    ):
        org = _new_org(version_store, test_actor_id, name="Before")
        deterministic_clock.advance(10)
        midpoint = deterministic_clock.now()
        deterministic_clock.advance(10)
        version_store.revise(org, {"name": "After"}, test_actor_id)

        assert version_store.find_system_as_of(Organization, org.id, midpoint).name == "Before"
        assert (
            version_store.find_system_as_of(Organization, org.id, deterministic_clock.now()).name
            == "After"
        )

    def test_other_organization_reads_as_not_found(
        self, version_store, organization, accounts, test_actor_id
    ):
        cash = accounts["1010"]

        assert version_store.get_current(Account, cash.id, organization.id) is not None
        with pytest.raises(AccountNotFoundError):
            version_store.require_current(Account, cash.id, uuid4())
